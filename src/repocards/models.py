"""Card drafts, quality issues and merge plans shared across the pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class BlockType(str, Enum):
    CODE = "code"
    TEXT = "text"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class IssueType(str, Enum):
    DUPLICATE_TITLE = "duplicate_title"
    DUPLICATE_CONTENT = "duplicate_content"
    SAME_FEATURE_SPLIT = "same_feature_split"
    MISSING_DESCRIPTION = "missing_description"
    SINGLE_FILE_CARD = "single_file_card"


@dataclass
class ContentBlock:
    """A code reference or text passage inside a screen."""

    id: str
    type: BlockType
    content: str
    order: int
    route: Optional[str] = None
    title: Optional[str] = None
    language: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentBlock":
        return cls(
            id=str(data.get("id", "")),
            type=BlockType(str(data.get("type", BlockType.CODE.value)).lower()),
            content=str(data.get("content", "")),
            order=int(data.get("order", 0)),
            route=data.get("route"),
            title=data.get("title"),
            language=data.get("language"),
        )


@dataclass
class ScreenDraft:
    name: str
    description: str = ""
    files: List[str] = field(default_factory=list)
    blocks: List[ContentBlock] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "description": self.description}
        if self.blocks:
            data["blocks"] = [block.to_dict() for block in self.blocks]
        else:
            data["files"] = list(self.files)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScreenDraft":
        return cls(
            name=str(data.get("name", "")),
            description=str(data.get("description") or ""),
            files=[str(path) for path in data.get("files") or []],
            blocks=[ContentBlock.from_dict(block) for block in data.get("blocks") or []],
        )


@dataclass
class CardDraft:
    """One feature bundle: a title plus named screens of files or blocks."""

    title: str
    description: str = ""
    category: str = "Geral"
    tech: Optional[str] = None
    language: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    screens: List[ScreenDraft] = field(default_factory=list)

    def block_count(self) -> int:
        # Unbuilt screens count their files, one block per file once built.
        return sum(len(screen.blocks) or len(screen.files) for screen in self.screens)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "tags": list(self.tags),
            "screens": [screen.to_dict() for screen in self.screens],
        }
        if self.tech is not None:
            data["tech"] = self.tech
        if self.language is not None:
            data["language"] = self.language
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CardDraft":
        return cls(
            title=str(data.get("title", "")),
            description=str(data.get("description") or ""),
            category=str(data.get("category") or "Geral"),
            tech=data.get("tech"),
            language=data.get("language"),
            tags=[str(tag) for tag in data.get("tags") or []],
            screens=[ScreenDraft.from_dict(screen) for screen in data.get("screens") or []],
        )


@dataclass(frozen=True)
class QualityIssue:
    type: IssueType
    severity: Severity
    card_index: int
    message: str
    related_card_index: Optional[int] = None
    suggestion: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        data["severity"] = self.severity.value
        return data


@dataclass(frozen=True)
class MergeInstruction:
    source_index: int
    target_index: int
    reason: str


@dataclass
class ImprovementPlan:
    index: int
    suggestions: List[str] = field(default_factory=list)


@dataclass
class QualityReport:
    """Auditor output. Every index refers to the list that was analysed."""

    total_cards: int
    issues: List[QualityIssue] = field(default_factory=list)
    cards_to_merge: List[MergeInstruction] = field(default_factory=list)
    cards_to_remove: List[int] = field(default_factory=list)
    cards_to_improve: List[ImprovementPlan] = field(default_factory=list)

    @property
    def issues_found(self) -> int:
        return len(self.issues)

    def issues_for(self, index: int) -> List[QualityIssue]:
        return [issue for issue in self.issues if issue.card_index == index]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_cards": self.total_cards,
            "issues_found": self.issues_found,
            "issues": [issue.to_dict() for issue in self.issues],
            "cards_to_merge": [asdict(instr) for instr in self.cards_to_merge],
            "cards_to_remove": list(self.cards_to_remove),
            "cards_to_improve": [asdict(plan) for plan in self.cards_to_improve],
        }


@dataclass
class CorrectionResult:
    corrected_cards: List[CardDraft]
    merges_applied: int = 0
    cards_removed: int = 0
    passes: int = 1
