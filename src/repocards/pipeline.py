"""End-to-end card generation for one repository scan.

provider -> normalize -> validate -> coverage fallbacks -> build blocks ->
audit -> merge/remove (repeated until stable) -> tag cleanup -> records -> store.

The batch is all-or-nothing: the store only sees records once every step has
succeeded, in a single ``bulk_create`` call.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Protocol, Sequence

from repocards.builder import (
    build_cards,
    cards_from_path_groups,
    covered_paths,
    drafts_from_groups,
    expand_oversized_screens,
    to_records,
)
from repocards.config import PipelineSettings
from repocards.errors import CardValidationError
from repocards.features import FeatureClassifier
from repocards.merge import MergeResolver, correct_until_stable
from repocards.models import CardDraft, CorrectionResult, QualityReport
from repocards.prompts import build_messages
from repocards.provider import ProviderClient
from repocards.quality import QualityAuditor
from repocards.schema_validator import SchemaValidator
from repocards.schemas import CardRecord, FileMeta, ProposedGroup

LOGGER = logging.getLogger(__name__)


class CardStore(Protocol):
    def create(self, record: CardRecord) -> Any: ...

    def bulk_create(self, records: Sequence[CardRecord]) -> Any: ...


class JsonFileStore:
    """Write card records to a JSON file (a list of card objects)."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read(self) -> List[dict]:
        if not self.path.exists():
            return []
        return json.loads(self.path.read_text(encoding="utf-8"))

    def _write(self, rows: List[dict]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(rows, indent=2, ensure_ascii=False), encoding="utf-8")

    def create(self, record: CardRecord) -> CardRecord:
        self._write(self._read() + [record.model_dump()])
        return record

    def bulk_create(self, records: Sequence[CardRecord]) -> List[CardRecord]:
        self._write(self._read() + [record.model_dump() for record in records])
        return list(records)


@dataclass
class PipelineResult:
    records: List[CardRecord]
    report: QualityReport
    correction: CorrectionResult
    drafts: List[CardDraft] = field(default_factory=list)


class CardPipeline:
    """Generate, audit and persist cards for one scanned repository."""

    def __init__(
        self,
        settings: Optional[PipelineSettings] = None,
        provider: Optional[ProviderClient] = None,
        store: Optional[CardStore] = None,
        *,
        use_provider: bool = True,
    ) -> None:
        self.settings = settings or PipelineSettings()
        self.use_provider = use_provider
        self._provider = provider
        self.store = store
        self.classifier = FeatureClassifier(self.settings.features)
        self.validator = SchemaValidator(max_files_per_screen=self.settings.quality.max_files_per_screen)
        self.auditor = QualityAuditor(self.settings.quality, self.classifier)
        self.resolver = MergeResolver(self.classifier)

    @property
    def provider(self) -> ProviderClient:
        if self._provider is None:
            self._provider = ProviderClient(self.settings.provider, self.settings.prompt)
        return self._provider

    def draft_cards(self, files: Sequence[FileMeta], groups: Sequence[ProposedGroup]) -> List[CardDraft]:
        if self.use_provider:
            messages = build_messages(
                files, groups, self.settings.prompt, self.settings.provider.max_snippet_chars
            )
            drafts = self.provider.generate_drafts(messages, self.validator)
        else:
            proposed = drafts_from_groups(groups, files, self.classifier)
            drafts = self.validator.validate({"cards": [draft.to_dict() for draft in proposed]}) if proposed else []

        drafts = expand_oversized_screens(drafts, self.settings.quality.max_files_per_screen)
        covered = covered_paths(drafts)
        missing = [meta.path for meta in files if meta.path not in covered]
        if missing:
            fallback = cards_from_path_groups(missing)
            LOGGER.info("%s files were not grouped; added %s path-based cards", len(missing), len(fallback))
            drafts.extend(fallback)
        return drafts

    def run(
        self,
        files: Iterable[FileMeta | dict],
        groups: Iterable[ProposedGroup | dict] = (),
        on_log: Optional[Callable[[str], None]] = None,
    ) -> PipelineResult:
        file_list = [f if isinstance(f, FileMeta) else FileMeta.model_validate(f) for f in files]
        group_list = [g if isinstance(g, ProposedGroup) else ProposedGroup.model_validate(g) for g in groups]
        LOGGER.info("Generating cards for %s files (%s proposed groups)", len(file_list), len(group_list))

        drafts = self.draft_cards(file_list, group_list)
        cards = build_cards(drafts, file_list)
        if not cards:
            raise CardValidationError(["No card references a scanned file"])

        report = self.auditor.analyze(cards, on_log=on_log)
        correction = correct_until_stable(
            cards,
            self.auditor,
            self.resolver,
            report=report,
            max_iterations=self.settings.quality.max_iterations,
            on_log=on_log,
        )
        for card in correction.corrected_cards:
            card.tags = self.classifier.normalize_tags(card.tags)

        records = to_records(correction.corrected_cards)
        if self.store is not None:
            self.store.bulk_create(records)
            LOGGER.info("Stored %s cards", len(records))
        return PipelineResult(records=records, report=report, correction=correction, drafts=drafts)
