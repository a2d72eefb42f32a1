"""Turn validated drafts into block-backed cards and persistence records.

Also holds the deterministic fallbacks that need no provider call: splitting
oversized screens, covering files the provider forgot, and building drafts
straight from the scanner's proposed groups.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections import Counter
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Optional, Sequence, Set

from repocards.features import FeatureClassifier
from repocards.models import BlockType, CardDraft, ContentBlock, ScreenDraft
from repocards.schemas import BlockRecord, CardRecord, FileMeta, ProposedGroup, ScreenRecord

LOGGER = logging.getLogger(__name__)

LANGUAGE_BY_EXTENSION: Dict[str, str] = {
    ".ts": "typescript", ".tsx": "typescript",
    ".js": "javascript", ".jsx": "javascript", ".mjs": "javascript", ".cjs": "javascript",
    ".py": "python", ".pyw": "python",
    ".java": "java", ".kt": "kotlin", ".kts": "kotlin",
    ".go": "go", ".rs": "rust", ".rb": "ruby", ".php": "php",
    ".c": "c", ".h": "c", ".cpp": "cpp", ".cc": "cpp", ".hpp": "cpp",
    ".cs": "csharp", ".swift": "swift",
    ".vue": "vue", ".svelte": "svelte",
    ".html": "html", ".htm": "html",
    ".css": "css", ".scss": "scss", ".sass": "sass", ".less": "less",
    ".json": "json", ".yaml": "yaml", ".yml": "yaml", ".toml": "toml",
    ".md": "markdown", ".mdx": "markdown",
    ".sql": "sql", ".sh": "bash", ".bash": "bash", ".zsh": "bash",
}

UI_SCREEN_GROUPS = (
    (re.compile(r"button|badge|toggle", re.IGNORECASE), "Buttons & Badges"),
    (re.compile(r"input|select|checkbox|form|label|switch|radio|textarea", re.IGNORECASE), "Form Controls"),
    (re.compile(r"dialog|modal|sheet|popover|dropdown|alert|toast|tooltip|accordion|tabs", re.IGNORECASE),
     "Overlays & Feedback"),
    (re.compile(r"table|card|skeleton|avatar|separator|scroll", re.IGNORECASE), "Layout & Display"),
)
UI_FALLBACK_GROUP = "Outros"

# (pattern on the path prefix, card title, category); first match wins.
PATH_PREFIX_CARDS = (
    (re.compile(r"constants", re.IGNORECASE), "Constantes e Semântica", "Configuração"),
    (re.compile(r"middleware", re.IGNORECASE), "Middlewares", "Infraestrutura"),
    (re.compile(r"database|models|supabase", re.IGNORECASE), "Camada de Persistência", "Acesso a Dados"),
    (re.compile(r"controllers|routes", re.IGNORECASE), "Endpoints e Rotas API", "APIs REST"),
    (re.compile(r"app/admin|admin/", re.IGNORECASE), "Painel Admin", "Administrativo"),
    (re.compile(r"components", re.IGNORECASE), "Biblioteca de Componentes UI", "Componentes UI"),
    (re.compile(r"scripts|\.claude", re.IGNORECASE), "Scripts e Ferramentas", "Utilidades"),
    (re.compile(r"Dockerfile|docker-compose", re.IGNORECASE), "Infraestrutura Docker", "DevOps"),
    (re.compile(r"package\.json|tsconfig|eslint|\.env", re.IGNORECASE), "Configuração do Projeto", "Configuração"),
    (re.compile(r"hooks", re.IGNORECASE), "Hooks Customizados", "Hooks e Estado"),
    (re.compile(r"services|lib|utils", re.IGNORECASE), "Serviços e Utilitários", "Utilidades"),
)


def language_for(path: str) -> str:
    return LANGUAGE_BY_EXTENSION.get(PurePosixPath(path).suffix.lower(), "plaintext")


def _basename(path: str) -> str:
    return PurePosixPath(path).name or path


def _path_prefix(path: str) -> str:
    segments = path.split("/")
    return "root" if len(segments) <= 2 else "/".join(segments[:3])


# ----------------------------------------------------------------------
# Screen/file level fallbacks
# ----------------------------------------------------------------------
def expand_oversized_screens(cards: Sequence[CardDraft], max_files: int = 25) -> List[CardDraft]:
    """Split screens listing more than ``max_files`` files into themed UI screens."""

    expanded = []
    for card in cards:
        screens: List[ScreenDraft] = []
        for screen in card.screens:
            if len(screen.files) <= max_files:
                screens.append(screen)
                continue
            by_group: Dict[str, List[str]] = {}
            for path in screen.files:
                base = _basename(path)
                group = next((name for pattern, name in UI_SCREEN_GROUPS if pattern.search(base)), UI_FALLBACK_GROUP)
                by_group.setdefault(group, []).append(path)
            LOGGER.info("Split screen %r of %r (%s files) into %s", screen.name, card.title, len(screen.files), list(by_group))
            screens.extend(ScreenDraft(name=name, files=files) for name, files in by_group.items())
        expanded.append(
            CardDraft(
                title=card.title,
                description=card.description,
                category=card.category,
                tech=card.tech,
                language=card.language,
                tags=list(card.tags),
                screens=screens,
            )
        )
    return expanded


def covered_paths(cards: Iterable[CardDraft]) -> Set[str]:
    paths: Set[str] = set()
    for card in cards:
        for screen in card.screens:
            paths.update(screen.files)
            paths.update(block.route for block in screen.blocks if block.route)
    return paths


def cards_from_path_groups(missing: Sequence[str]) -> List[CardDraft]:
    """Group uncovered files by path prefix into fallback cards.

    Prefixes mapping to the same (title, category) share one card, one screen
    per prefix.
    """

    by_prefix: Dict[str, List[str]] = {}
    for path in missing:
        by_prefix.setdefault(_path_prefix(path), []).append(path)

    by_card: Dict[tuple, CardDraft] = {}
    for prefix, files in by_prefix.items():
        rule = next((r for r in PATH_PREFIX_CARDS if r[0].search(prefix)), None)
        leaf = prefix.rsplit("/", 1)[-1] or prefix
        title, category = (rule[1], rule[2]) if rule else (f"Arquivos - {leaf}", "Outros")
        card = by_card.setdefault((title, category), CardDraft(title=title, category=category))
        card.screens.append(ScreenDraft(name=leaf, files=list(files)))

    for card in by_card.values():
        card.description = "Arquivos dos diretórios: " + ", ".join(s.name for s in card.screens) + "."
    return list(by_card.values())


def drafts_from_groups(
    groups: Sequence[ProposedGroup],
    files: Sequence[FileMeta],
    classifier: Optional[FeatureClassifier] = None,
) -> List[CardDraft]:
    """Provider-free drafts: one card per proposed group, one screen per layer."""

    classifier = classifier or FeatureClassifier()
    layers = {meta.path: meta.layer or "Arquivos" for meta in files}
    drafts = []
    for group in groups:
        if not group.files:
            continue
        entry = classifier.table.get(group.key)
        title = f"Sistema de {entry.display_name}" if entry else group.key.replace("_", " ").title()
        screens: Dict[str, ScreenDraft] = {}
        for path in group.files:
            layer = layers.get(path, "Arquivos")
            screens.setdefault(layer, ScreenDraft(name=layer)).files.append(path)
        drafts.append(CardDraft(title=title, tags=[group.key], screens=list(screens.values())))
    return drafts


# ----------------------------------------------------------------------
# Blocks and records
# ----------------------------------------------------------------------
def build_cards(drafts: Sequence[CardDraft], files: Sequence[FileMeta]) -> List[CardDraft]:
    """Replace file lists with CODE blocks; drop paths the scanner never saw."""

    index = {meta.path: meta for meta in files}
    built = []
    for draft in drafts:
        screens = []
        for screen in draft.screens:
            blocks: List[ContentBlock] = []
            kept: List[str] = []
            for path in screen.files:
                meta = index.get(path)
                if meta is None:
                    LOGGER.warning("Card %r references unknown file %s; dropping it", draft.title, path)
                    continue
                kept.append(path)
                blocks.append(
                    ContentBlock(
                        id=str(uuid.uuid4()),
                        type=BlockType.CODE,
                        content=meta.snippet,
                        order=len(blocks),
                        route=path,
                        title=_basename(path),
                        language=language_for(path),
                    )
                )
            if blocks:
                screens.append(ScreenDraft(name=screen.name, description=screen.description, files=kept, blocks=blocks))
        if not screens:
            LOGGER.warning("Dropping card %r: none of its files were scanned", draft.title)
            continue
        language = draft.language or _dominant_language(screens)
        built.append(
            CardDraft(
                title=draft.title,
                description=draft.description,
                category=draft.category,
                tech=draft.tech,
                language=language,
                tags=list(draft.tags),
                screens=screens,
            )
        )
    return built


def _dominant_language(screens: Sequence[ScreenDraft]) -> Optional[str]:
    counts = Counter(block.language for screen in screens for block in screen.blocks if block.language)
    return counts.most_common(1)[0][0] if counts else None


def to_records(cards: Sequence[CardDraft]) -> List[CardRecord]:
    records = []
    for card in cards:
        screens = [
            ScreenRecord(
                name=screen.name,
                description=screen.description,
                blocks=[BlockRecord(**block.to_dict()) for block in screen.blocks],
            )
            for screen in card.screens
            if screen.blocks
        ]
        records.append(
            CardRecord(
                title=card.title,
                description=card.description,
                category=card.category or "Geral",
                tech=card.tech,
                language=card.language,
                tags=list(card.tags),
                screens=screens,
            )
        )
    return records
