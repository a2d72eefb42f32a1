"""Tolerant coercion of provider JSON into canonical card drafts.

The provider is untrusted: fields go missing, get renamed, come back as the
wrong type or wrapped in markdown. ``normalize_provider_output`` repairs what
it can and drops what it cannot; it never raises. Shape guarantees are left to
:mod:`repocards.schema_validator`.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from typing import Any, Dict, List, Optional

from repocards.markdown import strip_markdown

LOGGER = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Geral"
TITLE_KEYS = ("title", "name", "featureName")

_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_WS_RE = re.compile(r"\s+")


def strip_accents(text: str) -> str:
    """Remove combining marks: ``Usuários`` -> ``Usuarios``."""

    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


def normalize_for_match(text: str) -> str:
    """Comparison key: lowercase, no diacritics or punctuation, single spaces."""

    if not text:
        return ""
    lowered = strip_accents(text.lower())
    lowered = _NON_ALNUM_RE.sub("", lowered)
    return _WS_RE.sub(" ", lowered).strip()


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    return strip_markdown(str(value)).strip()


def _first_title(raw: Dict[str, Any]) -> Optional[str]:
    for key in TITLE_KEYS:
        value = raw.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def _coerce_tags(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    tags = []
    for item in value:
        if isinstance(item, (str, int, float)) and not isinstance(item, bool):
            text = str(item).strip()
            if text:
                tags.append(text)
    return tags


def _coerce_files(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    files: List[str] = []
    for item in value:
        if isinstance(item, dict):
            item = item.get("path")
        if isinstance(item, str) and item.strip() and item.strip() not in files:
            files.append(item.strip())
    return files


def _normalize_screen(raw: Any, position: int) -> Optional[Dict[str, Any]]:
    if not isinstance(raw, dict):
        return None
    files = _coerce_files(raw.get("files"))
    if not files:
        return None
    name = _clean_text(raw.get("name")) or f"Screen {position + 1}"
    return {
        "name": name,
        "description": _clean_text(raw.get("description")),
        "files": files,
    }


def _normalize_card(raw: Any, position: int) -> Optional[Dict[str, Any]]:
    if not isinstance(raw, dict):
        return None
    title = _clean_text(_first_title(raw) or f"Card {position + 1}")
    if not title:
        return None

    raw_screens = raw.get("screens")
    screens = []
    if isinstance(raw_screens, list):
        for j, raw_screen in enumerate(raw_screens):
            screen = _normalize_screen(raw_screen, j)
            if screen is not None:
                screens.append(screen)
    if not screens:
        LOGGER.debug("Dropping card %r: no screen with files", title)
        return None

    tags = _coerce_tags(raw.get("tags"))
    category = _clean_text(raw.get("category")) if raw.get("category") is not None else ""
    if not category:
        category = tags[0] if tags else DEFAULT_CATEGORY

    card: Dict[str, Any] = {
        "title": title,
        "description": _clean_text(raw.get("description")),
        "category": category,
        "tags": tags,
        "screens": screens,
    }
    for key in ("tech", "language"):
        value = raw.get(key)
        if value is not None and str(value).strip():
            card[key] = str(value).strip()
    return card


def normalize_provider_output(raw: Any) -> Dict[str, List[Dict[str, Any]]]:
    """Coerce parsed provider JSON into ``{"cards": [...]}``; never raises."""

    if not isinstance(raw, dict) or not isinstance(raw.get("cards"), list):
        LOGGER.warning("Provider output has no 'cards' list; treating as empty")
        return {"cards": []}

    cards = []
    for i, raw_card in enumerate(raw["cards"]):
        card = _normalize_card(raw_card, i)
        if card is not None:
            cards.append(card)
    dropped = len(raw["cards"]) - len(cards)
    if dropped:
        LOGGER.info("Normalizer dropped %s of %s raw cards", dropped, len(raw["cards"]))
    return {"cards": cards}
