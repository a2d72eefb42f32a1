from __future__ import annotations

from typing import Set

from repocards.models import CardDraft
from repocards.normalize import normalize_for_match


def _basename(path: str) -> str:
    return path.rstrip("/").rsplit("/", 1)[-1]


def content_keys(card: CardDraft) -> Set[str]:
    """Normalized route/title keys of every block in ``card``.

    Screens that have not been built into blocks yet contribute each file path
    and its basename, which is what the built block's route and title will be.
    """

    keys: Set[str] = set()
    for screen in card.screens:
        if screen.blocks:
            values = [value for block in screen.blocks for value in (block.route, block.title) if value]
        else:
            values = [value for path in screen.files for value in (path, _basename(path))]
        for value in values:
            key = normalize_for_match(value)
            if key:
                keys.add(key)
    return keys


class SimilarityEngine:
    """Jaccard similarity of two cards' content keys. Pure and symmetric."""

    def similarity(self, a: CardDraft, b: CardDraft) -> float:
        keys_a = content_keys(a)
        keys_b = content_keys(b)
        if not keys_a or not keys_b:
            return 0.0
        return len(keys_a & keys_b) / len(keys_a | keys_b)
