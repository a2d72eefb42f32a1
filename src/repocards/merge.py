from __future__ import annotations

import copy
import logging
from typing import Callable, Dict, List, Optional, Sequence, Set

from repocards.features import FeatureClassifier
from repocards.models import CardDraft, CorrectionResult, MergeInstruction, QualityReport, ScreenDraft
from repocards.quality import QualityAuditor

LOGGER = logging.getLogger(__name__)


class MergeResolver:
    """Apply a ``QualityReport`` plan to a batch of cards.

    The input list is never touched: work happens on a deep copy addressed by
    original index. Merges run before removals and win over them: a card that
    was merged away counts as a merge, and a card that absorbed others is kept.
    """

    def __init__(self, classifier: Optional[FeatureClassifier] = None) -> None:
        self.classifier = classifier or FeatureClassifier()

    def apply(
        self,
        cards: Sequence[CardDraft],
        report: QualityReport,
        on_log: Optional[Callable[[str], None]] = None,
    ) -> CorrectionResult:
        working: List[CardDraft] = copy.deepcopy(list(cards))
        consumed_by: Dict[int, int] = {}
        absorbed: Set[int] = set()
        merges = 0

        def emit(message: str) -> None:
            LOGGER.info(message)
            if on_log is not None:
                on_log(message)

        for target, instructions in _group_by_target(report.cards_to_merge).items():
            for instruction in instructions:
                source = instruction.source_index
                _check_index(source, len(working))
                _check_index(target, len(working))
                if source in consumed_by:
                    LOGGER.debug("Card %s already merged into %s; skipping", source, consumed_by[source])
                    continue
                final_target = _resolve(target, consumed_by)
                if final_target == source:
                    continue
                self._merge_into(working[final_target], working[source])
                consumed_by[source] = final_target
                absorbed.add(final_target)
                merges += 1
                emit(f'Merged "{working[source].title}" into "{working[final_target].title}" ({instruction.reason})')

        removals: Set[int] = set()
        for index in report.cards_to_remove:
            _check_index(index, len(working))
            if index in consumed_by or index in absorbed:
                continue
            removals.add(index)
            emit(f'Removed "{working[index].title}"')

        corrected = [
            card for index, card in enumerate(working) if index not in consumed_by and index not in removals
        ]
        return CorrectionResult(corrected_cards=corrected, merges_applied=merges, cards_removed=len(removals))

    # ------------------------------------------------------------------
    # Merge mechanics
    # ------------------------------------------------------------------
    def _merge_into(self, target: CardDraft, source: CardDraft) -> None:
        for screen in source.screens:
            existing = next((s for s in target.screens if s.name == screen.name), None)
            if existing is None:
                target.screens.append(screen)
            else:
                _union_screen(existing, screen)

        if len(source.description) > len(target.description):
            target.description = source.description
        for tag in source.tags:
            if tag not in target.tags:
                target.tags.append(tag)

        key = self.classifier.extract_feature_key(target.title)
        if key is not None:
            target.title = f"Sistema de {self.classifier.display_name(key)}"


def _union_screen(target: ScreenDraft, source: ScreenDraft) -> None:
    routes = {block.route for block in target.blocks if block.route}
    for block in source.blocks:
        if block.route and block.route in routes:
            continue
        block.order = len(target.blocks)
        target.blocks.append(block)
        if block.route:
            routes.add(block.route)
    for path in source.files:
        if path not in target.files:
            target.files.append(path)


def _group_by_target(instructions: Sequence[MergeInstruction]) -> Dict[int, List[MergeInstruction]]:
    grouped: Dict[int, List[MergeInstruction]] = {}
    for instruction in instructions:
        grouped.setdefault(instruction.target_index, []).append(instruction)
    return grouped


def _resolve(index: int, consumed_by: Dict[int, int]) -> int:
    seen = set()
    while index in consumed_by and index not in seen:
        seen.add(index)
        index = consumed_by[index]
    return index


def _check_index(index: int, size: int) -> None:
    if not 0 <= index < size:
        raise IndexError(f"Card index {index} out of range for {size} cards")


def apply_corrections(
    cards: Sequence[CardDraft],
    report: QualityReport,
    classifier: Optional[FeatureClassifier] = None,
) -> CorrectionResult:
    return MergeResolver(classifier).apply(cards, report)


def correct_until_stable(
    cards: Sequence[CardDraft],
    auditor: QualityAuditor,
    resolver: Optional[MergeResolver] = None,
    *,
    report: Optional[QualityReport] = None,
    max_iterations: int = 5,
    on_log: Optional[Callable[[str], None]] = None,
) -> CorrectionResult:
    """Audit and correct repeatedly until a pass plans no merges or removals.

    A merge can leave the merged card duplicating another card, so the output of
    each pass is audited again. Every pass addresses cards by their index in that
    pass's input. ``report`` seeds the first pass when ``cards`` were already
    audited. Counts are summed over all passes, so
    ``len(corrected) == len(cards) - merges_applied - cards_removed``.
    """

    resolver = resolver or MergeResolver(auditor.classifier)
    working: List[CardDraft] = copy.deepcopy(list(cards))
    merges = removed = passes = 0

    def emit(message: str) -> None:
        LOGGER.info(message)
        if on_log is not None:
            on_log(message)

    for _ in range(max_iterations):
        if report is None:
            report = auditor.analyze(working, on_log=on_log)
        if not report.cards_to_merge and not report.cards_to_remove:
            break
        result = resolver.apply(working, report, on_log=on_log)
        report = None
        passes += 1
        merges += result.merges_applied
        removed += result.cards_removed
        emit(f"Pass {passes}: {result.merges_applied} merges, {result.cards_removed} removals")
        if len(result.corrected_cards) == len(working):
            working = result.corrected_cards
            break
        working = result.corrected_cards
    else:
        LOGGER.warning("Corrections reached the limit of %s passes", max_iterations)

    emit(f"Corrected {len(cards)} cards to {len(working)} ({merges} merges, {removed} removals, {passes} passes)")
    return CorrectionResult(corrected_cards=working, merges_applied=merges, cards_removed=removed, passes=passes)
