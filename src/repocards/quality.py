"""Deterministic quality audit over a batch of card drafts.

Four detectors run in a fixed order and only add to the report:

1. same-feature split (``API de X`` vs ``Interface de X``)
2. duplicate titles
3. duplicate content (Jaccard over block routes/titles)
4. weak content (short description, too few blocks)

A card is scheduled for removal only when two independent detectors agree:
it has a duplicate title *and* high-severity duplicate content.
"""

from __future__ import annotations

import itertools
import logging
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from repocards.config import QualitySettings
from repocards.features import FeatureClassifier
from repocards.models import (
    CardDraft,
    ImprovementPlan,
    IssueType,
    MergeInstruction,
    QualityIssue,
    QualityReport,
    Severity,
)
from repocards.normalize import normalize_for_match
from repocards.similarity import SimilarityEngine

LOGGER = logging.getLogger(__name__)

LogCallback = Callable[[str], None]


class QualityAuditor:
    """Detect duplicated, split and weak cards and plan their consolidation."""

    def __init__(
        self,
        settings: Optional[QualitySettings] = None,
        classifier: Optional[FeatureClassifier] = None,
        similarity: Optional[SimilarityEngine] = None,
    ) -> None:
        self.settings = settings or QualitySettings()
        self.classifier = classifier or FeatureClassifier()
        self.similarity = similarity or SimilarityEngine()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def analyze(self, cards: Sequence[CardDraft], on_log: Optional[LogCallback] = None) -> QualityReport:
        report = QualityReport(total_cards=len(cards))
        queued: Set[Tuple[int, int]] = set()

        def emit(message: str) -> None:
            LOGGER.info(message)
            if on_log is not None:
                on_log(message)

        def queue_merge(source: int, target: int, reason: str) -> None:
            if (source, target) in queued:
                return
            queued.add((source, target))
            report.cards_to_merge.append(MergeInstruction(source_index=source, target_index=target, reason=reason))

        emit(f"Auditing {len(cards)} cards")
        self._detect_feature_splits(cards, report, queue_merge)
        self._detect_duplicate_titles(cards, report, queue_merge)
        self._detect_duplicate_content(cards, report, queue_merge)
        self._detect_weak_content(cards, report)
        report.cards_to_remove = self._consolidate_removals(report)

        emit(
            f"Audit found {report.issues_found} issues: "
            f"{len(report.cards_to_merge)} merges, {len(report.cards_to_remove)} removals, "
            f"{len(report.cards_to_improve)} cards to improve"
        )
        return report

    # ------------------------------------------------------------------
    # Detectors
    # ------------------------------------------------------------------
    def _detect_feature_splits(self, cards: Sequence[CardDraft], report: QualityReport, queue_merge) -> None:
        keys = [self.classifier.extract_feature_key(card.title) for card in cards]
        for i, j in itertools.combinations(range(len(cards)), 2):
            if keys[i] is None or keys[i] != keys[j]:
                continue
            display = self.classifier.display_name(keys[i])
            report.issues.append(
                QualityIssue(
                    type=IssueType.SAME_FEATURE_SPLIT,
                    severity=Severity.HIGH,
                    card_index=j,
                    related_card_index=i,
                    message=f'"{cards[j].title}" and "{cards[i].title}" describe the same feature ({keys[i]})',
                    suggestion=f'Merge into "Sistema de {display}"',
                )
            )
            queue_merge(j, i, f"Same feature: {keys[i]}")

    def _detect_duplicate_titles(self, cards: Sequence[CardDraft], report: QualityReport, queue_merge) -> None:
        groups: Dict[str, List[int]] = {}
        for index, card in enumerate(cards):
            key = normalize_for_match(card.title)
            if key:
                groups.setdefault(key, []).append(index)
        for indices in groups.values():
            if len(indices) < 2:
                continue
            target = indices[0]
            for index in indices[1:]:
                report.issues.append(
                    QualityIssue(
                        type=IssueType.DUPLICATE_TITLE,
                        severity=Severity.HIGH,
                        card_index=index,
                        related_card_index=target,
                        message=f'Title "{cards[index].title}" duplicates card {target}',
                        suggestion="Merge with the first card carrying this title",
                    )
                )
                queue_merge(index, target, "Duplicate title")

    def _detect_duplicate_content(self, cards: Sequence[CardDraft], report: QualityReport, queue_merge) -> None:
        threshold = self.settings.similarity_threshold
        high = self.settings.high_similarity_threshold
        for i, j in itertools.combinations(range(len(cards)), 2):
            ratio = self.similarity.similarity(cards[i], cards[j])
            if ratio < threshold:
                continue
            severity = Severity.HIGH if ratio >= high else Severity.MEDIUM
            report.issues.append(
                QualityIssue(
                    type=IssueType.DUPLICATE_CONTENT,
                    severity=severity,
                    card_index=j,
                    related_card_index=i,
                    message=f"{ratio:.0%} of the content overlaps with card {i}",
                    suggestion="Merge the cards" if severity is Severity.HIGH else "Review the overlap",
                )
            )
            if severity is Severity.HIGH:
                queue_merge(j, i, f"Duplicate content ({ratio:.0%})")

    def _detect_weak_content(self, cards: Sequence[CardDraft], report: QualityReport) -> None:
        min_description = self.settings.min_description_length
        min_blocks = self.settings.min_blocks_per_card
        for index, card in enumerate(cards):
            suggestions: List[str] = []
            if len(card.description.strip()) < min_description:
                suggestion = "Write a description of what the feature does"
                report.issues.append(
                    QualityIssue(
                        type=IssueType.MISSING_DESCRIPTION,
                        severity=Severity.LOW,
                        card_index=index,
                        message="Description is missing or too short",
                        suggestion=suggestion,
                    )
                )
                suggestions.append(suggestion)
            blocks = card.block_count()
            if blocks < min_blocks:
                suggestion = "Add related files or merge into a broader card"
                report.issues.append(
                    QualityIssue(
                        type=IssueType.SINGLE_FILE_CARD,
                        severity=Severity.MEDIUM,
                        card_index=index,
                        message=f"Card has only {blocks} block(s)",
                        suggestion=suggestion,
                    )
                )
                suggestions.append(suggestion)
            if suggestions:
                report.cards_to_improve.append(ImprovementPlan(index=index, suggestions=suggestions))

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------
    @staticmethod
    def _consolidate_removals(report: QualityReport) -> List[int]:
        duplicate_titles = {i.card_index for i in report.issues if i.type is IssueType.DUPLICATE_TITLE}
        duplicate_content = {
            i.card_index
            for i in report.issues
            if i.type is IssueType.DUPLICATE_CONTENT and i.severity is Severity.HIGH
        }
        return sorted(duplicate_titles & duplicate_content)
