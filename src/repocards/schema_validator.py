from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping

from repocards.errors import CardValidationError
from repocards.models import CardDraft

LOGGER = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of validating a single card draft."""

    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


class SchemaValidator:
    """Fail-closed gate between normalized provider output and the pipeline."""

    def __init__(self, *, max_files_per_screen: int | None = None) -> None:
        self.max_files_per_screen = max_files_per_screen

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def validate(self, payload: Any) -> List[CardDraft]:
        """Return drafts for ``payload`` or raise ``CardValidationError``."""

        if not isinstance(payload, Mapping):
            raise CardValidationError(["Payload must be an object with a 'cards' list"])
        cards = payload.get("cards")
        if not isinstance(cards, list):
            raise CardValidationError(["Payload 'cards' must be a list"])
        if not cards:
            raise CardValidationError(["Provider returned no usable cards"])

        errors: List[str] = []
        for index, card in enumerate(cards):
            result = self.validate_card(card)
            errors.extend(f"cards[{index}]: {message}" for message in result.errors)
            for message in result.warnings:
                LOGGER.warning("cards[%s]: %s", index, message)
        if errors:
            raise CardValidationError(errors)
        return [CardDraft.from_dict(card) for card in cards]

    def validate_card(self, card: Any) -> ValidationResult:
        result = ValidationResult()
        if not isinstance(card, Mapping):
            result.add_error("Card must be an object")
            return result
        self._check_title(card, result)
        self._check_category(card, result)
        self._check_tags(card, result)
        self._check_optional_strings(card, result)
        self._check_screens(card, result)
        return result

    # ------------------------------------------------------------------
    # Card fields
    # ------------------------------------------------------------------
    def _check_title(self, card: Mapping, result: ValidationResult) -> None:
        if not _non_empty_str(card.get("title")):
            result.add_error("Missing or empty title")

    def _check_category(self, card: Mapping, result: ValidationResult) -> None:
        if not _non_empty_str(card.get("category")):
            result.add_error("Missing or empty category")
        description = card.get("description", "")
        if description is not None and not isinstance(description, str):
            result.add_error("Description must be a string")

    def _check_tags(self, card: Mapping, result: ValidationResult) -> None:
        tags = card.get("tags")
        if tags is None:
            return
        if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
            result.add_error("Tags must be a list of strings")

    def _check_optional_strings(self, card: Mapping, result: ValidationResult) -> None:
        for key in ("tech", "language"):
            value = card.get(key)
            if value is not None and not isinstance(value, str):
                result.add_error(f"Field '{key}' must be a string")

    # ------------------------------------------------------------------
    # Screens
    # ------------------------------------------------------------------
    def _check_screens(self, card: Mapping, result: ValidationResult) -> None:
        screens = card.get("screens")
        if not isinstance(screens, list) or not screens:
            result.add_error("Card must have at least one screen")
            return
        for j, screen in enumerate(screens):
            if not isinstance(screen, Mapping):
                result.add_error(f"screens[{j}] must be an object")
                continue
            if not _non_empty_str(screen.get("name")):
                result.add_error(f"screens[{j}] is missing a name")
            files = screen.get("files")
            if not isinstance(files, list) or not any(_non_empty_str(path) for path in files):
                result.add_error(f"screens[{j}] must list at least one file")
                continue
            if not all(_non_empty_str(path) for path in files):
                result.add_error(f"screens[{j}] has non-string or empty file entries")
            if self.max_files_per_screen and len(files) > self.max_files_per_screen:
                result.add_warning(
                    f"screens[{j}] lists {len(files)} files (over {self.max_files_per_screen}); it will be split"
                )
