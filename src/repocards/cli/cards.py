from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from repocards.config import load_settings
from repocards.errors import CardValidationError, RepoCardsError
from repocards.features import FeatureClassifier
from repocards.merge import MergeResolver, correct_until_stable
from repocards.models import CardDraft
from repocards.normalize import normalize_provider_output
from repocards.pipeline import CardPipeline, JsonFileStore
from repocards.quality import QualityAuditor
from repocards.schema_validator import SchemaValidator
from repocards.schemas import ScanResult

LOGGER = logging.getLogger("repocards.cli")


def _read_json(path: str) -> Any:
    if path == "-":
        return json.load(sys.stdin)
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _write_json(data: Any, path: str | None) -> None:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    if not path or path == "-":
        print(text)
        return
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(text + "\n", encoding="utf-8")
    print(f"Wrote {out}")


def _load_cards(path: str) -> list[CardDraft]:
    data = _read_json(path)
    raw = data.get("cards", []) if isinstance(data, dict) else data
    return [CardDraft.from_dict(card) for card in raw]


# ----------------------------------------------------------------------
# Subcommands
# ----------------------------------------------------------------------
def cmd_normalize(args: argparse.Namespace) -> int:
    normalized = normalize_provider_output(_read_json(args.input))
    if args.validate:
        SchemaValidator().validate(normalized)
    _write_json(normalized, args.output)
    return 0


def cmd_audit(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    classifier = FeatureClassifier(settings.features)
    cards = _load_cards(args.input)
    auditor = QualityAuditor(settings.quality, classifier)
    report = auditor.analyze(cards)
    _write_json(report.to_dict(), args.report)

    if args.apply:
        result = correct_until_stable(
            cards,
            auditor,
            MergeResolver(classifier),
            report=report,
            max_iterations=settings.quality.max_iterations,
        )
        _write_json({"cards": [card.to_dict() for card in result.corrected_cards]}, args.apply)
        print(
            f"{len(cards)} cards -> {len(result.corrected_cards)} "
            f"({result.merges_applied} merged, {result.cards_removed} removed, {result.passes} passes)"
        )
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    settings = load_settings(args.config)
    scan = ScanResult.model_validate(_read_json(args.scan))
    store = JsonFileStore(args.output) if args.output else None
    pipeline = CardPipeline(settings, store=store, use_provider=not args.no_provider)
    result = pipeline.run(scan.files, scan.groups, on_log=lambda line: print(f"[cards] {line}", file=sys.stderr))
    if store is None:
        _write_json([record.model_dump() for record in result.records], None)
    print(
        f"Generated {len(result.records)} cards "
        f"({result.correction.merges_applied} merged, {result.correction.cards_removed} removed, "
        f"{result.report.issues_found} issues)",
        file=sys.stderr,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repocards",
        description="Generate and audit documentation cards for a scanned repository",
    )
    parser.add_argument("--config", default=None, help="Path to pipeline policy YAML")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_norm = sub.add_parser("normalize", help="Normalize raw provider JSON into card drafts")
    p_norm.add_argument("input", help="Provider JSON file ('-' for stdin)")
    p_norm.add_argument("-o", "--output", default=None, help="Output path (default: stdout)")
    p_norm.add_argument("--validate", action="store_true", help="Fail when the result breaks the card schema")
    p_norm.set_defaults(func=cmd_normalize)

    p_audit = sub.add_parser("audit", help="Report duplicated, split and weak cards")
    p_audit.add_argument("input", help="Cards JSON ({'cards': [...]} or a list)")
    p_audit.add_argument("--report", default=None, help="Write the quality report here (default: stdout)")
    p_audit.add_argument("--apply", default=None, help="Apply merges/removals and write corrected cards here")
    p_audit.set_defaults(func=cmd_audit)

    p_gen = sub.add_parser("generate", help="Run the full pipeline over a scan file")
    p_gen.add_argument("scan", help="Scanner JSON with 'files' and 'groups'")
    p_gen.add_argument("-o", "--output", default=None, help="JSON store path (default: print records)")
    p_gen.add_argument("--no-provider", action="store_true", help="Build cards from proposed groups only")
    p_gen.set_defaults(func=cmd_generate)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except CardValidationError as exc:
        LOGGER.error("%s", exc)
        for message in exc.errors:
            print(f"  - {message}", file=sys.stderr)
        return 1
    except (RepoCardsError, FileNotFoundError, ValueError) as exc:
        LOGGER.error("%s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
