from __future__ import annotations

import json

from repocards.cli.cards import main


def _write(path, data):
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    return str(path)


def test_normalize_writes_canonical_cards(tmp_path):
    raw = _write(tmp_path / "raw.json", {"cards": [{"name": "**Auth**", "screens": [{"files": ["a.ts"]}]}]})
    out = tmp_path / "normalized.json"

    assert main(["normalize", raw, "-o", str(out), "--validate"]) == 0

    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["cards"][0]["title"] == "Auth"
    assert data["cards"][0]["screens"][0]["name"] == "Screen 1"


def test_normalize_validate_fails_on_empty_output(tmp_path, capsys):
    raw = _write(tmp_path / "raw.json", {"cards": [{"title": "No screens"}]})
    assert main(["normalize", raw, "--validate"]) == 1
    assert "no usable cards" in capsys.readouterr().err


def test_audit_apply(tmp_path):
    cards = {
        "cards": [
            {"title": "API de Usuários", "description": "User endpoints and services.",
             "screens": [{"name": "Backend", "files": ["src/users/a.ts", "src/users/b.ts"]}]},
            {"title": "Interface de Usuários", "description": "User pages.",
             "screens": [{"name": "Frontend", "files": ["web/users/a.tsx", "web/users/b.tsx"]}]},
        ]
    }
    source = _write(tmp_path / "cards.json", cards)
    report_path = tmp_path / "report.json"
    corrected_path = tmp_path / "corrected.json"

    assert main(["audit", source, "--report", str(report_path), "--apply", str(corrected_path)]) == 0

    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["issues"][0]["type"] == "same_feature_split"
    corrected = json.loads(corrected_path.read_text(encoding="utf-8"))["cards"]
    assert [card["title"] for card in corrected] == ["Sistema de Usuários"]
    assert [screen["name"] for screen in corrected[0]["screens"]] == ["Backend", "Frontend"]


def test_generate_without_provider(tmp_path):
    scan = {
        "files": [
            {"path": "src/auth/login.ts", "layer": "Backend", "snippet": "login"},
            {"path": "src/auth/logout.ts", "layer": "Backend", "snippet": "logout"},
        ],
        "groups": [{"key": "auth", "files": ["src/auth/login.ts", "src/auth/logout.ts"]}],
    }
    scan_path = _write(tmp_path / "scan.json", scan)
    out = tmp_path / "cards.json"

    assert main(["generate", scan_path, "--no-provider", "-o", str(out)]) == 0

    stored = json.loads(out.read_text(encoding="utf-8"))
    assert [card["title"] for card in stored] == ["Sistema de Autenticação"]
    assert [block["route"] for block in stored[0]["screens"][0]["blocks"]] == ["src/auth/login.ts", "src/auth/logout.ts"]


def test_missing_input_returns_error(tmp_path):
    assert main(["audit", str(tmp_path / "missing.json")]) == 1
