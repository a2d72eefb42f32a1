from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from repocards.config import PipelineSettings
from repocards.errors import ProviderPayloadError
from repocards.pipeline import CardPipeline, JsonFileStore
from repocards.provider import ProviderClient
from repocards.schemas import FileMeta

FILES = [
    {"path": "src/users/controller.ts", "layer": "Backend", "featureName": "user", "size": 10, "snippet": "c"},
    {"path": "src/users/service.ts", "layer": "Backend", "featureName": "user", "size": 10, "snippet": "s"},
    {"path": "web/pages/users.tsx", "layer": "Frontend", "featureName": "user", "size": 10, "snippet": "p"},
    {"path": "web/components/UserCard.tsx", "layer": "Frontend", "featureName": "user", "size": 10, "snippet": "u"},
    {"path": "src/payments/stripe.ts", "layer": "Backend", "featureName": "payment", "size": 10, "snippet": "st"},
    {"path": "src/payments/invoice.ts", "layer": "Backend", "featureName": "payment", "size": 10, "snippet": "i"},
]

PROVIDER_BODY = {
    "cards": [
        {
            "title": "API de Usuários",
            "description": "REST endpoints for user accounts.",
            "tags": ["user", "rest"],
            "screens": [{"name": "Backend", "files": ["src/users/controller.ts", "src/users/service.ts"]}],
        },
        {
            "title": "Interface de Usuários",
            "description": "Pages and components that show user profiles and lists.",
            "tags": ["usuario", "frontend"],
            "screens": [{"name": "Frontend", "files": ["web/pages/users.tsx", "web/components/UserCard.tsx"]}],
        },
        {
            "title": "Pagamentos",
            "description": "Stripe checkout and invoices.",
            "tags": ["payment"],
            "screens": [{"name": "Backend", "files": ["src/payments/stripe.ts", "src/payments/invoice.ts"]}],
        },
    ]
}


class _FakeStore:
    def __init__(self):
        self.bulk_calls = []
        self.created = []

    def create(self, record):
        self.created.append(record)
        return record

    def bulk_create(self, records):
        self.bulk_calls.append(list(records))
        return records


class _StubCompletions:
    def __init__(self, bodies):
        self.bodies = list(bodies)
        self.calls = 0

    def create(self, **kwargs):
        self.calls += 1
        message = SimpleNamespace(content=self.bodies.pop(0))
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _pipeline(bodies, store=None):
    completions = _StubCompletions(bodies)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    settings = PipelineSettings()
    provider = ProviderClient(settings.provider, settings.prompt, client=client)
    return CardPipeline(settings, provider=provider, store=store), completions


def test_end_to_end_merges_split_feature():
    store = _FakeStore()
    pipeline, completions = _pipeline([json.dumps(PROVIDER_BODY)], store=store)
    lines = []

    result = pipeline.run(FILES, on_log=lines.append)

    assert completions.calls == 1
    assert [record.title for record in result.records] == ["Sistema de Usuários", "Pagamentos"]
    users = result.records[0]
    assert [screen.name for screen in users.screens] == ["Backend", "Frontend"]
    assert [block.route for block in users.screens[1].blocks] == ["web/pages/users.tsx", "web/components/UserCard.tsx"]
    assert users.description == "Pages and components that show user profiles and lists."
    assert users.tags == ["Usuários", "rest", "frontend"]
    assert result.correction.merges_applied == 1
    assert result.correction.passes == 1
    assert store.bulk_calls == [result.records]
    assert store.created == []
    assert any(line.startswith("Merged") for line in lines)


def test_uncovered_files_get_path_cards():
    body = {"cards": [PROVIDER_BODY["cards"][2]]}
    pipeline, _ = _pipeline([json.dumps(body)])
    result = pipeline.run(FILES)

    routes = {block.route for record in result.records for screen in record.screens for block in screen.blocks}
    assert routes == {meta["path"] for meta in FILES}


def test_provider_failure_stores_nothing():
    store = _FakeStore()
    pipeline, completions = _pipeline(["nope", "still nope"], store=store)
    with pytest.raises(ProviderPayloadError):
        pipeline.run(FILES)
    assert completions.calls == 2
    assert store.bulk_calls == []


def test_provider_free_run_uses_proposed_groups(tmp_path):
    store = JsonFileStore(tmp_path / "out" / "cards.json")
    pipeline = CardPipeline(store=store, use_provider=False)
    groups = [
        {"key": "user", "files": [f["path"] for f in FILES[:4]]},
        {"key": "payment", "files": [f["path"] for f in FILES[4:]]},
    ]
    result = pipeline.run([FileMeta.model_validate(f) for f in FILES], groups)

    assert [record.title for record in result.records] == ["Sistema de Usuários", "Sistema de Pagamentos"]
    stored = json.loads(store.path.read_text(encoding="utf-8"))
    assert [card["title"] for card in stored] == ["Sistema de Usuários", "Sistema de Pagamentos"]
    assert stored[0]["card_type"] == "codigos"


def test_json_store_appends(tmp_path):
    store = JsonFileStore(tmp_path / "cards.json")
    pipeline = CardPipeline(use_provider=False)
    records = pipeline.run(FILES).records
    store.bulk_create(records)
    store.create(records[0])
    assert len(json.loads(store.path.read_text(encoding="utf-8"))) == len(records) + 1
