from __future__ import annotations

import pytest

from repocards.models import BlockType, CardDraft, ContentBlock, ScreenDraft
from repocards.similarity import SimilarityEngine, content_keys

similarity = SimilarityEngine().similarity


def _built(title, routes):
    blocks = [
        ContentBlock(id=f"{title}-{i}", type=BlockType.CODE, content="", order=i, route=r, title=r.rsplit("/", 1)[-1])
        for i, r in enumerate(routes)
    ]
    return CardDraft(title=title, screens=[ScreenDraft(name="Backend", files=list(routes), blocks=blocks)])


def _files(title, paths):
    return CardDraft(title=title, screens=[ScreenDraft(name="Backend", files=list(paths))])


def test_similarity_is_symmetric():
    a = _built("A", ["src/a.ts", "src/b.ts", "src/c.ts"])
    b = _built("B", ["src/b.ts", "src/c.ts", "src/d.ts", "src/e.ts"])
    engine = SimilarityEngine()
    assert engine.similarity(a, b) == engine.similarity(b, a)


def test_card_is_identical_to_itself():
    card = _built("A", ["src/a.ts"])
    assert similarity(card, card) == 1.0


def test_empty_card_scores_zero():
    empty = CardDraft(title="Empty", screens=[ScreenDraft(name="Backend")])
    card = _built("A", ["src/a.ts"])
    assert similarity(empty, card) == 0.0
    assert similarity(card, empty) == 0.0
    assert similarity(empty, empty) == 0.0


def test_jaccard_over_routes_and_titles():
    a = _files("A", ["src/a.ts", "src/b.ts"])
    b = _files("B", ["src/a.ts", "src/c.ts"])
    # {srcats, ats, srcbts, bts} vs {srcats, ats, srccts, cts}
    assert similarity(a, b) == pytest.approx(2 / 6)


def test_unbuilt_and_built_cards_share_keys():
    paths = ["src/users/controller.ts", "src/users/service.ts"]
    assert content_keys(_files("A", paths)) == content_keys(_built("A", paths))


def test_keys_ignore_case_and_diacritics():
    a = _built("A", ["src/Usuários.ts"])
    b = _built("B", ["SRC/usuarios.ts"])
    assert similarity(a, b) == 1.0
