from __future__ import annotations

import json
from pathlib import Path

import pytest

from nersetti.engine.abilities import RULES
from nersetti.engine.errors import UnknownCard
from nersetti.paths import get_paths
from nersetti.services.content import ContentError, ContentService


def _load_catalog():
    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    return content.load_catalog()


def _write_cards(tmp_path: Path, raw: object) -> ContentService:
    (tmp_path / "cards.json").write_text(json.dumps(raw), encoding="utf-8")
    return ContentService(tmp_path, get_paths().schema_dir)


def _raw_cards() -> dict[str, object]:
    return json.loads((get_paths().data_dir / "cards.json").read_text(encoding="utf-8"))


def test_content_schemas_validate() -> None:
    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    content.validate_all()


def test_catalog_is_complete() -> None:
    catalog = _load_catalog()
    assert len(catalog.cards) == 28
    assert set(catalog.cards) == set(RULES)
    assert len(catalog.base_deck) == 22
    assert catalog.get("Queen").has("Royalty")
    assert catalog.get("KingsHand").reaction_ability() is not None
    assert catalog.reaction_cards() == ["Assassin", "Stranger", "KingsHand"]


def test_unknown_card_fails_loudly() -> None:
    catalog = _load_catalog()
    with pytest.raises(UnknownCard):
        catalog.get("Herald")
    with pytest.raises(LookupError):
        catalog.get("")


def test_schema_violation_is_reported(tmp_path: Path) -> None:
    raw = _raw_cards()
    del raw["cards"][0]["base_value"]  # type: ignore[index]
    content = _write_cards(tmp_path, raw)
    with pytest.raises(ContentError, match="Schema validation failed"):
        content.load_catalog()


def test_card_without_rules_is_rejected(tmp_path: Path) -> None:
    raw = _raw_cards()
    raw["cards"].append(  # type: ignore[union-attr]
        {"name": "Herald", "display_name": "Herald", "base_value": 6, "keywords": [], "abilities": []}
    )
    content = _write_cards(tmp_path, raw)
    with pytest.raises(ContentError, match="Cards without rules: Herald"):
        content.load_catalog()


def test_deck_list_must_reference_catalog(tmp_path: Path) -> None:
    raw = _raw_cards()
    raw["base_deck"].append("Spy")  # type: ignore[union-attr]
    content = _write_cards(tmp_path, raw)
    with pytest.raises(ContentError, match="unknown card: Spy"):
        content.load_catalog()


def test_missing_content_file(tmp_path: Path) -> None:
    content = ContentService(tmp_path, get_paths().schema_dir)
    with pytest.raises(ContentError, match="Missing content file"):
        content.load_catalog()
