from __future__ import annotations

import json
from collections import Counter
from pathlib import Path
from typing import Mapping

from jsonschema import Draft202012Validator

from nersetti.engine.abilities import RULES
from nersetti.engine.types import AbilityDescriptor, CardCatalog, CardDefinition, Keyword


class ContentError(RuntimeError):
    pass


def _load_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ContentError(f"Missing content file: {path}") from e
    except json.JSONDecodeError as e:
        raise ContentError(f"Invalid JSON in {path}: {e}") from e


def validate_json(instance: object, schema: object, *, context: str) -> None:
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(instance), key=lambda e: list(e.path))
    if errors:
        lines = [f"Schema validation failed for {context}:"]
        for err in errors[:10]:
            loc = "/".join(str(p) for p in err.absolute_path)
            lines.append(f"- {loc}: {err.message}")
        raise ContentError("\n".join(lines))


def _require_str(obj: Mapping[str, object], key: str) -> str:
    v = obj.get(key)
    if not isinstance(v, str):
        raise ContentError(f"Expected string for {key}")
    return v


def _require_int(obj: Mapping[str, object], key: str) -> int:
    v = obj.get(key)
    if not isinstance(v, int):
        raise ContentError(f"Expected int for {key}")
    return v


def _require_list(obj: Mapping[str, object], key: str) -> list[object]:
    v = obj.get(key)
    if not isinstance(v, list):
        raise ContentError(f"Expected list for {key}")
    return v


def _str_list(obj: Mapping[str, object], key: str) -> tuple[str, ...]:
    return tuple(item for item in _require_list(obj, key) if isinstance(item, str))


def _parse_keywords(raw: object) -> tuple[Keyword, ...]:
    if not isinstance(raw, list):
        raise ContentError("keywords must be a list")
    kws: list[Keyword] = []
    for item in raw:
        if not isinstance(item, str):
            continue
        # trust schema for allowed values
        kws.append(item)  # type: ignore[arg-type]
    return tuple(kws)


def _parse_ability(raw: Mapping[str, object]) -> AbilityDescriptor:
    reacts = raw.get("reacts_to", [])
    return AbilityDescriptor(
        trigger=_require_str(raw, "trigger"),  # type: ignore[arg-type]
        shape=_require_str(raw, "shape"),  # type: ignore[arg-type]
        text=_require_str(raw, "text"),
        choice=raw.get("choice", "none"),  # type: ignore[arg-type]
        stoppable=bool(raw.get("stoppable", False)),
        reacts_to=tuple(reacts) if isinstance(reacts, list) else (),  # type: ignore[arg-type]
    )


def _parse_card(item: Mapping[str, object]) -> CardDefinition:
    abilities = tuple(
        _parse_ability(ab) for ab in _require_list(item, "abilities") if isinstance(ab, dict)
    )
    return CardDefinition(
        name=_require_str(item, "name"),
        display_name=_require_str(item, "display_name"),
        base_value=_require_int(item, "base_value"),
        keywords=_parse_keywords(item.get("keywords", [])),
        abilities=abilities,
    )


def check_catalog(catalog: CardCatalog) -> None:
    """Cross-reference checks the schema cannot express."""
    for name in (*catalog.base_deck, *catalog.base_army, *catalog.signature_cards):
        if name not in catalog.cards:
            raise ContentError(f"Deck list references unknown card: {name}")
    missing = [name for name in catalog.cards if name not in RULES]
    if missing:
        raise ContentError(f"Cards without rules: {', '.join(sorted(missing))}")
    for card in catalog.cards.values():
        if card.reaction_ability() is not None and not card.has("Reaction"):
            raise ContentError(f"{card.name} reacts but lacks the Reaction keyword")
        if sum(1 for ab in card.abilities if ab.trigger == "on_play") > 1:
            raise ContentError(f"{card.name} declares more than one on_play ability")
    doubled = [name for name, n in Counter(catalog.signature_cards).items() if n > 1]
    if doubled:
        raise ContentError(f"Duplicate signature cards: {', '.join(doubled)}")


class ContentService:
    def __init__(self, data_dir: Path, schema_dir: Path) -> None:
        self._data_dir = data_dir
        self._schema_dir = schema_dir

    def load_catalog(self) -> CardCatalog:
        cards_path = self._data_dir / "cards.json"
        schema_path = self._schema_dir / "cards.schema.json"
        raw = _load_json(cards_path)
        schema = _load_json(schema_path)
        validate_json(raw, schema, context=str(cards_path))

        if not isinstance(raw, dict):
            raise ContentError("cards.json must be an object")

        cards: dict[str, CardDefinition] = {}
        for item in _require_list(raw, "cards"):
            if not isinstance(item, dict):
                continue
            card = _parse_card(item)
            if card.name in cards:
                raise ContentError(f"Duplicate card: {card.name}")
            cards[card.name] = card

        catalog = CardCatalog(
            cards=cards,
            base_deck=_str_list(raw, "base_deck"),
            base_army=_str_list(raw, "base_army"),
            signature_cards=_str_list(raw, "signature_cards"),
        )
        check_catalog(catalog)
        return catalog

    def validate_all(self) -> None:
        # Load is validation (schema + parse + cross references)
        _ = self.load_catalog()
