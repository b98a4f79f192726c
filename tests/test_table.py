from __future__ import annotations

from pathlib import Path

import pytest

from nersetti.engine.actions import AbilityChoice, DiscardToDungeonAction, FlipKingAction, PlayCardAction, ReactAction
from nersetti.engine.ai import GreedyBot
from nersetti.engine.errors import IllegalAction, UnknownCard
from nersetti.engine.serialize import action_from_dict, action_to_dict, describe_card
from nersetti.engine.state import RoundSetup
from nersetti.paths import get_paths
from nersetti.services.content import ContentService
from nersetti.services.table import Table
from nersetti.services.telemetry import TelemetryService

SIGNATURES = (("FlagBearer", "Stranger", "Aegis"), ("Nakturn", "Lockshift", "Bard"))
SETUP = RoundSetup(
    hands=(("Zealot", "Warden", "Soldier", "Elder"), ("Mystic", "Sentry", "Judge", "Fool")),
    accused="Oracle",
)


def _load_catalog():
    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    return content.load_catalog()


def _open(tmp_path: Path) -> tuple[Table, TelemetryService]:
    telemetry = TelemetryService(tmp_path / "journal.jsonl")
    table = Table.open(_load_catalog(), 13, signatures=SIGNATURES, setups=[SETUP], telemetry=telemetry)
    return table, telemetry


def test_table_journals_events(tmp_path: Path) -> None:
    table, telemetry = _open(tmp_path)
    records = telemetry.read()
    assert records[0]["type"] == "table_opened"
    assert records[0]["payload"] == {"seed": 13}
    types = [r["type"] for r in records]
    assert "MATCH_CREATED" in types
    assert "ROUND_STARTED" in types
    assert all("ts" in r for r in records)

    res = table.submit(DiscardToDungeonAction(0, 0))
    assert res.ok
    assert telemetry.read()[-1]["type"] == "DUNGEON_FILLED"


def test_rejected_action_is_journaled(tmp_path: Path) -> None:
    table, telemetry = _open(tmp_path)
    res = table.submit(FlipKingAction(0))
    assert not res.ok
    last = telemetry.read()[-1]
    assert last["type"] == "action_rejected"
    assert last["payload"]["kind"] == "illegal_action"  # type: ignore[index]
    assert last["payload"]["action"] == {"type": "flip_king", "player": 0, "rally": None}  # type: ignore[index]


def test_unknown_card_propagates_and_is_journaled(tmp_path: Path) -> None:
    table, telemetry = _open(tmp_path)
    with pytest.raises(UnknownCard):
        table.submit(ReactAction(1, "Herald"))
    last = telemetry.read()[-1]
    assert last["type"] == "engine_error"
    assert last["payload"]["kind"] == "unknown_card"  # type: ignore[index]


def test_pull_events_hides_private_events(tmp_path: Path) -> None:
    table, _ = _open(tmp_path)
    mine = table.pull_events(0)
    dealt = [ev for ev in mine if ev["type"] == "HAND_DEALT"]
    assert len(dealt) == 1 and dealt[0]["cards"] == ["Zealot", "Warden", "Soldier", "Elder"]
    assert all(ev.get("to", 0) == 0 for ev in mine)
    assert table.pull_events(0) == []

    table.submit(DiscardToDungeonAction(1, 0))
    seen_by_0 = table.pull_events(0)
    assert [ev.get("card") for ev in seen_by_0 if ev["type"] == "DUNGEON_FILLED"] == [None]
    seen_by_1 = table.pull_events(1)
    assert "Mystic" in [ev.get("card") for ev in seen_by_1 if ev["type"] == "DUNGEON_FILLED"]


def test_view_hides_opponent_hand(tmp_path: Path) -> None:
    table, _ = _open(tmp_path)
    view = table.view(0)
    assert view["me"]["hand"] == ["Zealot", "Warden", "Soldier", "Elder"]  # type: ignore[index]
    opponent = view["opponent"]
    assert "hand" not in opponent  # type: ignore[operator]
    assert opponent["hand_count"] == 4  # type: ignore[index]
    assert opponent["has_dungeon"] is False  # type: ignore[index]


def test_submit_dict_and_legal_actions(tmp_path: Path) -> None:
    table, _ = _open(tmp_path)
    options = table.legal_actions(0)
    assert {"type": "discard", "player": 0, "hand_index": 0} in options
    assert all(o["type"] == "discard" for o in options)

    res = table.submit_dict({"type": "discard", "player": 0, "hand_index": 3})
    assert res.ok
    assert table.state.players[0].dungeon == "Elder"

    with pytest.raises(IllegalAction):
        table.submit_dict({"type": "discard", "player": 1})
    with pytest.raises(IllegalAction):
        table.submit_dict({"type": "shout", "player": 1})


def test_nested_choice_survives_the_codec() -> None:
    action = PlayCardAction(1, 2, with_ability=True, choice=AbilityChoice.copy(0, AbilityChoice.name_card("Queen")))
    payload = action_to_dict(action)
    assert payload["choice"]["inner"]["card"] == "Queen"  # type: ignore[index]
    assert action_from_dict(payload) == action


def test_describe_card() -> None:
    info = describe_card(_load_catalog(), "KingsHand")
    assert info["display_name"] == "King's Hand"
    assert info["base_value"] == 8
    assert "Reaction" in info["keywords"]  # type: ignore[operator]


def test_bots_finish_a_match_at_the_table(tmp_path: Path) -> None:
    telemetry = TelemetryService(tmp_path / "journal.jsonl")
    table = Table.open(_load_catalog(), 77, telemetry=telemetry)
    state = table.run_bots((GreedyBot(seed=1), GreedyBot(seed=2)))
    assert state.phase == "game_over"
    last = telemetry.read()[-1]
    assert last["type"] == "table_closed"
    assert last["payload"] == {"phase": "game_over", "winner": state.winner}
