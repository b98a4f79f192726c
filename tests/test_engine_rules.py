from __future__ import annotations

from collections.abc import Sequence

import pytest

from nersetti.engine.abilities import PlayContext, can_activate
from nersetti.engine.actions import (
    AbilityChoice,
    ChangeKingFacetAction,
    ChooseFirstPlayerAction,
    ChooseSuccessorAction,
    DeclineReactionAction,
    DiscardToDungeonAction,
    EndMusterAction,
    FlipKingAction,
    PlayCardAction,
    RecruitAction,
    SelectCardsAction,
)
from nersetti.engine.errors import InvariantViolation
from nersetti.engine.match import apply_action, legal_actions, new_match, step
from nersetti.engine.serialize import snapshot, view_for
from nersetti.engine.state import CourtEntry, GameState, MatchConfig, RoundSetup
from nersetti.paths import get_paths
from nersetti.services.content import ContentService

SIGNATURES = (("FlagBearer", "Stranger", "Aegis"), ("Nakturn", "Lockshift", "Bard"))


def _load_catalog():
    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    return content.load_catalog()


def _deal(
    play0: Sequence[str],
    play1: Sequence[str],
    *,
    accused: str = "Oracle",
    dungeons: tuple[str, str] = ("Zealot", "Mystic"),
    successors: tuple[str, str] = ("Warden", "Sentry"),
    first: int = 0,
    config: MatchConfig | None = None,
) -> GameState:
    """Run discard, first-player, muster and setup so player `first` is on turn with `playN` in hand."""
    plays = (play0, play1)
    hands = tuple((dungeons[p], successors[p], *plays[p]) for p in (0, 1))
    setup = RoundSetup(hands=hands, accused=accused)  # type: ignore[arg-type]
    state = new_match(_load_catalog(), 11, config, signatures=SIGNATURES, setups=[setup])
    assert step(state, DiscardToDungeonAction(0, 0)).ok
    assert step(state, DiscardToDungeonAction(1, 0)).ok
    assert step(state, ChooseFirstPlayerAction(state.chooser, first)).ok
    assert step(state, EndMusterAction(1 - first)).ok
    assert step(state, EndMusterAction(first)).ok
    assert step(state, ChooseSuccessorAction(0, 0)).ok
    assert step(state, ChooseSuccessorAction(1, 0)).ok
    assert state.phase == "play"
    assert state.current_player == first
    return state


def _types(events: Sequence[dict[str, object]]) -> list[object]:
    return [ev["type"] for ev in events]


def _board(state: GameState) -> dict[str, object]:
    snap = snapshot(state)
    del snap["action_log"]
    return snap


def test_round_setup_deals_fixed_hands() -> None:
    state = _deal(["Fool", "Queen"], ["Elder", "Judge"])
    assert state.accused == "Oracle"
    assert state.players[0].hand == ["Fool", "Queen"]
    assert state.players[0].dungeon == "Zealot"
    assert state.players[1].successor == "Sentry"
    assert len(state.set_aside) == 22 - 1 - 8
    assert state.players[0].army == ["Elder", "Inquisitor", "Soldier", "Judge", "Oathbound", *SIGNATURES[0]]


def test_queen_disgraces_every_other_court_card() -> None:
    state = _deal(["Fool", "Queen", "Soldier"], ["Elder", "Judge", "Inquisitor"])
    assert step(state, PlayCardAction(player=0, index=0, with_ability=False)).ok
    assert step(state, PlayCardAction(player=1, index=0, with_ability=False)).ok

    res = step(state, PlayCardAction(player=0, index=0))
    assert res.ok
    assert [e.card for e in state.court] == ["Fool", "Elder", "Queen"]
    assert [e.disgraced for e in state.court] == [True, True, False]
    assert [e for e in state.court[:-1] if not e.disgraced] == []
    disgraced = [ev for ev in res.events if ev["type"] == "CARDS_DISGRACED"]
    assert disgraced[0]["cards"] == ["Fool", "Elder"]
    assert state.current_player == 1


def test_queen_on_empty_court_is_a_no_op() -> None:
    state = _deal(["Queen", "Soldier"], ["Elder", "Judge"])
    res = step(state, PlayCardAction(player=0, index=0))
    assert res.ok
    assert [ev["cards"] for ev in res.events if ev["type"] == "CARDS_DISGRACED"] == [[]]
    assert not state.court[0].disgraced


def test_inquisitor_hit_moves_card_to_antechamber() -> None:
    state = _deal(["Inquisitor", "Soldier"], ["Judge", "Elder", "Fool"], accused="KingsHand")
    res = step(state, PlayCardAction(0, 0, choice=AbilityChoice.name_card("Judge")))
    assert res.ok
    assert "REACTION_WINDOW_OPENED" not in _types(res.events)
    hit = [ev for ev in res.events if ev["type"] == "GUESS_HIT"]
    assert hit and hit[0]["card"] == "Judge"
    assert state.players[1].hand == ["Elder", "Fool"]
    assert state.players[1].antechamber == ["Judge"]

    # The antechamber card has to be played next, whatever its value.
    options = legal_actions(state, 1)
    assert options
    assert all(isinstance(a, PlayCardAction) and a.source == "antechamber" for a in options)


def test_inquisitor_miss_leaves_opponent_untouched() -> None:
    state = _deal(["Inquisitor", "Soldier"], ["Judge", "Elder", "Fool"], accused="KingsHand")
    before = snapshot(state)["players"][1]  # type: ignore[index]
    res = step(state, PlayCardAction(0, 0, choice=AbilityChoice.name_card("Queen")))
    assert res.ok
    assert "GUESS_MISS" in _types(res.events)
    assert "GUESS_HIT" not in _types(res.events)
    assert snapshot(state)["players"][1] == before  # type: ignore[index]


def test_naming_a_visible_card_is_rejected() -> None:
    state = _deal(["Inquisitor", "Soldier"], ["Judge", "Elder"], accused="KingsHand")
    before = _board(state)
    res = step(state, PlayCardAction(0, 0, choice=AbilityChoice.name_card("Soldier")))
    assert not res.ok
    assert res.error_kind == "illegal_action"
    assert _board(state) == before


def test_low_card_cannot_be_played_on_higher_throne() -> None:
    state = _deal(["Queen", "Soldier"], ["Judge", "Elder"])
    assert step(state, PlayCardAction(0, 0)).ok
    before = _board(state)
    res = step(state, PlayCardAction(1, 0, with_ability=False))
    assert not res.ok
    assert res.error is not None and "cannot be played" in res.error
    assert _board(state) == before


def test_oathbound_forces_a_second_play() -> None:
    state = _deal(["Elder", "Oathbound", "Soldier"], ["Princess", "Judge", "Fool"])
    assert step(state, PlayCardAction(0, 0, with_ability=False)).ok
    assert step(state, PlayCardAction(1, 0, with_ability=False)).ok

    res = step(state, PlayCardAction(0, 0))
    assert res.ok
    assert state.court[1].card == "Princess" and state.court[1].disgraced
    assert state.pending_forced is not None and state.pending_forced.player == 0
    assert state.current_player == 0
    assert "FORCED_PLAY_PENDING" in _types(res.events)

    # Only a card play may follow.
    rejected = step(state, FlipKingAction(0))
    assert not rejected.ok
    assert state.pending_forced is not None

    res = step(state, PlayCardAction(0, 0, with_ability=False))
    assert res.ok
    played = [ev for ev in res.events if ev["type"] == "CARD_PLAYED"]
    assert played[0]["card"] == "Soldier" and played[0]["forced"] is True
    assert state.pending_forced is None
    assert state.current_player == 1


def test_king_flip_takes_successor_and_disgraces_throne() -> None:
    state = _deal(["Soldier", "Elder"], ["Judge", "Fool"])
    assert step(state, PlayCardAction(0, 0, with_ability=False)).ok

    res = step(state, FlipKingAction(1))
    assert res.ok
    assert state.phase == "reaction"  # an Assassin is unaccounted for
    res = step(state, DeclineReactionAction(0))
    assert res.ok
    assert "KING_FLIPPED" in _types(res.events)
    p1 = state.players[1]
    assert p1.king_flipped
    assert p1.successor is None
    assert "Sentry" in p1.hand
    assert state.court[-1].disgraced
    assert state.current_player == 0


def test_oracle_reveal_and_pick() -> None:
    state = _deal(["Oracle", "Soldier"], ["Judge", "Elder", "Fool"], accused="KingsHand")
    res = step(state, PlayCardAction(0, 0))
    assert res.ok
    sel = state.pending_selection
    assert sel is not None and sel.kind == "oracle_reveal" and sel.player == 1
    assert all(isinstance(a, SelectCardsAction) and len(a.indices) == 2 for a in legal_actions(state, 1))
    assert legal_actions(state, 0) == []

    res = step(state, SelectCardsAction(1, (1, 2)))
    assert res.ok
    revealed = [ev for ev in res.events if ev["type"] == "CARDS_REVEALED"]
    assert revealed[0]["cards"] == ["Elder", "Fool"]

    res = step(state, SelectCardsAction(0, (2,)))
    assert res.ok
    assert state.players[1].antechamber == ["Fool"]
    assert state.players[1].hand == ["Judge", "Elder"]
    assert state.current_player == 1


def test_executioner_condemns_matching_cards() -> None:
    state = _deal(["Executioner", "Elder"], ["Soldier", "Judge", "Fool"], accused="KingsHand")
    res = step(state, PlayCardAction(0, 0, choice=AbilityChoice.name_number(1)))
    assert res.ok
    assert state.players[1].condemned == ["Fool"]
    assert state.players[0].condemned == []


def test_recruit_and_charismatic_leader() -> None:
    catalog = _load_catalog()
    setup = RoundSetup(
        hands=(("Zealot", "Warden", "Soldier", "Fool"), ("Mystic", "Sentry", "Judge", "Queen")),
        accused="Oracle",
    )
    state = new_match(catalog, 5, signatures=SIGNATURES, setups=[setup])
    assert step(state, DiscardToDungeonAction(0, 0)).ok
    assert step(state, DiscardToDungeonAction(1, 0)).ok
    assert step(state, ChooseFirstPlayerAction(state.chooser, 1)).ok
    assert state.current_player == 0  # second player musters first

    res = step(state, RecruitAction(0, hand_index=2, army_card="Aegis", exhaust_card="Judge"))
    assert res.ok
    p0 = state.players[0]
    assert p0.hand == ["Warden", "Soldier", "Aegis"]
    assert "Fool" in state.set_aside
    assert p0.exhausted_army == ["Judge"]
    assert "Aegis" not in p0.army

    assert not step(state, RecruitAction(0, 0, "Elder", "Elder")).ok
    assert step(state, ChangeKingFacetAction(0, "CharismaticLeader")).ok
    assert step(state, EndMusterAction(0)).ok
    assert step(state, EndMusterAction(1)).ok
    assert step(state, ChooseSuccessorAction(0, 0)).ok
    assert view_for(state, 1)["opponent"]["successor"] == "Warden"  # type: ignore[index]
    assert view_for(state, 0)["opponent"]["successor"] is None  # type: ignore[index]


def test_actions_out_of_phase_are_rejected() -> None:
    catalog = _load_catalog()
    state = new_match(catalog, 3)
    assert state.phase == "select_signatures"
    res = step(state, FlipKingAction(0))
    assert not res.ok
    assert res.error_kind == "illegal_action"
    res = apply_action(state, DiscardToDungeonAction(0, 0))
    assert not res.ok


def test_broken_conservation_aborts_the_game() -> None:
    state = _deal(["Soldier", "Elder"], ["Judge", "Fool"])
    state.players[0].hand.append("Queen")  # corrupt: Queen now exists twice
    with pytest.raises(InvariantViolation):
        step(state, PlayCardAction(0, 0, with_ability=False))
    assert state.phase == "aborted"
    res = step(state, PlayCardAction(1, 0, with_ability=False))
    assert not res.ok


def test_can_activate_follows_preconditions() -> None:
    state = _deal(["Soldier", "Elder"], ["Judge", "Fool"])
    state.court = [CourtEntry(card="Fool", owner=1), CourtEntry(card="Mystic", owner=0)]
    ctx = PlayContext(player=0, card="Mystic", court_index=1, source="hand", prev_value=1, played_value=7)
    assert not can_activate(state, ctx)
    state.court[0].disgraced = True
    assert can_activate(state, ctx)
    state.mystic_number = 7
    assert not can_activate(state, ctx)
