from __future__ import annotations

import pytest

from nersetti.engine.errors import IllegalAction
from nersetti.engine.match import new_match
from nersetti.engine.serialize import snapshot
from nersetti.engine.state import CourtEntry, GameState
from nersetti.engine.values import (
    court_value,
    effective_value,
    has_royalty,
    has_steadfast,
    hand_value,
    highest_base_in_court,
    highest_court_index,
    is_muted,
    throne_value,
)
from nersetti.paths import get_paths
from nersetti.services.content import ContentService


def _load_catalog():
    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    return content.load_catalog()


def _state(*court: str) -> GameState:
    state = new_match(_load_catalog(), 7)
    state.court = [CourtEntry(card=c, owner=i % 2) for i, c in enumerate(court)]
    return state


def test_empty_throne_is_worth_nothing() -> None:
    state = _state()
    assert throne_value(state) == 0
    assert highest_base_in_court(state) == 0


def test_disgraced_cards_are_worth_one() -> None:
    state = _state("Queen", "Sentry")
    state.court[1].disgraced = True
    assert throne_value(state) == 1
    assert court_value(state, 0) == 9


def test_warlord_value_by_zone() -> None:
    state = _state("Queen", "Warlord")
    assert hand_value(state, 0, "Warlord") == 8
    assert throne_value(state) == 9
    state.court[0].disgraced = True
    assert throne_value(state) == 7

    off_throne = _state("Warlord", "Queen")
    assert court_value(off_throne, 0) == 7


def test_immortal_grants_and_suppresses_royalty() -> None:
    state = _state("Queen", "Elder", "Immortal")
    assert throne_value(state) == 5
    assert court_value(state, 0) == 8
    assert court_value(state, 1) == 2
    assert has_royalty(state, "Immortal")
    assert has_royalty(state, "Warlord")
    assert is_muted(state, "Queen", in_court=True)
    assert not is_muted(state, "Immortal", in_court=True)
    assert hand_value(state, 0, "Princess") == 8

    state.court[2].disgraced = True
    assert not has_royalty(state, "Warlord")
    assert court_value(state, 0) == 9


def test_warlord_counts_immortal_as_royalty() -> None:
    state = _state("Immortal", "Warlord")
    assert throne_value(state) == 9


def test_ancestor_empowers_elders() -> None:
    state = _state("Ancestor", "Elder")
    assert throne_value(state) == 6
    assert has_steadfast(state, state.court[1])
    assert hand_value(state, 1, "Elder") == 6

    state.court[0].disgraced = True
    assert throne_value(state) == 3
    assert not has_steadfast(state, state.court[1])


def test_court_modifiers() -> None:
    assert throne_value(_state("Fool", "Nakturn")) == 2
    assert hand_value(_state(), 0, "Nakturn") == 4
    assert throne_value(_state("Fool", "Conspiracist")) == 5
    assert court_value(_state("Conspiracist", "Fool"), 0) == 6


def test_exile_loses_value_per_high_card() -> None:
    state = _state("Fool", "Warden", "Exile")
    assert throne_value(state) == 6
    # Exile keeps its own modifier while everything else is muted.
    state.exile_owner = 0
    assert throne_value(state) == 6
    assert is_muted(state, "Queen", in_court=False)


def test_mystic_number_flattens_matching_cards() -> None:
    state = _state("Judge", "Soldier")
    state.mystic_number = 5
    assert throne_value(state) == 3
    assert court_value(state, 0) == 3
    assert hand_value(state, 0, "Soldier") == 5
    assert is_muted(state, "Soldier", in_court=True)
    assert not is_muted(state, "Soldier", in_court=False)
    state.court[0].disgraced = True
    assert court_value(state, 0) == 1


def test_entry_bonuses() -> None:
    state = _state("Soldier", "Fool")
    state.court[0].throne_bonus = 2
    state.court[0].bonus = 1
    assert court_value(state, 0) == 6

    on_throne = _state("Fool", "Soldier")
    on_throne.court[1].throne_bonus = 2
    assert throne_value(on_throne) == 7


def test_conspiracy_boosts_owner_hand_only() -> None:
    state = _state()
    state.players[0].conspiracy.active = True
    assert hand_value(state, 0, "Soldier") == 6
    assert hand_value(state, 1, "Soldier") == 5


def test_highest_value_tie_breaks_on_court_order() -> None:
    state = _state("Fool", "Judge", "Soldier", "Elder")
    assert highest_base_in_court(state) == 5
    assert highest_court_index(state, lambda e: state.catalog.get(e.card).base_value) == 1


def test_effective_value_is_pure() -> None:
    state = _state("Queen", "Elder", "Immortal")
    before = snapshot(state)
    first = [effective_value(state, e.card, "court", entry=e) for e in state.court]
    second = [effective_value(state, e.card, "court", entry=e) for e in state.court]
    assert first == second
    assert snapshot(state) == before


def test_value_of_a_card_missing_from_court_is_an_illegal_action() -> None:
    state = _state("Fool", "Judge")
    with pytest.raises(IllegalAction):
        effective_value(state, "Fool", "throne")
    with pytest.raises(IllegalAction):
        effective_value(state, "Queen", "court")
    assert effective_value(state, "Judge", "throne") == 5
