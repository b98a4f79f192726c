from __future__ import annotations

from collections.abc import Callable

from .errors import IllegalAction
from .state import CourtEntry, GameState
from .types import Zone

HIGH_VALUE_THRESHOLD = 7

# A card's own court modifier: (state, entry, on_throne) -> delta.
CourtModifier = Callable[[GameState, CourtEntry, bool], int]


def base_value(state: GameState, card: str) -> int:
    return state.catalog.get(card).base_value


def _immortal_present(state: GameState) -> bool:
    if state.exile_owner is not None:
        return False
    for e in state.court:
        if e.identity != "Immortal" or e.disgraced:
            continue
        if state.mystic_number is not None and base_value(state, e.card) == state.mystic_number:
            continue
        return True
    return False


def has_royalty(state: GameState, card: str) -> bool:
    if state.catalog.get(card).has("Royalty"):
        return True
    return card in ("Immortal", "Warlord") and _immortal_present(state)


def _suppressed_by_immortal(state: GameState, card: str) -> bool:
    if card == "Immortal":
        return False
    if card != "Elder" and not state.catalog.get(card).has("Royalty"):
        return False
    return _immortal_present(state)


def is_muted(state: GameState, card: str, *, in_court: bool) -> bool:
    """Muted cards lose their abilities and their own value modifiers."""
    if state.exile_owner is not None:
        return True
    if in_court and state.mystic_number is not None and base_value(state, card) == state.mystic_number:
        return True
    return _suppressed_by_immortal(state, card)


def entry_muted(state: GameState, entry: CourtEntry) -> bool:
    if state.exile_owner is not None and entry.identity != "Exile":
        return True
    if state.mystic_number is not None and base_value(state, entry.card) == state.mystic_number:
        return True
    return _suppressed_by_immortal(state, entry.identity)


def ancestor_active(state: GameState) -> bool:
    for e in state.court:
        if e.identity == "Ancestor" and not e.disgraced and not entry_muted(state, e):
            return True
    return False


def has_steadfast(state: GameState, entry: CourtEntry) -> bool:
    if state.catalog.get(entry.identity).has("Steadfast"):
        return True
    if entry.identity == "Elder" and ancestor_active(state):
        return True
    return entry.steadfast


def _royalty_elsewhere(state: GameState, entry: CourtEntry) -> bool:
    for e in state.court:
        if e is entry or e.disgraced:
            continue
        if has_royalty(state, e.identity):
            return True
    return False


def _warlord(state: GameState, entry: CourtEntry, on_throne: bool) -> int:
    return 2 if on_throne and _royalty_elsewhere(state, entry) else 0


def _immortal(state: GameState, entry: CourtEntry, on_throne: bool) -> int:
    return -1


def _nakturn(state: GameState, entry: CourtEntry, on_throne: bool) -> int:
    return -2


def _conspiracist(state: GameState, entry: CourtEntry, on_throne: bool) -> int:
    return -1 if on_throne else 0


def _exile(state: GameState, entry: CourtEntry, on_throne: bool) -> int:
    if not on_throne:
        return 0
    return -sum(1 for e in state.court if base_value(state, e.card) >= HIGH_VALUE_THRESHOLD)


COURT_MODIFIERS: dict[str, CourtModifier] = {
    "Warlord": _warlord,
    "Immortal": _immortal,
    "Nakturn": _nakturn,
    "Conspiracist": _conspiracist,
    "Exile": _exile,
}

HAND_OVERRIDES: dict[str, int] = {"Warlord": 8}


def _external_delta(state: GameState, card: str) -> int:
    delta = 0
    if _suppressed_by_immortal(state, card):
        delta -= 1
    if card == "Elder" and ancestor_active(state):
        delta += 3
    return delta


def effective_value(
    state: GameState,
    card: str,
    zone: Zone,
    *,
    owner: int | None = None,
    entry: CourtEntry | None = None,
) -> int:
    """Effective value of `card` in `zone`.

    Pure function of (card, zone, state). For court/throne the matching court entry is
    looked up when not given and must exist (IllegalAction otherwise). Never below 1.
    """
    if zone in ("hand", "antechamber"):
        value = base_value(state, card)
        if card in HAND_OVERRIDES and not is_muted(state, card, in_court=False):
            value = HAND_OVERRIDES[card]
        value += _external_delta(state, card)
        if owner is not None and state.players[owner].conspiracy.active:
            value += 1
        return max(1, value)

    if entry is None:
        entry = _find_entry(state, card, zone)
    if entry.disgraced:
        return 1
    if state.mystic_number is not None and base_value(state, entry.card) == state.mystic_number:
        return 3
    on_throne = zone == "throne"
    value = base_value(state, entry.card)
    modifier = COURT_MODIFIERS.get(entry.identity)
    if modifier is not None and not entry_muted(state, entry):
        value += modifier(state, entry, on_throne)
    value += _external_delta(state, entry.identity)
    value += entry.bonus
    if on_throne:
        value += entry.throne_bonus
    return max(1, value)


def _find_entry(state: GameState, card: str, zone: Zone) -> CourtEntry:
    if zone == "throne":
        throne = state.throne()
        if throne is None or throne.card != card:
            raise IllegalAction(f"{card} is not on the throne.")
        return throne
    for e in state.court:
        if e.card == card:
            return e
    raise IllegalAction(f"{card} is not in court.")


def court_value(state: GameState, index: int) -> int:
    entry = state.court[index]
    zone: Zone = "throne" if index == len(state.court) - 1 else "court"
    return effective_value(state, entry.card, zone, entry=entry)


def throne_value(state: GameState) -> int:
    if not state.court:
        return 0
    return court_value(state, len(state.court) - 1)


def hand_value(state: GameState, player: int, card: str) -> int:
    return effective_value(state, card, "hand", owner=player)


def highest_base_in_court(state: GameState) -> int:
    """Highest base value in court; ties resolve to the first entry in court order."""
    best_index = highest_court_index(state, lambda e: base_value(state, e.card))
    if best_index is None:
        return 0
    return base_value(state, state.court[best_index].card)


def highest_court_index(state: GameState, key: Callable[[CourtEntry], int]) -> int | None:
    best: tuple[int, int] | None = None
    for i, e in enumerate(state.court):
        v = key(e)
        if best is None or v > best[0]:
            best = (v, i)
    return None if best is None else best[1]
