"""Ability resolver.

Every catalog card has one `CardRules` entry in `RULES`. `options` enumerates the legal
`AbilityChoice` values for a play (an empty list means the ability cannot be activated),
`execute` applies the effect. Both run after the played card has been placed on the
throne, so hand indices in a choice refer to the hand without the played card.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from dataclasses import dataclass
from itertools import combinations

from .actions import AbilityChoice, PlaySource
from .errors import IllegalAction
from .state import CourtEntry, GameState, PendingForcedPlay, PendingSelection
from .values import (
    base_value,
    entry_muted,
    has_royalty,
    has_steadfast,
    highest_base_in_court,
)

Choice = AbilityChoice | None


@dataclass(frozen=True)
class PlayContext:
    player: int
    card: str
    court_index: int
    source: PlaySource
    prev_value: int
    played_value: int

    @property
    def opponent(self) -> int:
        return 1 - self.player


OptionsFn = Callable[[GameState, PlayContext], list[Choice]]
ExecuteFn = Callable[[GameState, PlayContext, Choice], None]


@dataclass(frozen=True)
class CardRules:
    options: OptionsFn
    execute: ExecuteFn


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def record_move(state: GameState, card: str, src: str, dst: str, owner: int) -> None:
    state.pending_moves.append((card, src, dst, owner))


def visible_cards(state: GameState, player: int) -> set[str]:
    ps = state.players[player]
    seen: set[str] = set(ps.hand) | set(ps.antechamber)
    seen.update(e.card for e in state.court)
    seen.update(e.identity for e in state.court)
    for single in (state.accused, ps.successor, ps.squire, ps.dungeon):
        if single is not None:
            seen.add(single)
    return seen


def naming_candidates(state: GameState, player: int) -> list[str]:
    """Card names `player` may say: the catalog minus every card visible to them."""
    seen = visible_cards(state, player)
    return [name for name in state.catalog.all_names() if name not in seen]


def _prev_entry(state: GameState, ctx: PlayContext) -> CourtEntry | None:
    if ctx.court_index <= 0:
        return None
    return state.court[ctx.court_index - 1]


def disgrace(state: GameState, indices: list[int], source: str) -> list[str]:
    """Disgrace court entries, skipping Steadfast ones. Returns the disgraced names."""
    hit: list[str] = []
    for i in indices:
        e = state.court[i]
        if e.disgraced or has_steadfast(state, e):
            continue
        e.disgraced = True
        hit.append(e.card)
    state.emit("CARDS_DISGRACED", source=source, cards=hit)
    return hit


def _disgraceable(state: GameState, exclude: int | None = None) -> list[int]:
    return [
        i
        for i, e in enumerate(state.court)
        if i != exclude and not e.disgraced and not has_steadfast(state, e)
    ]


def rally(state: GameState, player: int, card: str) -> None:
    ps = state.players[player]
    ps.army.remove(card)
    ps.hand.append(card)
    ps.left_army.append(card)
    state.emit("RALLIED", player=player, card=card, to=player)
    state.emit("RALLIED", player=player, card=None)


def recall(state: GameState, player: int, card: str) -> None:
    ps = state.players[player]
    ps.exhausted_army.remove(card)
    ps.army.append(card)
    state.emit("RECALLED", player=player, card=card)


def condemn_hand_card(state: GameState, owner: int, index: int, source: str) -> str:
    ps = state.players[owner]
    card = ps.hand.pop(index)
    ps.condemned.append(card)
    state.emit("CARD_CONDEMNED", player=owner, card=card, source=source)
    return card


def _any_disgraced(state: GameState) -> bool:
    return any(e.disgraced for e in state.court)


def _select(
    state: GameState,
    kind: str,
    player: int,
    actor: int,
    options: list[int],
    *,
    min_count: int = 1,
    max_count: int = 1,
    **data: object,
) -> None:
    state.pending_selection = PendingSelection(
        kind=kind,  # type: ignore[arg-type]
        player=player,
        actor=actor,
        options=tuple(options),
        min_count=min_count,
        max_count=max_count,
        data=dict(data),
    )
    state.emit("SELECTION_PENDING", player=player, actor=actor, kind=kind, count=max_count)


def _named(state: GameState, ctx: PlayContext, candidates: list[str]) -> list[Choice]:
    return [AbilityChoice.name_card(c) for c in candidates]


def _guess_event(state: GameState, ctx: PlayContext, card: str, hit: bool) -> None:
    state.emit(
        "GUESS_HIT" if hit else "GUESS_MISS",
        player=ctx.player,
        target=ctx.opponent,
        ability=ctx.card,
        card=card,
    )


# ---------------------------------------------------------------------------
# Per-card rules
# ---------------------------------------------------------------------------


def _none_options(state: GameState, ctx: PlayContext) -> list[Choice]:
    return []


def _none_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    return None


def _always(state: GameState, ctx: PlayContext) -> list[Choice]:
    return [None]


def _fool_options(state: GameState, ctx: PlayContext) -> list[Choice]:
    return [
        AbilityChoice.court_card(i)
        for i, e in enumerate(state.court)
        if i != ctx.court_index and not e.disgraced
    ]


def _fool_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    assert choice is not None and choice.court_index is not None
    taken = state.court.pop(choice.court_index)
    state.players[ctx.player].hand.append(taken.card)
    record_move(state, taken.card, "court", "hand", taken.owner)
    state.emit("TAKEN_FROM_COURT", player=ctx.player, card=taken.card)


def _inquisitor_options(state: GameState, ctx: PlayContext) -> list[Choice]:
    return _named(state, ctx, naming_candidates(state, ctx.player))


def _inquisitor_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    assert choice is not None and choice.card is not None
    opp = state.players[ctx.opponent]
    if choice.card not in opp.hand:
        _guess_event(state, ctx, choice.card, hit=False)
        return
    opp.hand.remove(choice.card)
    opp.antechamber.append(choice.card)
    _guess_event(state, ctx, choice.card, hit=True)


def _soldier_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    assert choice is not None and choice.card is not None
    opp = state.players[ctx.opponent]
    if choice.card not in opp.hand and choice.card not in opp.antechamber:
        _guess_event(state, ctx, choice.card, hit=False)
        return
    _guess_event(state, ctx, choice.card, hit=True)
    state.court[ctx.court_index].throne_bonus += 2
    targets = _disgraceable(state)
    if targets:
        limit = min(state.config.soldier_disgrace_limit, len(targets))
        _select(state, "soldier_disgrace", ctx.player, ctx.player, targets, min_count=0, max_count=limit)


def _judge_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    assert choice is not None and choice.card is not None
    if choice.card not in state.players[ctx.opponent].hand:
        _guess_event(state, ctx, choice.card, hit=False)
        return
    _guess_event(state, ctx, choice.card, hit=True)
    hand = state.players[ctx.player].hand
    eligible = [i for i, c in enumerate(hand) if base_value(state, c) >= 2]
    if eligible:
        _select(state, "judge_antechamber", ctx.player, ctx.player, eligible, min_count=0)


def _warden_options(state: GameState, ctx: PlayContext) -> list[Choice]:
    if len(state.court) < state.config.warden_court_threshold or state.accused is None:
        return []
    return [AbilityChoice.hand_card(i) for i in range(len(state.players[ctx.player].hand))]


def _warden_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    assert choice is not None and choice.hand_index is not None and state.accused is not None
    hand = state.players[ctx.player].hand
    old = hand[choice.hand_index]
    hand[choice.hand_index] = state.accused
    state.accused = old
    state.emit("ACCUSED_SWAPPED", player=ctx.player, old=hand[choice.hand_index], new=old)


def _mystic_options(state: GameState, ctx: PlayContext) -> list[Choice]:
    if not _any_disgraced(state):
        return []
    return [AbilityChoice.name_number(n) for n in range(1, 9)]


def _mystic_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    assert choice is not None and choice.number is not None
    state.court[ctx.court_index].disgraced = True
    state.mystic_number = choice.number
    state.emit("NUMBER_MUTED", player=ctx.player, number=choice.number)


def _sentry_targets(state: GameState, ctx: PlayContext) -> list[int]:
    return [
        i
        for i, e in enumerate(state.court)
        if i != len(state.court) - 1 and not e.disgraced and not has_royalty(state, e.identity)
    ]


def _sentry_options(state: GameState, ctx: PlayContext) -> list[Choice]:
    hand = state.players[ctx.player].hand
    return [
        AbilityChoice.exchange(ci, hi)
        for ci in _sentry_targets(state, ctx)
        for hi in range(len(hand))
    ]


def _sentry_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    assert choice is not None and choice.court_index is not None and choice.hand_index is not None
    entry = state.court[choice.court_index]
    hand = state.players[ctx.player].hand
    old = entry.card
    entry.card, hand[choice.hand_index] = hand[choice.hand_index], old
    entry.mask = None
    record_move(state, old, "court", "hand", ctx.player)
    record_move(state, entry.card, "hand", "court", ctx.player)
    state.emit("COURT_EXCHANGED", player=ctx.player, court_index=choice.court_index, old=old, new=entry.card)


def _princess_options(state: GameState, ctx: PlayContext) -> list[Choice]:
    if not state.players[ctx.opponent].hand:
        return []
    return [AbilityChoice.hand_card(i) for i in range(len(state.players[ctx.player].hand))]


def _princess_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    assert choice is not None and choice.hand_index is not None
    opp_hand = state.players[ctx.opponent].hand
    _select(
        state,
        "princess_swap",
        ctx.opponent,
        ctx.player,
        list(range(len(opp_hand))),
        give=choice.hand_index,
    )


def _queen_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    others = [i for i in range(len(state.court)) if i != ctx.court_index]
    disgrace(state, others, source=ctx.card)


def _oathbound_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    prev = _prev_entry(state, ctx)
    if ctx.source == "antechamber" or prev is None or ctx.prev_value <= ctx.played_value:
        return
    disgrace(state, [ctx.court_index - 1], source=ctx.card)
    ps = state.players[ctx.player]
    if ps.hand or ps.antechamber:
        state.pending_forced = PendingForcedPlay(player=ctx.player, immune=True, reason=ctx.card)
        state.emit("FORCED_PLAY_PENDING", player=ctx.player, reason=ctx.card)


def _conspiracist_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    effect = state.players[ctx.player].conspiracy
    effect.active = True
    effect.turns_remaining = 2
    effect.affected.clear()
    state.emit("TIMED_EFFECT_STARTED", player=ctx.player, effect=ctx.card, turns=2)


def _exile_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    state.exile_owner = ctx.player
    state.emit("ALL_MUTED", player=ctx.player)


def _lockshift_options(state: GameState, ctx: PlayContext) -> list[Choice]:
    return [None] if any(ps.dungeon is not None for ps in state.players) else []


def _lockshift_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    seen: list[str | None] = [ps.dungeon for ps in state.players]
    state.emit("DUNGEONS_SEEN", player=ctx.player, cards=seen, to=ctx.player)
    for i, ps in enumerate(state.players):
        if ps.dungeon is None:
            continue
        ps.hand.append(ps.dungeon)
        state.emit("DUNGEON_TAKEN", player=i, card=ps.dungeon, to=i)
        ps.dungeon = None
    state.emit("DUNGEONS_EMPTIED", player=ctx.player)


def _nakturn_options(state: GameState, ctx: PlayContext) -> list[Choice]:
    if not _any_disgraced(state) or not state.players[ctx.opponent].hand:
        return []
    return _named(state, ctx, list(state.catalog.all_names()))


def _nakturn_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    assert choice is not None and choice.card is not None
    state.emit("CARD_NAMED", player=ctx.player, card=choice.card)
    _select(state, "nakturn_guess", ctx.opponent, ctx.player, [], min_count=0, max_count=0, card=choice.card)


def _informant_options(state: GameState, ctx: PlayContext) -> list[Choice]:
    if state.players[ctx.opponent].dungeon is None:
        return []
    army = sorted(set(state.players[ctx.player].army))
    out: list[Choice] = []
    for name in naming_candidates(state, ctx.player):
        out.append(AbilityChoice(card=name))
        out.extend(AbilityChoice(card=name, army_cards=(a,)) for a in army)
    return out


def _informant_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    assert choice is not None and choice.card is not None
    opp = state.players[ctx.opponent]
    if opp.dungeon != choice.card:
        state.emit("GUESS_MISS", player=ctx.player, target=ctx.opponent, ability=ctx.card, card=choice.card)
        return
    state.emit("GUESS_HIT", player=ctx.player, target=ctx.opponent, ability=ctx.card, card=choice.card)
    if choice.army_cards:
        rally(state, ctx.player, choice.army_cards[0])
        return
    opp.dungeon = None
    state.players[ctx.player].hand.append(choice.card)
    state.emit("DUNGEON_TAKEN", player=ctx.player, card=choice.card, owner=ctx.opponent)


def _ancestor_options(state: GameState, ctx: PlayContext) -> list[Choice]:
    prev = _prev_entry(state, ctx)
    ps = state.players[ctx.player]
    if prev is None or not has_royalty(state, prev.identity) or not ps.exhausted_army:
        return []
    out: list[Choice] = []
    for recalled in sorted(set(ps.exhausted_army)):
        out.append(AbilityChoice.from_army(recalled))
        army_after = sorted(set(ps.army) | {recalled})
        for hi in range(len(ps.hand)):
            out.extend(AbilityChoice.from_army(recalled, r, hand_index=hi) for r in army_after)
    return out


def _ancestor_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    assert choice is not None
    recall(state, ctx.player, choice.army_cards[0])
    if choice.hand_index is None or len(choice.army_cards) < 2:
        return
    condemn_hand_card(state, ctx.player, choice.hand_index, source=ctx.card)
    rally(state, ctx.player, choice.army_cards[1])


def _bard_options(state: GameState, ctx: PlayContext) -> list[Choice]:
    prev = _prev_entry(state, ctx)
    ps = state.players[ctx.player]
    if prev is None or base_value(state, prev.card) not in (3, 4):
        return []
    return [AbilityChoice.from_army(c) for c in sorted(set(ps.exhausted_army))]


def _bard_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    assert choice is not None
    recall(state, ctx.player, choice.army_cards[0])
    state.court[ctx.court_index].bonus += 1


def _flagbearer_options(state: GameState, ctx: PlayContext) -> list[Choice]:
    ps = state.players[ctx.player]
    if not _any_disgraced(state) or not ps.exhausted_army:
        return []
    out: list[Choice] = []
    for recalled in sorted(set(ps.exhausted_army)):
        army_after = sorted(ps.army + [recalled])
        want = min(2, len(army_after))
        pairs = sorted(set(combinations(army_after, want)))
        out.extend(AbilityChoice.from_army(recalled, *pair) for pair in pairs)
    return out


def _flagbearer_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    assert choice is not None
    state.court[ctx.court_index].disgraced = True
    recall(state, ctx.player, choice.army_cards[0])
    rallied = list(choice.army_cards[1:])
    for card in rallied:
        rally(state, ctx.player, card)
    state.emit("RALLY_REVEALED", player=ctx.player, cards=rallied)
    if rallied:
        hand = state.players[ctx.player].hand
        positions = list(range(len(hand) - len(rallied), len(hand)))
        _select(state, "flagbearer_return", ctx.player, ctx.player, positions)


def _executioner_options(state: GameState, ctx: PlayContext) -> list[Choice]:
    top = highest_base_in_court(state)
    return [AbilityChoice.name_number(n) for n in range(1, top + 1)]


def _executioner_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    assert choice is not None and choice.number is not None
    n = choice.number
    state.emit("NUMBER_NAMED", player=ctx.player, number=n, ability=ctx.card)
    own = state.players[ctx.player].hand
    for i, c in enumerate(own):
        if base_value(state, c) == n:
            condemn_hand_card(state, ctx.player, i, source=ctx.card)
            break
    opp_hand = state.players[ctx.opponent].hand
    matches = [i for i, c in enumerate(opp_hand) if base_value(state, c) == n]
    if len({opp_hand[i] for i in matches}) == 1:
        condemn_hand_card(state, ctx.opponent, matches[0], source=ctx.card)
    elif matches:
        _select(state, "executioner_condemn", ctx.opponent, ctx.player, matches)


def _oracle_options(state: GameState, ctx: PlayContext) -> list[Choice]:
    return [None] if state.players[ctx.opponent].hand else []


def _oracle_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    opp_hand = state.players[ctx.opponent].hand
    count = min(state.config.oracle_reveal_count, len(opp_hand))
    _select(
        state,
        "oracle_reveal",
        ctx.opponent,
        ctx.player,
        list(range(len(opp_hand))),
        min_count=count,
        max_count=count,
    )


def _aegis_options(state: GameState, ctx: PlayContext) -> list[Choice]:
    return [None] + [AbilityChoice.court_card(i) for i in _disgraceable(state)]


def _aegis_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    if choice is None or choice.court_index is None:
        return
    disgrace(state, [choice.court_index], source=ctx.card)


def _without(state: GameState, index: int) -> GameState:
    court = [dataclasses.replace(e) for i, e in enumerate(state.court) if i != index]
    return dataclasses.replace(state, court=court, pending_moves=[])


def _stranger_copyable(state: GameState, ctx: PlayContext) -> list[int]:
    return [i for i, e in enumerate(state.court) if i != ctx.court_index and e.identity != "Stranger"]


def _copied_context(ctx: PlayContext, name: str) -> PlayContext:
    return dataclasses.replace(ctx, card=name, court_index=ctx.court_index - 1)


def _stranger_options(state: GameState, ctx: PlayContext) -> list[Choice]:
    out: list[Choice] = []
    for i in _stranger_copyable(state, ctx):
        name = state.court[i].identity
        view = _without(state, i)
        view.court[-1].mask = name
        inner_options = RULES[name].options(view, _copied_context(ctx, name))
        if not inner_options:
            # Name and value modifiers only
            out.append(AbilityChoice.copy(i))
        out.extend(AbilityChoice.copy(i, inner) for inner in inner_options)
    return out


def _stranger_execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    assert choice is not None and choice.court_index is not None
    target = state.court.pop(choice.court_index)
    name = target.identity
    state.condemned.append(target.card)
    record_move(state, target.card, "court", "condemned", target.owner)
    stranger = state.court[ctx.court_index - 1]
    stranger.mask = name
    state.emit("COPY_EFFECT", player=ctx.player, card="Stranger", copied=name)
    copied = _copied_context(ctx, name)
    if choice.inner is None and None not in RULES[name].options(state, copied):
        return
    RULES[name].execute(state, copied, choice.inner)


RULES: dict[str, CardRules] = {
    "Fool": CardRules(_fool_options, _fool_execute),
    "FlagBearer": CardRules(_flagbearer_options, _flagbearer_execute),
    "Assassin": CardRules(_none_options, _none_execute),
    "Stranger": CardRules(_stranger_options, _stranger_execute),
    "Elder": CardRules(_none_options, _none_execute),
    "Zealot": CardRules(_none_options, _none_execute),
    "Aegis": CardRules(_aegis_options, _aegis_execute),
    "Inquisitor": CardRules(_inquisitor_options, _inquisitor_execute),
    "Ancestor": CardRules(_ancestor_options, _ancestor_execute),
    "Informant": CardRules(_informant_options, _informant_execute),
    "Nakturn": CardRules(_nakturn_options, _nakturn_execute),
    "Executioner": CardRules(_executioner_options, _executioner_execute),
    "Bard": CardRules(_bard_options, _bard_execute),
    "Soldier": CardRules(_inquisitor_options, _soldier_execute),
    "Judge": CardRules(_inquisitor_options, _judge_execute),
    "Lockshift": CardRules(_lockshift_options, _lockshift_execute),
    "Oracle": CardRules(_oracle_options, _oracle_execute),
    "Immortal": CardRules(_none_options, _none_execute),
    "Oathbound": CardRules(_always, _oathbound_execute),
    "Conspiracist": CardRules(_always, _conspiracist_execute),
    "Mystic": CardRules(_mystic_options, _mystic_execute),
    "Warlord": CardRules(_none_options, _none_execute),
    "Warden": CardRules(_warden_options, _warden_execute),
    "Sentry": CardRules(_sentry_options, _sentry_execute),
    "KingsHand": CardRules(_none_options, _none_execute),
    "Exile": CardRules(_always, _exile_execute),
    "Princess": CardRules(_princess_options, _princess_execute),
    "Queen": CardRules(_always, _queen_execute),
}


def rules_for(state: GameState, card: str) -> CardRules:
    state.catalog.get(card)
    try:
        return RULES[card]
    except KeyError:
        raise IllegalAction(f"No rules registered for {card}.") from None


def ability_options(state: GameState, ctx: PlayContext) -> list[Choice]:
    return rules_for(state, ctx.card).options(state, ctx)


def can_activate(state: GameState, ctx: PlayContext) -> bool:
    """Side-effect-free check that the played card's ability has at least one legal use."""
    entry = state.court[ctx.court_index]
    if entry_muted(state, entry):
        return False
    return bool(ability_options(state, ctx))


def execute(state: GameState, ctx: PlayContext, choice: Choice) -> None:
    """Apply an already validated ability: primary effect, then any forced follow-up it queues."""
    rules_for(state, ctx.card).execute(state, ctx, choice)


# ---------------------------------------------------------------------------
# Zone-transition triggers
# ---------------------------------------------------------------------------

TriggerFn = Callable[[GameState, str, int], None]


def _royalty_granted(state: GameState, card: str, owner: int) -> None:
    state.emit("ROYALTY_GRANTED", cards=["Immortal", "Warlord"], owner=owner)


def _royalty_revoked(state: GameState, card: str, owner: int) -> None:
    state.emit("ROYALTY_REVOKED", cards=["Immortal", "Warlord"], owner=owner)


def _elders_empowered(state: GameState, card: str, owner: int) -> None:
    state.emit("ELDERS_EMPOWERED", owner=owner)


def _elders_released(state: GameState, card: str, owner: int) -> None:
    state.emit("ELDERS_RELEASED", owner=owner)


ZONE_TRIGGERS: dict[tuple[str, str], TriggerFn] = {
    ("Immortal", "on_enter_court"): _royalty_granted,
    ("Immortal", "on_leave_court"): _royalty_revoked,
    ("Ancestor", "on_enter_court"): _elders_empowered,
    ("Ancestor", "on_leave_court"): _elders_released,
}


def fire_zone_triggers(state: GameState) -> None:
    moves, state.pending_moves = state.pending_moves, []
    for card, src, dst, owner in moves:
        if dst == "court":
            hook = ZONE_TRIGGERS.get((card, "on_enter_court"))
        elif src == "court":
            hook = ZONE_TRIGGERS.get((card, "on_leave_court"))
        else:
            hook = None
        if hook is not None:
            hook(state, card, owner)


# ---------------------------------------------------------------------------
# Pending selections
# ---------------------------------------------------------------------------


def resolve_selection(state: GameState, indices: tuple[int, ...]) -> None:
    sel = state.pending_selection
    assert sel is not None
    if sel.kind == "nakturn_guess":
        raise IllegalAction("Answer with a presence guess.")
    if len(set(indices)) != len(indices) or not sel.min_count <= len(indices) <= sel.max_count:
        raise IllegalAction(f"Select between {sel.min_count} and {sel.max_count} cards.")
    if any(i not in sel.options for i in indices):
        raise IllegalAction("Invalid selection.")
    state.pending_selection = None
    _SELECTION_HANDLERS[sel.kind](state, sel, indices)


def resolve_guess(state: GameState, present: bool) -> None:
    sel = state.pending_selection
    assert sel is not None
    if sel.kind != "nakturn_guess":
        raise IllegalAction("No guess is pending.")
    state.pending_selection = None
    card = str(sel.data["card"])
    actual = card in state.players[sel.actor].hand
    correct = actual == present
    state.emit("PRESENCE_GUESSED", player=sel.player, card=card, present=present, correct=correct)
    if correct:
        return
    opp_hand = state.players[sel.player].hand
    if not opp_hand:
        return
    state.emit("HAND_REVEALED", player=sel.player, cards=list(opp_hand), to=sel.actor)
    _select(state, "nakturn_condemn", sel.actor, sel.actor, list(range(len(opp_hand))))


def _princess_swap(state: GameState, sel: PendingSelection, indices: tuple[int, ...]) -> None:
    give = int(sel.data["give"])  # type: ignore[arg-type]
    mine = state.players[sel.actor].hand
    theirs = state.players[sel.player].hand
    a, b = mine[give], theirs[indices[0]]
    mine[give], theirs[indices[0]] = b, a
    state.emit("CARD_SWAPPED", player=sel.actor, old=a, new=b, to=sel.actor)
    state.emit("CARD_SWAPPED", player=sel.player, old=b, new=a, to=sel.player)
    state.emit("CARDS_SWAPPED", players=[sel.actor, sel.player])


def _executioner_condemn(state: GameState, sel: PendingSelection, indices: tuple[int, ...]) -> None:
    condemn_hand_card(state, sel.player, indices[0], source="Executioner")


def _oracle_reveal(state: GameState, sel: PendingSelection, indices: tuple[int, ...]) -> None:
    hand = state.players[sel.player].hand
    state.emit("CARDS_REVEALED", player=sel.player, cards=[hand[i] for i in indices])
    _select(state, "oracle_pick", sel.actor, sel.actor, sorted(indices), min_count=0)


def _oracle_pick(state: GameState, sel: PendingSelection, indices: tuple[int, ...]) -> None:
    if not indices:
        return
    target = state.opponent(sel.actor)
    card = state.players[target].hand.pop(indices[0])
    state.players[target].antechamber.append(card)
    state.emit("MOVED_TO_ANTECHAMBER", player=target, card=card)


def _nakturn_condemn(state: GameState, sel: PendingSelection, indices: tuple[int, ...]) -> None:
    condemn_hand_card(state, state.opponent(sel.actor), indices[0], source="Nakturn")


def _soldier_disgrace(state: GameState, sel: PendingSelection, indices: tuple[int, ...]) -> None:
    disgrace(state, sorted(indices), source="Soldier")


def _judge_antechamber(state: GameState, sel: PendingSelection, indices: tuple[int, ...]) -> None:
    if not indices:
        return
    ps = state.players[sel.actor]
    card = ps.hand.pop(indices[0])
    ps.antechamber.append(card)
    state.emit("MOVED_TO_ANTECHAMBER", player=sel.actor, card=card)


def _flagbearer_return(state: GameState, sel: PendingSelection, indices: tuple[int, ...]) -> None:
    ps = state.players[sel.actor]
    card = ps.hand.pop(indices[0])
    ps.army.append(card)
    ps.left_army.remove(card)
    state.emit("RETURNED_TO_ARMY", player=sel.actor, card=card, to=sel.actor)
    state.emit("RETURNED_TO_ARMY", player=sel.actor, card=None)


SelectionHandler = Callable[[GameState, PendingSelection, tuple[int, ...]], None]

_SELECTION_HANDLERS: dict[str, SelectionHandler] = {
    "princess_swap": _princess_swap,
    "executioner_condemn": _executioner_condemn,
    "oracle_reveal": _oracle_reveal,
    "oracle_pick": _oracle_pick,
    "nakturn_condemn": _nakturn_condemn,
    "soldier_disgrace": _soldier_disgrace,
    "judge_antechamber": _judge_antechamber,
    "flagbearer_return": _flagbearer_return,
}
