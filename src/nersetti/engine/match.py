from __future__ import annotations

import random
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from itertools import combinations

from . import abilities
from .abilities import PlayContext
from .actions import (
    Action,
    ChangeKingFacetAction,
    ChooseFirstPlayerAction,
    ChooseSignaturesAction,
    ChooseSquireAction,
    ChooseSuccessorAction,
    DeclineReactionAction,
    DiscardToDungeonAction,
    EndMusterAction,
    FlipKingAction,
    GuessPresenceAction,
    PlayCardAction,
    PlaySource,
    ReactAction,
    RecommissionAction,
    RecruitAction,
    SelectCardsAction,
    StartRoundAction,
)
from .errors import IllegalAction, IllegalReactionClaim, InvariantViolation
from .reactions import open_window, stranger_targets, verify_claim
from .state import (
    CourtEntry,
    GameState,
    MatchConfig,
    PendingReaction,
    PlayerState,
    RoundSetup,
    StepResult,
    TimedEffect,
    check_conservation,
)
from .types import KING_FACETS, CardCatalog
from .values import entry_muted, hand_value, has_royalty, is_muted, throne_value


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise IllegalAction(msg)


def _check_player(player: int) -> None:
    _require(player in (0, 1), f"Unknown player {player}.")


# ---------------------------------------------------------------------------
# Round setup
# ---------------------------------------------------------------------------


def _validate_setup(state: GameState, setup: RoundSetup) -> None:
    dealt = Counter(setup.hands[0]) + Counter(setup.hands[1]) + Counter([setup.accused])
    for card in dealt:
        state.catalog.get(card)
    _require(not dealt - Counter(state.catalog.base_deck), "Round setup is not drawn from the deck.")


def start_round(state: GameState, setup: RoundSetup | None = None) -> None:
    """Reset the round zones and deal. Uses `setup` (or the next queued one) instead of shuffling."""
    if setup is None and state.queued_setups:
        setup = state.queued_setups.pop(0)
    if setup is not None:
        _validate_setup(state, setup)

    state.round += 1
    for i, ps in enumerate(state.players):
        if ps.left_army:
            ps.exhausted_army.extend(ps.left_army)
            state.emit("ARMY_EXHAUSTED", player=i, cards=list(ps.left_army))
        ps.left_army = []
        ps.hand = []
        ps.antechamber = []
        ps.condemned = []
        ps.successor = None
        ps.squire = None
        ps.dungeon = None
        ps.king_flipped = False
        ps.mustered = False
        ps.conspiracy = TimedEffect()
    state.court = []
    state.condemned = []
    state.mystic_number = None
    state.exile_owner = None
    state.pending_reaction = None
    state.pending_forced = None
    state.pending_selection = None
    state.round_winner = None
    state.first_player = None

    deck = list(state.catalog.base_deck)
    if setup is not None:
        for p in (0, 1):
            for card in setup.hands[p]:
                deck.remove(card)
                state.players[p].hand.append(card)
        deck.remove(setup.accused)
        state.accused = setup.accused
    else:
        state.rng.shuffle(deck)
        state.accused = deck.pop()
        for _ in range(state.config.hand_size):
            for p in (0, 1):
                state.players[p].hand.append(deck.pop())
    state.set_aside = deck

    manifest: Counter[str] = Counter(state.catalog.base_deck)
    for ps in state.players:
        manifest.update(ps.army)
        manifest.update(ps.exhausted_army)
    state.manifest = dict(manifest)

    state.phase = "discard"
    state.emit(
        "ROUND_STARTED",
        round=state.round,
        accused=state.accused,
        hand_sizes=[len(ps.hand) for ps in state.players],
    )
    for p, ps in enumerate(state.players):
        state.emit("HAND_DEALT", player=p, cards=list(ps.hand), to=p)


def new_match(
    catalog: CardCatalog,
    seed: int,
    config: MatchConfig | None = None,
    *,
    signatures: Sequence[Sequence[str]] | None = None,
    setups: Iterable[RoundSetup] = (),
) -> GameState:
    """Create a match. With `signatures` the selection phase is done up front and round 1 is dealt."""
    cfg = config or MatchConfig()
    rng = random.Random(seed)
    state = GameState(
        catalog=catalog,
        config=cfg,
        seed=seed,
        rng=rng,
        players=[PlayerState(), PlayerState()],
    )
    state.true_king = rng.randrange(2)
    state.queued_setups = list(setups)
    state.emit("MATCH_CREATED", seed=seed, true_king=state.true_king)
    if signatures is not None:
        for p, chosen in enumerate(signatures):
            _choose_signatures(state, ChooseSignaturesAction(player=p, cards=tuple(chosen)))
    return state


# ---------------------------------------------------------------------------
# Pre-play phases
# ---------------------------------------------------------------------------


def _choose_signatures(state: GameState, action: ChooseSignaturesAction) -> None:
    _require(state.phase == "select_signatures", "Signatures are chosen before the first round.")
    ps = state.players[action.player]
    _require(not ps.signatures, "Signatures already chosen.")
    for card in action.cards:
        state.catalog.get(card)
    n = state.config.signature_count
    _require(len(action.cards) == n and len(set(action.cards)) == n, f"Choose {n} different signature cards.")
    _require(
        all(c in state.catalog.signature_cards for c in action.cards),
        "Only signature cards can join the army.",
    )
    ps.signatures = tuple(action.cards)
    ps.army = list(state.catalog.base_army) + list(action.cards)
    state.emit("SIGNATURES_CHOSEN", player=action.player, cards=list(action.cards))
    if all(p.signatures for p in state.players):
        start_round(state)


def _discard(state: GameState, action: DiscardToDungeonAction) -> None:
    _require(state.phase == "discard", "Not the discard phase.")
    ps = state.players[action.player]
    _require(ps.dungeon is None, "Dungeon already filled.")
    _require(0 <= action.hand_index < len(ps.hand), "Invalid hand index.")
    ps.dungeon = ps.hand.pop(action.hand_index)
    state.emit("DUNGEON_FILLED", player=action.player)
    state.emit("DUNGEON_FILLED", player=action.player, card=ps.dungeon, to=action.player)
    if all(p.dungeon is not None for p in state.players):
        state.phase = "choose_first"
        if state.round == 1:
            state.chooser = state.true_king
        state.emit("FIRST_PLAYER_CHOICE", chooser=state.chooser)


def _choose_first(state: GameState, action: ChooseFirstPlayerAction) -> None:
    _require(state.phase == "choose_first", "Not choosing the first player.")
    _require(action.player == state.chooser, "Not your choice.")
    _check_player(action.first)
    state.first_player = action.first
    state.current_player = state.opponent(action.first)
    state.phase = "muster"
    state.emit("FIRST_PLAYER_CHOSEN", player=action.player, first=action.first)
    state.emit("MUSTER_STARTED", player=state.current_player)


def _muster_turn(state: GameState, player: int) -> PlayerState:
    _require(state.phase == "muster", "Not the muster phase.")
    _require(player == state.current_player, "Not your muster.")
    return state.players[player]


def _recruit(state: GameState, action: RecruitAction) -> None:
    ps = _muster_turn(state, action.player)
    state.catalog.get(action.army_card)
    state.catalog.get(action.exhaust_card)
    _require(0 <= action.hand_index < len(ps.hand), "Invalid hand index.")
    _require(action.army_card in ps.army, f"{action.army_card} is not in your army.")
    _require(action.exhaust_card in ps.army, f"{action.exhaust_card} is not in your army.")
    _require(action.army_card != action.exhaust_card, "Exhaust a different army card.")
    discarded = ps.hand.pop(action.hand_index)
    state.set_aside.append(discarded)
    ps.army.remove(action.army_card)
    ps.hand.append(action.army_card)
    ps.left_army.append(action.army_card)
    ps.army.remove(action.exhaust_card)
    ps.exhausted_army.append(action.exhaust_card)
    state.emit("RECRUITED", player=action.player, card=action.army_card, exhausted=action.exhaust_card)
    state.emit("RECRUIT_DISCARD", player=action.player, card=discarded, to=action.player)


def _recommission(state: GameState, action: RecommissionAction) -> None:
    ps = _muster_turn(state, action.player)
    for card in (*action.exhaust, action.recover):
        state.catalog.get(card)
    _require(not Counter(action.exhaust) - Counter(ps.army), "Exhaust two cards from your army.")
    _require(action.recover in ps.exhausted_army, f"{action.recover} is not exhausted.")
    ps.exhausted_army.remove(action.recover)
    for card in action.exhaust:
        ps.army.remove(card)
        ps.exhausted_army.append(card)
    ps.army.append(action.recover)
    state.emit(
        "RECOMMISSIONED",
        player=action.player,
        exhausted=list(action.exhaust),
        recovered=action.recover,
    )


def _change_facet(state: GameState, action: ChangeKingFacetAction) -> None:
    ps = _muster_turn(state, action.player)
    _require(action.facet in KING_FACETS, f"Unknown king facet {action.facet}.")
    _require(action.facet != ps.king_facet, "King already shows that facet.")
    ps.king_facet = action.facet
    state.emit("KING_FACET_CHANGED", player=action.player, facet=action.facet)


def _end_muster(state: GameState, action: EndMusterAction) -> None:
    ps = _muster_turn(state, action.player)
    ps.mustered = True
    state.emit("MUSTER_ENDED", player=action.player)
    other = state.opponent(action.player)
    if not state.players[other].mustered:
        state.current_player = other
        state.emit("MUSTER_STARTED", player=other)
        return
    state.phase = "setup"
    state.emit("SETUP_STARTED")


def _setup_ready(ps: PlayerState) -> bool:
    if ps.successor is None:
        return False
    return ps.king_facet != "MasterTactician" or ps.squire is not None


def _maybe_finish_setup(state: GameState) -> None:
    if not all(_setup_ready(ps) for ps in state.players):
        return
    assert state.first_player is not None
    state.current_player = state.first_player
    state.emit("PLAY_STARTED", first=state.first_player)
    _begin_turn(state)


def _choose_successor(state: GameState, action: ChooseSuccessorAction) -> None:
    _require(state.phase == "setup", "Not the setup phase.")
    ps = state.players[action.player]
    _require(ps.successor is None, "Successor already chosen.")
    _require(0 <= action.hand_index < len(ps.hand), "Invalid hand index.")
    ps.successor = ps.hand.pop(action.hand_index)
    public = ps.successor if ps.king_facet == "CharismaticLeader" else None
    state.emit("SUCCESSOR_CHOSEN", player=action.player, card=public)
    state.emit("SUCCESSOR_CHOSEN", player=action.player, card=ps.successor, to=action.player)
    _maybe_finish_setup(state)


def _choose_squire(state: GameState, action: ChooseSquireAction) -> None:
    _require(state.phase == "setup", "Not the setup phase.")
    ps = state.players[action.player]
    _require(ps.king_facet == "MasterTactician", "Only a Master Tactician keeps a squire.")
    _require(ps.squire is None, "Squire already chosen.")
    _require(0 <= action.hand_index < len(ps.hand), "Invalid hand index.")
    ps.squire = ps.hand.pop(action.hand_index)
    state.emit("SQUIRE_CHOSEN", player=action.player)
    state.emit("SQUIRE_CHOSEN", player=action.player, card=ps.squire, to=action.player)
    _maybe_finish_setup(state)


# ---------------------------------------------------------------------------
# Turns
# ---------------------------------------------------------------------------


def _placement_allows(state: GameState, player: int, card: str) -> bool:
    throne = state.throne()
    if throne is None:
        return True
    royal = has_royalty(state, throne.identity)
    if card == "Warlord" and royal:
        return False
    if not is_muted(state, card, in_court=False):
        if card in ("Fool", "Aegis", "Oathbound"):
            return True
        if card in ("Elder", "Ancestor") and royal:
            return True
        if card == "Zealot" and state.players[player].king_flipped and not royal:
            return True
    return hand_value(state, player, card) >= throne_value(state)


def play_slots(state: GameState, player: int) -> list[tuple[PlaySource, int]]:
    """(source, index) pairs the player may play right now, ignoring ability choices."""
    ps = state.players[player]
    if ps.antechamber:
        return [("antechamber", i) for i in range(len(ps.antechamber))]
    if state.pending_forced is not None:
        return [("hand", i) for i in range(len(ps.hand))]
    return [("hand", i) for i, c in enumerate(ps.hand) if _placement_allows(state, player, c)]


def can_flip_king(state: GameState, player: int) -> bool:
    ps = state.players[player]
    if state.pending_forced is not None or ps.antechamber:
        return False
    return not ps.king_flipped and ps.successor is not None


def _begin_turn(state: GameState) -> None:
    player = state.current_player
    state.phase = "play"
    if state.exile_owner == player:
        state.exile_owner = None
        state.emit("MUTE_ENDED", player=player)
    state.emit("TURN_STARTED", player=player, round=state.round)
    if not play_slots(state, player) and not can_flip_king(state, player):
        _end_round(state, state.opponent(player), reason="no_legal_move")


def _end_turn(state: GameState) -> None:
    player = state.current_player
    effect = state.players[player].conspiracy
    if effect.active:
        effect.turns_remaining -= 1
        if effect.turns_remaining <= 0:
            effect.active = False
            state.emit("TIMED_EFFECT_ENDED", player=player, effect="Conspiracist")
    state.emit("TURN_ENDED", player=player)
    state.current_player = state.opponent(player)
    _begin_turn(state)


def _finish_action(state: GameState) -> None:
    if state.phase != "play":
        return
    if state.pending_selection is not None or state.pending_forced is not None:
        return
    _end_turn(state)


def _end_round(state: GameState, winner: int, *, reason: str, award: int | None = None) -> None:
    loser = state.opponent(winner)
    wps = state.players[winner]
    lps = state.players[loser]
    if award is None:
        award = 1
        if not wps.king_flipped:
            award += 1
        if lps.hand or (lps.successor is not None and not lps.king_flipped):
            award += 1
    wps.points += award
    state.round_winner = winner
    state.chooser = winner
    state.pending_reaction = None
    state.pending_selection = None
    state.pending_forced = None
    state.emit(
        "ROUND_ENDED",
        round=state.round,
        winner=winner,
        reason=reason,
        awarded=award,
        points=[ps.points for ps in state.players],
    )
    if wps.points >= state.config.points_to_win:
        state.winner = winner
        state.phase = "game_over"
        state.emit("GAME_ENDED", winner=winner, points=[ps.points for ps in state.players])
        return
    state.phase = "round_over"


def _probe(
    state: GameState, player: int, source: PlaySource, index: int
) -> tuple[PlayContext, list[abilities.Choice], bool]:
    """Legal ability choices for a card as if it were on the throne. Leaves state untouched."""
    ps = state.players[player]
    zone = ps.hand if source == "hand" else ps.antechamber
    card = zone[index]
    ctx = PlayContext(
        player=player,
        card=card,
        court_index=len(state.court),
        source=source,
        prev_value=throne_value(state),
        played_value=hand_value(state, player, card),
    )
    zone.pop(index)
    state.court.append(CourtEntry(card=card, owner=player))
    try:
        muted = entry_muted(state, state.court[-1])
        options = [] if muted else abilities.ability_options(state, ctx)
    finally:
        state.court.pop()
        zone.insert(index, card)
    return ctx, options, muted


def _in_play(state: GameState) -> None:
    _require(state.phase == "play", "Not in the play phase.")
    _require(state.pending_selection is None, "A selection is pending.")
    _require(state.pending_reaction is None, "A reaction window is open.")


def _play(state: GameState, action: PlayCardAction) -> None:
    _in_play(state)
    _require(action.player == state.current_player, "Not your turn.")
    ps = state.players[action.player]
    zone = ps.hand if action.source == "hand" else ps.antechamber
    _require(0 <= action.index < len(zone), "Invalid card index.")
    _require((action.source, action.index) in play_slots(state, action.player), "That card cannot be played now.")

    card = zone[action.index]
    definition = state.catalog.get(card)
    ability = definition.play_ability()
    ctx, options, muted = _probe(state, action.player, action.source, action.index)
    resolve = False
    if ability is None or ability.shape == "triggered":
        _require(action.choice is None, f"{card} takes no choice.")
        resolve = ability is not None and not muted
    elif action.with_ability:
        _require(not muted, f"{card} is muted.")
        _require(bool(options), f"{card}'s ability cannot be used now.")
        _require(action.choice in options, f"Invalid choice for {card}.")
        resolve = True
    else:
        _require(action.choice is None, "A choice was given without using the ability.")

    forced = state.pending_forced
    zone.pop(action.index)
    entry = CourtEntry(card=card, owner=action.player)
    if ps.conspiracy.active:
        entry.bonus += 1
        entry.steadfast = True
        ps.conspiracy.affected.add(card)
    state.court.append(entry)
    state.pending_forced = None
    abilities.record_move(state, card, action.source, "court", action.player)
    state.emit(
        "CARD_PLAYED",
        player=action.player,
        card=card,
        source=action.source,
        with_ability=resolve,
        forced=forced is not None,
    )
    if ability is not None and muted:
        state.emit("ABILITY_MUTED", player=action.player, card=card)
    if not resolve:
        _finish_action(state)
        return

    assert ability is not None
    immune = definition.has("ImmuneToKingsHand") or (forced is not None and forced.immune)
    if ability.stoppable and not immune:
        opened = open_window(
            state,
            "ability",
            action.player,
            card=card,
            court_index=ctx.court_index,
            choice=action.choice,
        )
        if opened:
            assert state.pending_reaction is not None
            state.pending_reaction.source = action.source
            state.pending_reaction.prev_value = ctx.prev_value
            state.pending_reaction.played_value = ctx.played_value
            return
    _resolve_ability(state, ctx, action.choice)


def _resolve_ability(state: GameState, ctx: PlayContext, choice: abilities.Choice) -> None:
    abilities.execute(state, ctx, choice)
    _finish_action(state)


def _flip_king(state: GameState, action: FlipKingAction) -> None:
    _in_play(state)
    _require(action.player == state.current_player, "Not your turn.")
    _require(can_flip_king(state, action.player), "You cannot flip your king now.")
    if action.rally is not None:
        ps = state.players[action.player]
        state.catalog.get(action.rally)
        _require(
            ps.king_facet == "MasterTactician" and ps.squire is not None,
            "Only a Master Tactician with a squire may rally instead.",
        )
        _require(action.rally in ps.army, f"{action.rally} is not in your army.")
    state.emit("KING_FLIP_DECLARED", player=action.player)
    if open_window(state, "king_flip", action.player):
        assert state.pending_reaction is not None
        state.pending_reaction.rally = action.rally
        return
    _do_flip(state, action.player, action.rally)


def _do_flip(state: GameState, player: int, rally: str | None = None) -> None:
    """Flip the king. A Master Tactician also takes the squire, or rallies `rally` and leaves it set aside."""
    ps = state.players[player]
    ps.king_flipped = True
    throne = state.throne()
    disgraced = None
    if throne is not None and not throne.disgraced:
        throne.disgraced = True
        disgraced = throne.card
    taken: list[str] = []
    if ps.successor is not None:
        taken.append(ps.successor)
        ps.successor = None
    if ps.king_facet == "MasterTactician" and ps.squire is not None and rally is None:
        taken.append(ps.squire)
        ps.squire = None
    ps.hand.extend(taken)
    state.emit("KING_FLIPPED", player=player, facet=ps.king_facet, disgraced=disgraced)
    state.emit("SUCCESSOR_TAKEN", player=player, cards=taken, to=player)
    if rally is not None:
        abilities.rally(state, player, rally)
    _end_turn(state)


# ---------------------------------------------------------------------------
# Reactions and pending selections
# ---------------------------------------------------------------------------


def _close_window(state: GameState) -> PendingReaction:
    pending = state.pending_reaction
    assert pending is not None
    state.pending_reaction = None
    state.phase = "play"
    return pending


def _continue_after_decline(state: GameState, pending: PendingReaction) -> None:
    if pending.trigger == "king_flip":
        _do_flip(state, pending.actor, pending.rally)
        return
    assert pending.card is not None and pending.court_index is not None
    ctx = PlayContext(
        player=pending.actor,
        card=pending.card,
        court_index=pending.court_index,
        source=pending.source,
        prev_value=pending.prev_value,
        played_value=pending.played_value,
    )
    _resolve_ability(state, ctx, pending.choice)


def _decline(state: GameState, action: DeclineReactionAction) -> None:
    pending = state.pending_reaction
    _require(state.phase == "reaction" and pending is not None, "No reaction window is open.")
    assert pending is not None
    _require(pending.responder == action.player, "Not your reaction window.")
    _close_window(state)
    state.emit("REACTION_DECLINED", player=action.player)
    _continue_after_decline(state, pending)


def _react(state: GameState, action: ReactAction) -> None:
    resolved = verify_claim(state, action.player, action.card, action.stranger_target)
    pending = _close_window(state)
    responder = state.players[action.player]
    responder.hand.remove(action.card)
    responder.condemned.append(action.card)
    state.emit(
        "REACTED",
        player=action.player,
        card=action.card,
        copied=resolved if resolved != action.card else None,
        trigger=pending.trigger,
    )
    if resolved == "Assassin":
        state.emit("KING_FLIP_PREVENTED", player=pending.actor, by=action.player)
        award = 2 if responder.king_flipped else 3
        _end_round(state, action.player, reason="assassinated", award=award)
        return

    assert pending.court_index is not None
    prevented = state.court.pop(pending.court_index)
    state.players[pending.actor].condemned.append(prevented.card)
    abilities.record_move(state, prevented.card, "court", "condemned", pending.actor)
    state.emit("ABILITY_PREVENTED", player=pending.actor, card=prevented.card, by=action.player)
    state.current_player = pending.actor
    if not play_slots(state, pending.actor) and not can_flip_king(state, pending.actor):
        _end_round(state, action.player, reason="no_legal_move")
        return
    state.emit("PLAY_AGAIN", player=pending.actor)


def _penalize_claim(state: GameState, exc: IllegalReactionClaim) -> None:
    state.emit("ILLEGAL_REACTION_CLAIM", player=exc.player, card=exc.card)
    pending = state.pending_reaction
    if state.phase != "reaction" or pending is None or pending.responder != exc.player:
        return
    cfg = state.config
    if cfg.illegal_claim_penalty == "forfeit_round":
        _close_window(state)
        state.emit("PENALTY_APPLIED", player=exc.player, penalty="forfeit_round")
        _end_round(state, pending.actor, reason="illegal_reaction_claim")
        return
    ps = state.players[exc.player]
    lost = min(ps.points, cfg.claim_penalty_points)
    ps.points -= lost
    state.emit("PENALTY_APPLIED", player=exc.player, penalty="lose_points", points=lost)
    _close_window(state)
    _continue_after_decline(state, pending)


def _select_cards(state: GameState, action: SelectCardsAction) -> None:
    sel = state.pending_selection
    _require(sel is not None, "No selection is pending.")
    assert sel is not None
    _require(sel.player == action.player, "Not your selection.")
    abilities.resolve_selection(state, tuple(action.indices))
    _finish_action(state)


def _guess_presence(state: GameState, action: GuessPresenceAction) -> None:
    sel = state.pending_selection
    _require(sel is not None, "No guess is pending.")
    assert sel is not None
    _require(sel.player == action.player, "Not your guess.")
    abilities.resolve_guess(state, action.present)
    _finish_action(state)


def _start_next_round(state: GameState, action: StartRoundAction) -> None:
    _require(state.phase == "round_over", "The round is still running.")
    start_round(state)


Handler = Callable[[GameState, Action], None]

_HANDLERS: dict[type, Handler] = {
    ChooseSignaturesAction: _choose_signatures,  # type: ignore[dict-item]
    DiscardToDungeonAction: _discard,  # type: ignore[dict-item]
    ChooseFirstPlayerAction: _choose_first,  # type: ignore[dict-item]
    RecruitAction: _recruit,  # type: ignore[dict-item]
    RecommissionAction: _recommission,  # type: ignore[dict-item]
    ChangeKingFacetAction: _change_facet,  # type: ignore[dict-item]
    EndMusterAction: _end_muster,  # type: ignore[dict-item]
    ChooseSuccessorAction: _choose_successor,  # type: ignore[dict-item]
    ChooseSquireAction: _choose_squire,  # type: ignore[dict-item]
    PlayCardAction: _play,  # type: ignore[dict-item]
    FlipKingAction: _flip_king,  # type: ignore[dict-item]
    ReactAction: _react,  # type: ignore[dict-item]
    DeclineReactionAction: _decline,  # type: ignore[dict-item]
    SelectCardsAction: _select_cards,  # type: ignore[dict-item]
    GuessPresenceAction: _guess_presence,  # type: ignore[dict-item]
    StartRoundAction: _start_next_round,  # type: ignore[dict-item]
}


def step(state: GameState, action: Action) -> StepResult:
    """Apply a single action to the game state.

    This mutates `state` in-place but remains deterministic for a given
    (seed, round setups, action sequence). Rejected actions leave the state unchanged,
    except that an illegal reaction claim inside an open window applies its penalty.
    """
    if state.phase in ("aborted", "game_over"):
        return _closed(state, action)

    # Log first so replay has a full record of attempted actions
    state.action_log.append(action)
    mark = len(state.event_log)
    try:
        handler = _HANDLERS.get(type(action))
        _require(handler is not None, "Unknown action.")
        assert handler is not None
        _check_player(action.player)
        handler(state, action)
    except IllegalReactionClaim as exc:
        _penalize_claim(state, exc)
        _settle(state)
        return StepResult(ok=False, events=state.event_log[mark:], error=str(exc), error_kind=exc.kind)
    except IllegalAction as exc:
        return StepResult(ok=False, events=[], error=str(exc), error_kind=exc.kind)
    _settle(state)
    return StepResult(ok=True, events=state.event_log[mark:])


def _closed(state: GameState, action: Action) -> StepResult:
    """Reject everything once the match is over. An unheld reaction claim is still reported as one."""
    mark = len(state.event_log)
    if isinstance(action, ReactAction) and action.player in (0, 1):
        try:
            verify_claim(state, action.player, action.card, action.stranger_target)
        except IllegalReactionClaim as exc:
            _penalize_claim(state, exc)
            return StepResult(ok=False, events=state.event_log[mark:], error=str(exc), error_kind=exc.kind)
        except IllegalAction:
            pass
    error = "Game aborted." if state.phase == "aborted" else "Match already ended."
    return StepResult(ok=False, events=[], error=error, error_kind="illegal_action")


def _settle(state: GameState) -> None:
    abilities.fire_zone_triggers(state)
    try:
        check_conservation(state)
    except InvariantViolation:
        state.phase = "aborted"
        state.emit("GAME_ABORTED", reason="invariant_violation")
        raise


def apply_action(state: GameState, action: Action) -> StepResult:
    return step(state, action)


def replay(
    catalog: CardCatalog,
    seed: int,
    actions: Iterable[Action],
    config: MatchConfig | None = None,
    *,
    signatures: Sequence[Sequence[str]] | None = None,
    setups: Iterable[RoundSetup] = (),
) -> GameState:
    state = new_match(catalog, seed, config, signatures=signatures, setups=setups)
    for a in actions:
        step(state, a)
        if state.phase in ("game_over", "aborted"):
            break
    return state


# ---------------------------------------------------------------------------
# Legal actions
# ---------------------------------------------------------------------------


def _first_indices(cards: Sequence[str]) -> list[int]:
    seen: set[str] = set()
    out: list[int] = []
    for i, c in enumerate(cards):
        if c not in seen:
            seen.add(c)
            out.append(i)
    return out


def _play_variants(state: GameState, player: int, source: PlaySource, index: int) -> list[Action]:
    ps = state.players[player]
    card = (ps.hand if source == "hand" else ps.antechamber)[index]
    ability = state.catalog.get(card).play_ability()
    if ability is None or ability.shape == "triggered":
        return [PlayCardAction(player, index, source, with_ability=ability is not None)]
    _, options, _ = _probe(state, player, source, index)
    out: list[Action] = [PlayCardAction(player, index, source, with_ability=False)]
    out.extend(PlayCardAction(player, index, source, with_ability=True, choice=c) for c in options)
    return out


def _turn_actions(state: GameState, player: int) -> list[Action]:
    ps = state.players[player]
    out: list[Action] = []
    slots = play_slots(state, player)
    for source in ("antechamber", "hand"):
        zone = ps.hand if source == "hand" else ps.antechamber
        for i in _first_indices(zone):
            if (source, i) in slots:
                out.extend(_play_variants(state, player, source, i))  # type: ignore[arg-type]
    if can_flip_king(state, player):
        out.append(FlipKingAction(player))
        if ps.king_facet == "MasterTactician" and ps.squire is not None:
            out.extend(FlipKingAction(player, rally=c) for c in sorted(set(ps.army)))
    return out


def _muster_actions(state: GameState, player: int) -> list[Action]:
    ps = state.players[player]
    out: list[Action] = [EndMusterAction(player)]
    out.extend(ChangeKingFacetAction(player, f) for f in KING_FACETS if f != ps.king_facet)
    army = sorted(set(ps.army))
    for i in _first_indices(ps.hand):
        for take in army:
            out.extend(RecruitAction(player, i, take, ex) for ex in army if ex != take)
    if ps.exhausted_army:
        pairs = sorted(set(combinations(sorted(ps.army), 2)))
        for recover in sorted(set(ps.exhausted_army)):
            out.extend(RecommissionAction(player, pair, recover) for pair in pairs)
    return out


def _reaction_actions(state: GameState, player: int, pending: PendingReaction) -> list[Action]:
    out: list[Action] = [DeclineReactionAction(player)]
    hand = state.players[player].hand
    for card in pending.eligible:
        if card not in hand:
            continue
        if card == "Stranger":
            out.extend(ReactAction(player, card, t) for t in stranger_targets(state, pending.trigger))
        else:
            out.append(ReactAction(player, card))
    return out


def legal_actions(state: GameState, player: int) -> list[Action]:
    """Every action `player` may submit right now. Empty when the engine is not waiting on them."""
    phase = state.phase
    ps = state.players[player]
    if phase == "select_signatures":
        if ps.signatures:
            return []
        combos = combinations(state.catalog.signature_cards, state.config.signature_count)
        return [ChooseSignaturesAction(player, combo) for combo in combos]
    if phase == "discard":
        if ps.dungeon is not None:
            return []
        return [DiscardToDungeonAction(player, i) for i in _first_indices(ps.hand)]
    if phase == "choose_first":
        if player != state.chooser:
            return []
        return [ChooseFirstPlayerAction(player, 0), ChooseFirstPlayerAction(player, 1)]
    if phase == "muster":
        return _muster_actions(state, player) if player == state.current_player else []
    if phase == "setup":
        out: list[Action] = []
        if ps.successor is None:
            out.extend(ChooseSuccessorAction(player, i) for i in _first_indices(ps.hand))
        if ps.king_facet == "MasterTactician" and ps.squire is None:
            out.extend(ChooseSquireAction(player, i) for i in _first_indices(ps.hand))
        return out
    if phase == "round_over":
        return [StartRoundAction(player)]
    if phase not in ("play", "reaction"):
        return []

    sel = state.pending_selection
    if sel is not None:
        if sel.player != player:
            return []
        if sel.kind == "nakturn_guess":
            return [GuessPresenceAction(player, True), GuessPresenceAction(player, False)]
        picks: list[Action] = []
        for k in range(sel.min_count, sel.max_count + 1):
            picks.extend(SelectCardsAction(player, combo) for combo in combinations(sel.options, k))
        return picks
    pending = state.pending_reaction
    if pending is not None:
        return _reaction_actions(state, player, pending) if player == pending.responder else []
    if player != state.current_player:
        return []
    return _turn_actions(state, player)
