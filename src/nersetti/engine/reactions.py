"""Reaction prompter.

Whether a responder is asked about a reaction card is decided from public information
only: the card's known copy count for the round against the copies visible in public
zones. The responder's hand is read only after they answer "yes", to verify the claim.
"""

from __future__ import annotations

from .actions import AbilityChoice
from .errors import IllegalAction, IllegalReactionClaim
from .state import GameState, PendingReaction
from .types import ReactionTrigger


def public_sightings(state: GameState, card: str) -> int:
    """Copies of `card` both players can see right now. Armies are public, hands are not."""
    seen = sum(1 for e in state.court if e.card == card)
    seen += state.condemned.count(card)
    if state.accused == card:
        seen += 1
    for ps in state.players:
        seen += ps.condemned.count(card)
        seen += ps.army.count(card)
        seen += ps.exhausted_army.count(card)
        if ps.king_facet == "CharismaticLeader" and ps.successor == card:
            seen += 1
    return seen


def copies_in_round(state: GameState, card: str) -> int:
    return state.manifest.get(card, 0)


def could_hold(state: GameState, card: str) -> bool:
    return public_sightings(state, card) < copies_in_round(state, card)


def stranger_targets(state: GameState, trigger: ReactionTrigger) -> list[str]:
    """Reaction cards in court, off the throne, that answer `trigger`."""
    out: list[str] = []
    for e in state.court[:-1]:
        if e.card == "Stranger" or e.card in out:
            continue
        ab = state.catalog.get(e.card).reaction_ability()
        if ab is not None and trigger in ab.reacts_to:
            out.append(e.card)
    return out


def eligible_reactions(state: GameState, trigger: ReactionTrigger) -> tuple[str, ...]:
    """Every reaction card that could possibly answer `trigger`, in catalog order."""
    out: list[str] = []
    for card in state.catalog.reaction_cards():
        if card == "Stranger":
            if not stranger_targets(state, trigger):
                continue
        else:
            ab = state.catalog.get(card).reaction_ability()
            if ab is None or trigger not in ab.reacts_to:
                continue
        if could_hold(state, card):
            out.append(card)
    return tuple(out)


def open_window(
    state: GameState,
    trigger: ReactionTrigger,
    actor: int,
    *,
    card: str | None = None,
    court_index: int | None = None,
    choice: AbilityChoice | None = None,
) -> bool:
    """Prompt the actor's opponent if any reaction is possible. Returns True if a window opened."""
    responder = state.opponent(actor)
    eligible = eligible_reactions(state, trigger)
    if not eligible:
        return False
    state.pending_reaction = PendingReaction(
        trigger=trigger,
        actor=actor,
        responder=responder,
        eligible=eligible,
        card=card,
        court_index=court_index,
        choice=choice,
    )
    state.phase = "reaction"
    state.emit(
        "REACTION_WINDOW_OPENED",
        responder=responder,
        actor=actor,
        trigger=trigger,
        cards=list(eligible),
        played=card,
    )
    return True


def verify_claim(state: GameState, player: int, card: str, stranger_target: str | None) -> str:
    """Check a reaction claim. Returns the reaction that will resolve (the copied one for Stranger).

    Holding is checked first so an unheld claim is always an IllegalReactionClaim.
    """
    state.catalog.get(card)
    if card not in state.players[player].hand:
        raise IllegalReactionClaim(player, card)
    pending = state.pending_reaction
    if state.phase != "reaction" or pending is None:
        raise IllegalAction("No reaction window is open.")
    if pending.responder != player:
        raise IllegalAction("Not your reaction window.")
    if card not in pending.eligible:
        raise IllegalAction(f"{card} cannot answer this.")
    if card != "Stranger":
        if stranger_target is not None:
            raise IllegalAction("Only the Stranger copies a reaction.")
        return card
    if stranger_target is None or stranger_target not in stranger_targets(state, pending.trigger):
        raise IllegalAction("The Stranger must copy a reaction card in court off the throne.")
    return stranger_target
