from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from .actions import (
    AbilityChoice,
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
    ReactAction,
    RecommissionAction,
    RecruitAction,
    SelectCardsAction,
    StartRoundAction,
)
from .errors import IllegalAction
from .state import CourtEntry, Event, GameState, PlayerState
from .types import CardCatalog
from .values import court_value, hand_value


def choice_to_dict(c: AbilityChoice | None) -> dict[str, object] | None:
    if c is None:
        return None
    return {
        "card": c.card,
        "number": c.number,
        "court_index": c.court_index,
        "hand_index": c.hand_index,
        "army_cards": list(c.army_cards),
        "inner": choice_to_dict(c.inner),
    }


def choice_from_dict(d: Mapping[str, Any] | None) -> AbilityChoice | None:
    if d is None:
        return None
    return AbilityChoice(
        card=d.get("card"),
        number=d.get("number"),
        court_index=d.get("court_index"),
        hand_index=d.get("hand_index"),
        army_cards=tuple(d.get("army_cards") or ()),
        inner=choice_from_dict(d.get("inner")),
    )


def action_to_dict(a: Action) -> dict[str, object]:
    if isinstance(a, PlayCardAction):
        return {
            "type": "play",
            "player": a.player,
            "index": a.index,
            "source": a.source,
            "with_ability": a.with_ability,
            "choice": choice_to_dict(a.choice),
        }
    if isinstance(a, FlipKingAction):
        return {"type": "flip_king", "player": a.player, "rally": a.rally}
    if isinstance(a, ReactAction):
        return {"type": "react", "player": a.player, "card": a.card, "stranger_target": a.stranger_target}
    if isinstance(a, DeclineReactionAction):
        return {"type": "decline_reaction", "player": a.player}
    if isinstance(a, SelectCardsAction):
        return {"type": "select", "player": a.player, "indices": list(a.indices)}
    if isinstance(a, GuessPresenceAction):
        return {"type": "guess_presence", "player": a.player, "present": a.present}
    if isinstance(a, ChooseSignaturesAction):
        return {"type": "choose_signatures", "player": a.player, "cards": list(a.cards)}
    if isinstance(a, DiscardToDungeonAction):
        return {"type": "discard", "player": a.player, "hand_index": a.hand_index}
    if isinstance(a, ChooseFirstPlayerAction):
        return {"type": "choose_first", "player": a.player, "first": a.first}
    if isinstance(a, RecruitAction):
        return {
            "type": "recruit",
            "player": a.player,
            "hand_index": a.hand_index,
            "army_card": a.army_card,
            "exhaust_card": a.exhaust_card,
        }
    if isinstance(a, RecommissionAction):
        return {"type": "recommission", "player": a.player, "exhaust": list(a.exhaust), "recover": a.recover}
    if isinstance(a, ChangeKingFacetAction):
        return {"type": "change_facet", "player": a.player, "facet": a.facet}
    if isinstance(a, EndMusterAction):
        return {"type": "end_muster", "player": a.player}
    if isinstance(a, ChooseSuccessorAction):
        return {"type": "choose_successor", "player": a.player, "hand_index": a.hand_index}
    if isinstance(a, ChooseSquireAction):
        return {"type": "choose_squire", "player": a.player, "hand_index": a.hand_index}
    if isinstance(a, StartRoundAction):
        return {"type": "start_round", "player": a.player}
    # should be unreachable
    return {"type": "unknown"}


def action_from_dict(d: Mapping[str, Any]) -> Action:
    """Inverse of `action_to_dict`. Raises IllegalAction for unknown or malformed payloads."""
    kind = d.get("type")
    try:
        player = int(d["player"])
        if kind == "play":
            return PlayCardAction(
                player=player,
                index=int(d["index"]),
                source=d.get("source", "hand"),
                with_ability=bool(d.get("with_ability", True)),
                choice=choice_from_dict(d.get("choice")),
            )
        if kind == "flip_king":
            return FlipKingAction(player, d.get("rally"))
        if kind == "react":
            return ReactAction(player, str(d["card"]), d.get("stranger_target"))
        if kind == "decline_reaction":
            return DeclineReactionAction(player)
        if kind == "select":
            return SelectCardsAction(player, tuple(int(i) for i in d.get("indices", ())))
        if kind == "guess_presence":
            return GuessPresenceAction(player, bool(d["present"]))
        if kind == "choose_signatures":
            return ChooseSignaturesAction(player, tuple(d["cards"]))
        if kind == "discard":
            return DiscardToDungeonAction(player, int(d["hand_index"]))
        if kind == "choose_first":
            return ChooseFirstPlayerAction(player, int(d["first"]))
        if kind == "recruit":
            return RecruitAction(player, int(d["hand_index"]), str(d["army_card"]), str(d["exhaust_card"]))
        if kind == "recommission":
            a, b = d["exhaust"]
            return RecommissionAction(player, (str(a), str(b)), str(d["recover"]))
        if kind == "change_facet":
            return ChangeKingFacetAction(player, d["facet"])
        if kind == "end_muster":
            return EndMusterAction(player)
        if kind == "choose_successor":
            return ChooseSuccessorAction(player, int(d["hand_index"]))
        if kind == "choose_squire":
            return ChooseSquireAction(player, int(d["hand_index"]))
        if kind == "start_round":
            return StartRoundAction(player)
    except (KeyError, TypeError, ValueError) as e:
        raise IllegalAction(f"Malformed action payload: {e}") from e
    raise IllegalAction(f"Unknown action type: {kind!r}")


def _entry_to_dict(state: GameState, index: int, e: CourtEntry) -> dict[str, object]:
    return {
        "card": e.card,
        "as": e.mask,
        "owner": e.owner,
        "disgraced": e.disgraced,
        "value": court_value(state, index),
    }


def _player_to_dict(p: PlayerState) -> dict[str, object]:
    return {
        "hand": list(p.hand),
        "antechamber": list(p.antechamber),
        "condemned": list(p.condemned),
        "army": list(p.army),
        "exhausted_army": list(p.exhausted_army),
        "successor": p.successor,
        "squire": p.squire,
        "dungeon": p.dungeon,
        "king_facet": p.king_facet,
        "king_flipped": p.king_flipped,
        "points": p.points,
        "signatures": list(p.signatures),
        "conspiracy_turns": p.conspiracy.turns_remaining if p.conspiracy.active else 0,
    }


def snapshot(state: GameState) -> dict[str, object]:
    """Return a JSON-serializable canonical snapshot of the current game state."""
    return {
        "seed": state.seed,
        "round": state.round,
        "phase": state.phase,
        "current_player": state.current_player,
        "true_king": state.true_king,
        "first_player": state.first_player,
        "winner": state.winner,
        "accused": state.accused,
        "court": [_entry_to_dict(state, i, e) for i, e in enumerate(state.court)],
        "condemned": list(state.condemned),
        "set_aside": list(state.set_aside),
        "mystic_number": state.mystic_number,
        "exile_owner": state.exile_owner,
        "players": [_player_to_dict(p) for p in state.players],
        "action_log": [action_to_dict(a) for a in state.action_log],
    }


def view_for(state: GameState, player: int) -> dict[str, object]:
    """The board as `player` may see it: the other player's hidden zones become counts."""
    me = state.players[player]
    them = state.players[state.opponent(player)]
    sel = state.pending_selection
    pending = state.pending_reaction
    return {
        "round": state.round,
        "phase": state.phase,
        "current_player": state.current_player,
        "awaiting": state.awaiting(),
        "accused": state.accused,
        "court": [_entry_to_dict(state, i, e) for i, e in enumerate(state.court)],
        "condemned": list(state.condemned),
        "mystic_number": state.mystic_number,
        "me": {
            **_player_to_dict(me),
            "hand_values": [hand_value(state, player, c) for c in me.hand],
        },
        "opponent": {
            "hand_count": len(them.hand),
            "antechamber": list(them.antechamber),
            "condemned": list(them.condemned),
            "army": list(them.army),
            "exhausted_army": list(them.exhausted_army),
            "has_successor": them.successor is not None,
            "successor": them.successor if them.king_facet == "CharismaticLeader" else None,
            "has_squire": them.squire is not None,
            "has_dungeon": them.dungeon is not None,
            "king_facet": them.king_facet,
            "king_flipped": them.king_flipped,
            "points": them.points,
        },
        "reaction_prompt": (
            {"trigger": pending.trigger, "cards": list(pending.eligible), "played": pending.card}
            if pending is not None and pending.responder == player
            else None
        ),
        "selection": (
            {"kind": sel.kind, "options": list(sel.options), "min": sel.min_count, "max": sel.max_count}
            if sel is not None and sel.player == player
            else None
        ),
    }


def events_for(events: Iterable[Event], player: int) -> list[Event]:
    """Drop events addressed privately to the other player."""
    return [ev for ev in events if ev.get("to", player) == player]


def describe_card(catalog: CardCatalog, name: str) -> dict[str, object]:
    card = catalog.get(name)
    return {
        "name": card.name,
        "display_name": card.display_name,
        "base_value": card.base_value,
        "keywords": list(card.keywords),
        "text": card.rules_text,
    }
