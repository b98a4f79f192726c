from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Protocol

from .abilities import visible_cards
from .actions import (
    Action,
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
    SelectCardsAction,
)
from .errors import IllegalAction
from .match import legal_actions, step
from .state import GameState, StepResult
from .values import base_value, hand_value


class Policy(Protocol):
    def choose(self, state: GameState, player: int) -> Action: ...


@dataclass(frozen=True)
class AISpec:
    """Simple AI tuning parameters.

    difficulty:
      0 = easy (makes mistakes)
      1 = normal
      2 = hard (never picks at random)
    bluff_rate: chance to keep a held reaction card hidden instead of revealing it.
    """

    difficulty: int = 1
    bluff_rate: float = 0.0


class GreedyBot:
    """Greedy reference policy. Uses its own seeded RNG, never the game's."""

    def __init__(self, seed: int = 0, spec: AISpec | None = None) -> None:
        self.spec = spec or AISpec()
        self.rng = random.Random(seed)

    def choose(self, state: GameState, player: int) -> Action:
        actions = legal_actions(state, player)
        if not actions:
            raise IllegalAction(f"Player {player} has nothing to do.")
        mistake = {0: 0.25, 1: 0.05}.get(self.spec.difficulty, 0.0)
        if len(actions) > 1 and self.rng.random() < mistake:
            return self.rng.choice(actions)
        first = actions[0]
        if isinstance(first, ChooseSignaturesAction):
            return self.rng.choice(actions)
        if isinstance(first, (DiscardToDungeonAction, ChooseSuccessorAction, ChooseSquireAction)):
            return self._pick_setup(state, player, actions)
        if isinstance(first, ChooseFirstPlayerAction):
            return ChooseFirstPlayerAction(player, player)
        if isinstance(first, EndMusterAction):
            return first
        if isinstance(first, GuessPresenceAction):
            return self.rng.choice(actions)
        if isinstance(first, SelectCardsAction):
            return self._pick_selection(state, player, actions)
        if isinstance(first, DeclineReactionAction):
            reacts = [a for a in actions if isinstance(a, ReactAction)]
            if reacts and self.rng.random() >= self.spec.bluff_rate:
                return reacts[0]
            return first
        plays = [a for a in actions if isinstance(a, PlayCardAction)]
        if plays:
            return max(plays, key=lambda a: self._score_play(state, player, a))
        flips = [a for a in actions if isinstance(a, FlipKingAction)]
        return flips[0] if flips else first

    def _pick_setup(self, state: GameState, player: int, actions: list[Action]) -> Action:
        hand = state.players[player].hand

        def value(a: Action) -> int:
            assert isinstance(a, (DiscardToDungeonAction, ChooseSuccessorAction, ChooseSquireAction))
            return base_value(state, hand[a.hand_index])

        if isinstance(actions[0], DiscardToDungeonAction):
            return min(actions, key=value)
        # Keep the strongest card back as successor.
        successors = [a for a in actions if isinstance(a, ChooseSuccessorAction)]
        return max(successors or actions, key=value)

    def _pick_selection(self, state: GameState, player: int, actions: list[Action]) -> Action:
        sel = state.pending_selection
        assert sel is not None
        picks = [a for a in actions if isinstance(a, SelectCardsAction)]
        if sel.player == sel.actor:
            return max(picks, key=lambda a: len(a.indices))
        hand = state.players[player].hand
        return min(picks, key=lambda a: sum(base_value(state, hand[i]) for i in a.indices))

    def _score_play(self, state: GameState, player: int, a: PlayCardAction) -> float:
        ps = state.players[player]
        card = (ps.hand if a.source == "hand" else ps.antechamber)[a.index]
        # Lowest card that keeps the throne wins tempo.
        score = -float(hand_value(state, player, card))
        if a.with_ability:
            score += 2.5
        c = a.choice
        while c is not None and c.inner is not None:
            c = c.inner
        if c is not None:
            if c.card is not None and c.card not in visible_cards(state, player):
                score += base_value(state, c.card) / 10.0
            if c.number is not None:
                score += c.number / 20.0
            if c.court_index is not None and c.court_index < len(state.court):
                score += 0.1 * int(state.court[c.court_index].owner != player)
        return score


def ai_take_turn(state: GameState, player: int, bot: Policy | None = None, max_steps: int = 200) -> list[StepResult]:
    """Advance the game while `player` has something to do.

    The bot's own RNG keeps this deterministic for a given bot seed.
    """
    bot = bot or GreedyBot()
    results: list[StepResult] = []
    for _ in range(max_steps):
        if state.phase in ("game_over", "aborted") or not legal_actions(state, player):
            break
        results.append(step(state, bot.choose(state, player)))
    return results


def play_match(state: GameState, bots: tuple[Policy, Policy], max_steps: int = 20000) -> GameState:
    """Drive both seats with bots until the game ends or `max_steps` actions were taken."""
    for _ in range(max_steps):
        if state.phase in ("game_over", "aborted"):
            break
        order = (state.awaiting(), 1 - state.awaiting())
        for p in order:
            if legal_actions(state, p):
                step(state, bots[p].choose(state, p))
                break
        else:
            break
    return state
