from __future__ import annotations

import random
from collections import Counter
from dataclasses import dataclass, field
from typing import Literal

from .actions import AbilityChoice, Action, PlaySource
from .errors import InvariantViolation
from .types import CardCatalog, KingFacet, ReactionTrigger

Event = dict[str, object]

Phase = Literal[
    "select_signatures",
    "discard",
    "choose_first",
    "muster",
    "setup",
    "play",
    "reaction",
    "round_over",
    "game_over",
    "aborted",
]

ClaimPenalty = Literal["forfeit_round", "lose_points"]

SelectionKind = Literal[
    "princess_swap",
    "executioner_condemn",
    "oracle_reveal",
    "oracle_pick",
    "nakturn_guess",
    "nakturn_condemn",
    "soldier_disgrace",
    "judge_antechamber",
    "flagbearer_return",
]


@dataclass(frozen=True)
class MatchConfig:
    hand_size: int = 9
    points_to_win: int = 7
    signature_count: int = 3
    warden_court_threshold: int = 4
    soldier_disgrace_limit: int = 3
    oracle_reveal_count: int = 2
    illegal_claim_penalty: ClaimPenalty = "forfeit_round"
    claim_penalty_points: int = 1


@dataclass(frozen=True)
class RoundSetup:
    """Fixed deal for one round (hands for both players and the accused card)."""

    hands: tuple[tuple[str, ...], tuple[str, ...]]
    accused: str


@dataclass
class TimedEffect:
    active: bool = False
    turns_remaining: int = 0
    affected: set[str] = field(default_factory=set)


@dataclass
class PlayerState:
    hand: list[str] = field(default_factory=list)
    antechamber: list[str] = field(default_factory=list)
    condemned: list[str] = field(default_factory=list)
    army: list[str] = field(default_factory=list)
    exhausted_army: list[str] = field(default_factory=list)
    successor: str | None = None
    squire: str | None = None
    dungeon: str | None = None
    king_facet: KingFacet = "Regular"
    king_flipped: bool = False
    points: int = 0
    conspiracy: TimedEffect = field(default_factory=TimedEffect)
    signatures: tuple[str, ...] = ()
    left_army: list[str] = field(default_factory=list)  # exhausted at round end
    mustered: bool = False


@dataclass
class CourtEntry:
    card: str
    owner: int
    disgraced: bool = False
    mask: str | None = None  # name copied by a Stranger
    bonus: int = 0
    throne_bonus: int = 0
    steadfast: bool = False

    @property
    def identity(self) -> str:
        return self.mask or self.card


@dataclass
class PendingForcedPlay:
    player: int
    immune: bool = True
    reason: str = "Oathbound"


@dataclass
class PendingReaction:
    trigger: ReactionTrigger
    actor: int
    responder: int
    eligible: tuple[str, ...]
    card: str | None = None
    court_index: int | None = None
    choice: AbilityChoice | None = None
    source: PlaySource = "hand"
    prev_value: int = 0
    played_value: int = 0
    rally: str | None = None


@dataclass
class PendingSelection:
    kind: SelectionKind
    player: int
    actor: int
    options: tuple[int, ...]
    min_count: int = 1
    max_count: int = 1
    data: dict[str, object] = field(default_factory=dict)


@dataclass
class StepResult:
    ok: bool
    events: list[Event]
    error: str | None = None
    error_kind: str | None = None


@dataclass
class GameState:
    catalog: CardCatalog
    config: MatchConfig
    seed: int
    rng: random.Random
    players: list[PlayerState]
    phase: Phase = "select_signatures"
    current_player: int = 0
    round: int = 0
    true_king: int = 0
    chooser: int = 0
    first_player: int | None = None
    court: list[CourtEntry] = field(default_factory=list)
    accused: str | None = None
    condemned: list[str] = field(default_factory=list)
    set_aside: list[str] = field(default_factory=list)
    manifest: dict[str, int] = field(default_factory=dict)
    mystic_number: int | None = None
    exile_owner: int | None = None
    pending_reaction: PendingReaction | None = None
    pending_forced: PendingForcedPlay | None = None
    pending_selection: PendingSelection | None = None
    round_winner: int | None = None
    winner: int | None = None
    action_log: list[Action] = field(default_factory=list)
    event_log: list[Event] = field(default_factory=list)
    pending_moves: list[tuple[str, str, str, int]] = field(default_factory=list)
    queued_setups: list[RoundSetup] = field(default_factory=list)

    def opponent(self, player: int) -> int:
        return 1 - player

    def throne(self) -> CourtEntry | None:
        return self.court[-1] if self.court else None

    def emit(self, event_type: str, **fields: object) -> Event:
        ev: Event = {"type": event_type}
        ev.update(fields)
        self.event_log.append(ev)
        return ev

    def awaiting(self) -> int:
        """Index of the player whose input the engine is waiting for."""
        if self.pending_selection is not None:
            return self.pending_selection.player
        if self.pending_reaction is not None:
            return self.pending_reaction.responder
        return self.current_player


def zone_counts(state: GameState) -> Counter[str]:
    counts: Counter[str] = Counter()
    for ps in state.players:
        counts.update(ps.hand)
        counts.update(ps.antechamber)
        counts.update(ps.condemned)
        counts.update(ps.army)
        counts.update(ps.exhausted_army)
        for single in (ps.successor, ps.squire, ps.dungeon):
            if single is not None:
                counts[single] += 1
    counts.update(e.card for e in state.court)
    counts.update(state.condemned)
    counts.update(state.set_aside)
    if state.accused is not None:
        counts[state.accused] += 1
    return counts


def check_conservation(state: GameState) -> None:
    """Every card identity in the round sits in exactly one zone."""
    if not state.manifest:
        return
    counts = zone_counts(state)
    if counts != Counter(state.manifest):
        missing = Counter(state.manifest) - counts
        extra = counts - Counter(state.manifest)
        raise InvariantViolation(
            f"Zone conservation broken (missing={dict(missing)}, extra={dict(extra)})"
        )
    if state.current_player not in (0, 1):
        raise InvariantViolation(f"current_player out of range: {state.current_player}")
