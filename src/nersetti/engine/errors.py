from __future__ import annotations

from typing import Literal

ErrorKind = Literal["illegal_action", "illegal_reaction_claim", "unknown_card", "invariant_violation"]


class EngineError(Exception):
    """Base class for every error the rules engine raises."""

    kind: ErrorKind = "illegal_action"


class IllegalAction(EngineError):
    """The action is not valid in the current phase/state. State is left unchanged."""

    kind: ErrorKind = "illegal_action"


class UnknownCard(EngineError, LookupError):
    """Catalog lookup for a card identity that was never registered."""

    kind: ErrorKind = "unknown_card"

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown card: {name!r}")
        self.name = name


class IllegalReactionClaim(EngineError):
    """A player claimed a reaction with a card they do not hold."""

    kind: ErrorKind = "illegal_reaction_claim"

    def __init__(self, player: int, card: str) -> None:
        super().__init__(f"Player {player} does not hold {card}.")
        self.player = player
        self.card = card


class InvariantViolation(EngineError):
    """Zone double occupancy or card count mismatch. Indicates a resolver bug."""

    kind: ErrorKind = "invariant_violation"
