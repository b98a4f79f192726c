"""Deterministic, headless rules engine for Nersetti.

IMPORTANT: This package performs no I/O. Content loading and journaling live in
`nersetti.services`.
"""

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
from .errors import EngineError, IllegalAction, IllegalReactionClaim, InvariantViolation, UnknownCard
from .match import apply_action, legal_actions, new_match, replay, start_round, step
from .state import GameState, MatchConfig, RoundSetup, StepResult
from .types import CardCatalog, CardDefinition, Keyword
from .values import effective_value

__all__ = [
    "AbilityChoice",
    "Action",
    "CardCatalog",
    "CardDefinition",
    "ChangeKingFacetAction",
    "ChooseFirstPlayerAction",
    "ChooseSignaturesAction",
    "ChooseSquireAction",
    "ChooseSuccessorAction",
    "DeclineReactionAction",
    "DiscardToDungeonAction",
    "EndMusterAction",
    "EngineError",
    "FlipKingAction",
    "GameState",
    "GuessPresenceAction",
    "IllegalAction",
    "IllegalReactionClaim",
    "InvariantViolation",
    "Keyword",
    "MatchConfig",
    "PlayCardAction",
    "ReactAction",
    "RecommissionAction",
    "RecruitAction",
    "RoundSetup",
    "SelectCardsAction",
    "StartRoundAction",
    "StepResult",
    "UnknownCard",
    "apply_action",
    "effective_value",
    "legal_actions",
    "new_match",
    "replay",
    "start_round",
    "step",
]
