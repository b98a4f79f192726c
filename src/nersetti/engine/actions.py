from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .types import KingFacet

PlaySource = Literal["hand", "antechamber"]


@dataclass(frozen=True)
class AbilityChoice:
    """Inputs the acting player commits to when playing a card with its ability.

    Only the fields the played card reads are set. `inner` is the choice for the
    ability a Stranger copies.
    """

    card: str | None = None
    number: int | None = None
    court_index: int | None = None
    hand_index: int | None = None
    army_cards: tuple[str, ...] = ()
    inner: "AbilityChoice | None" = None

    @staticmethod
    def name_card(card: str) -> "AbilityChoice":
        return AbilityChoice(card=card)

    @staticmethod
    def name_number(number: int) -> "AbilityChoice":
        return AbilityChoice(number=number)

    @staticmethod
    def court_card(court_index: int) -> "AbilityChoice":
        return AbilityChoice(court_index=court_index)

    @staticmethod
    def hand_card(hand_index: int) -> "AbilityChoice":
        return AbilityChoice(hand_index=hand_index)

    @staticmethod
    def exchange(court_index: int, hand_index: int) -> "AbilityChoice":
        return AbilityChoice(court_index=court_index, hand_index=hand_index)

    @staticmethod
    def from_army(*cards: str, hand_index: int | None = None) -> "AbilityChoice":
        return AbilityChoice(army_cards=tuple(cards), hand_index=hand_index)

    @staticmethod
    def copy(court_index: int, inner: "AbilityChoice | None" = None) -> "AbilityChoice":
        return AbilityChoice(court_index=court_index, inner=inner)


@dataclass(frozen=True)
class ChooseSignaturesAction:
    player: int
    cards: tuple[str, ...]


@dataclass(frozen=True)
class DiscardToDungeonAction:
    player: int
    hand_index: int


@dataclass(frozen=True)
class ChooseFirstPlayerAction:
    player: int
    first: int


@dataclass(frozen=True)
class RecruitAction:
    player: int
    hand_index: int
    army_card: str
    exhaust_card: str


@dataclass(frozen=True)
class RecommissionAction:
    player: int
    exhaust: tuple[str, str]
    recover: str


@dataclass(frozen=True)
class ChangeKingFacetAction:
    player: int
    facet: KingFacet


@dataclass(frozen=True)
class EndMusterAction:
    player: int


@dataclass(frozen=True)
class ChooseSuccessorAction:
    player: int
    hand_index: int


@dataclass(frozen=True)
class ChooseSquireAction:
    player: int
    hand_index: int


@dataclass(frozen=True)
class PlayCardAction:
    player: int
    index: int
    source: PlaySource = "hand"
    with_ability: bool = True
    choice: AbilityChoice | None = None


@dataclass(frozen=True)
class FlipKingAction:
    player: int
    rally: str | None = None  # Master Tactician only: rallied instead of taking the squire


@dataclass(frozen=True)
class ReactAction:
    player: int
    card: str
    stranger_target: str | None = None


@dataclass(frozen=True)
class DeclineReactionAction:
    player: int


@dataclass(frozen=True)
class SelectCardsAction:
    player: int
    indices: tuple[int, ...] = ()


@dataclass(frozen=True)
class GuessPresenceAction:
    player: int
    present: bool


@dataclass(frozen=True)
class StartRoundAction:
    player: int


Action = (
    ChooseSignaturesAction
    | DiscardToDungeonAction
    | ChooseFirstPlayerAction
    | RecruitAction
    | RecommissionAction
    | ChangeKingFacetAction
    | EndMusterAction
    | ChooseSuccessorAction
    | ChooseSquireAction
    | PlayCardAction
    | FlipKingAction
    | ReactAction
    | DeclineReactionAction
    | SelectCardsAction
    | GuessPresenceAction
    | StartRoundAction
)
