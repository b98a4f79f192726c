from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from .errors import UnknownCard

Keyword = Literal["ImmuneToKingsHand", "Royalty", "Steadfast", "Reaction"]
KingFacet = Literal["Regular", "CharismaticLeader", "MasterTactician"]
Zone = Literal["hand", "antechamber", "court", "throne"]

Trigger = Literal["on_play", "on_enter_court", "on_leave_court", "on_king_flip", "reaction", "passive"]
AbilityShape = Literal["triggered", "activatable"]
ReactionTrigger = Literal["ability", "king_flip"]

# What the acting player has to supply when playing the card with its ability.
ChoiceKind = Literal[
    "none",
    "card_name",
    "number",
    "court_card",
    "hand_card",
    "court_and_hand",
    "army_cards",
    "copy",
]

KING_FACETS: tuple[KingFacet, ...] = ("Regular", "CharismaticLeader", "MasterTactician")


@dataclass(frozen=True)
class AbilityDescriptor:
    trigger: Trigger
    shape: AbilityShape
    text: str
    choice: ChoiceKind = "none"
    stoppable: bool = False
    reacts_to: tuple[ReactionTrigger, ...] = ()


@dataclass(frozen=True)
class CardDefinition:
    name: str
    display_name: str
    base_value: int
    keywords: tuple[Keyword, ...]
    abilities: tuple[AbilityDescriptor, ...]

    def has(self, kw: Keyword) -> bool:
        return kw in self.keywords

    def play_ability(self) -> AbilityDescriptor | None:
        for ab in self.abilities:
            if ab.trigger == "on_play":
                return ab
        return None

    def reaction_ability(self) -> AbilityDescriptor | None:
        for ab in self.abilities:
            if ab.trigger == "reaction":
                return ab
        return None

    @property
    def rules_text(self) -> str:
        return " ".join(ab.text for ab in self.abilities)


@dataclass(frozen=True)
class CardCatalog:
    """Immutable card catalog used by the engine.

    Besides per-card definitions it carries the deck lists the round setup is built from.
    """

    cards: dict[str, CardDefinition]
    base_deck: tuple[str, ...]
    base_army: tuple[str, ...]
    signature_cards: tuple[str, ...]

    def get(self, name: str) -> CardDefinition:
        try:
            return self.cards[name]
        except KeyError:
            raise UnknownCard(name) from None

    def all_names(self) -> Sequence[str]:
        return list(self.cards.keys())

    def reaction_cards(self) -> list[str]:
        return [c.name for c in self.cards.values() if c.reaction_ability() is not None]
