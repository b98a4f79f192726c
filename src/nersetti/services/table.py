from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from nersetti.engine.actions import Action
from nersetti.engine.ai import Policy
from nersetti.engine.errors import EngineError
from nersetti.engine.match import legal_actions, new_match, step
from nersetti.engine.serialize import action_from_dict, action_to_dict, events_for, view_for
from nersetti.engine.state import Event, GameState, MatchConfig, RoundSetup, StepResult
from nersetti.engine.types import CardCatalog

from .telemetry import TelemetryService


@dataclass
class Table:
    """Authoritative table: owns one game, applies submitted actions and journals the outcome.

    Transports talk to it with plain dicts (`submit_dict`) and read per-player views.
    """

    state: GameState
    telemetry: TelemetryService | None = None
    _cursor: list[int] = field(default_factory=lambda: [0, 0], init=False)

    @classmethod
    def open(
        cls,
        catalog: CardCatalog,
        seed: int,
        *,
        config: MatchConfig | None = None,
        signatures: Sequence[Sequence[str]] | None = None,
        setups: Sequence[RoundSetup] = (),
        telemetry: TelemetryService | None = None,
    ) -> "Table":
        state = new_match(catalog, seed, config, signatures=signatures, setups=setups)
        table = cls(state=state, telemetry=telemetry)
        table._journal("table_opened", {"seed": seed})
        table._journal_events(state.event_log)
        return table

    def _journal(self, event_type: str, payload: Mapping[str, object]) -> None:
        if self.telemetry is not None:
            self.telemetry.log(event_type, payload)

    def _journal_events(self, events: Sequence[Event]) -> None:
        if self.telemetry is not None:
            self.telemetry.log_events(events)

    def submit(self, action: Action) -> StepResult:
        try:
            res = step(self.state, action)
        except EngineError as e:
            self._journal("engine_error", {"kind": e.kind, "error": str(e), "action": action_to_dict(action)})
            raise
        self._journal_events(res.events)
        if not res.ok:
            self._journal(
                "action_rejected",
                {"kind": res.error_kind, "error": res.error, "action": action_to_dict(action)},
            )
        return res

    def submit_dict(self, payload: Mapping[str, Any]) -> StepResult:
        return self.submit(action_from_dict(payload))

    def view(self, player: int) -> dict[str, object]:
        return view_for(self.state, player)

    def pull_events(self, player: int) -> list[Event]:
        """Events `player` may see since their last pull."""
        start = self._cursor[player]
        self._cursor[player] = len(self.state.event_log)
        return events_for(self.state.event_log[start:], player)

    def legal_actions(self, player: int) -> list[dict[str, object]]:
        return [action_to_dict(a) for a in legal_actions(self.state, player)]

    def run_bots(self, bots: tuple[Policy, Policy], max_steps: int = 20000) -> GameState:
        """Drive both seats with bots until the game ends."""
        for _ in range(max_steps):
            if self.state.phase in ("game_over", "aborted"):
                break
            first = self.state.awaiting()
            for p in (first, 1 - first):
                if legal_actions(self.state, p):
                    self.submit(bots[p].choose(self.state, p))
                    break
            else:
                break
        self._journal("table_closed", {"phase": self.state.phase, "winner": self.state.winner})
        return self.state
