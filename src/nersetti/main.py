from __future__ import annotations

import argparse
from pathlib import Path

from nersetti.engine.ai import AISpec, GreedyBot
from nersetti.paths import get_paths
from nersetti.services.content import ContentService
from nersetti.services.table import Table
from nersetti.services.telemetry import TelemetryService


def main(argv: list[str] | None = None) -> int:
    """Seat two bots at a journaled table and play one match headlessly."""
    parser = argparse.ArgumentParser(prog="nersetti")
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument("--difficulty", type=int, default=1, choices=(0, 1, 2))
    parser.add_argument("--bluff-rate", type=float, default=0.0)
    parser.add_argument("--journal", type=Path, default=None)
    args = parser.parse_args(argv)

    paths = get_paths()
    content = ContentService(data_dir=paths.data_dir, schema_dir=paths.schema_dir)
    journal = args.journal or paths.journal_dir / f"match-{args.seed}.jsonl"
    telemetry = TelemetryService(journal)

    spec = AISpec(difficulty=args.difficulty, bluff_rate=args.bluff_rate)
    bots = (GreedyBot(seed=args.seed, spec=spec), GreedyBot(seed=args.seed + 1, spec=spec))
    table = Table.open(content.load_catalog(), args.seed, telemetry=telemetry)
    state = table.run_bots(bots)

    points = " - ".join(str(ps.points) for ps in state.players)
    print(f"seed={args.seed} phase={state.phase} winner={state.winner} points={points} rounds={state.round}")
    print(f"journal: {journal}")
    return 0 if state.phase == "game_over" else 1


if __name__ == "__main__":
    raise SystemExit(main())
