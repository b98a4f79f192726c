from __future__ import annotations

from pathlib import Path

import pytest

from nersetti.main import main
from nersetti.services.telemetry import TelemetryService


def test_headless_match_writes_journal(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    journal = tmp_path / "match.jsonl"
    assert main(["--seed", "4", "--journal", str(journal)]) == 0
    out = capsys.readouterr().out
    assert "phase=game_over" in out
    records = TelemetryService(journal).read()
    assert records[0]["type"] == "table_opened"
    assert records[-1]["type"] == "table_closed"
