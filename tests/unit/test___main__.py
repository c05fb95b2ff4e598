"""Unit tests for eventseries.__main__ module.

Tests cover CLI argument parsing, rule expansion and description output, and
error handling.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from eventseries.__main__ import _create_parser, main


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every CLI test where no eventseries.yaml exists unless the test writes one."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _run(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


@pytest.mark.unit
class TestCreateParser:
    """Tests for argument parser creation."""

    def test_create_parser_when_called_then_returns_parser(self) -> None:
        parser = _create_parser()

        assert parser.prog == "eventseries"
        assert "wall-clock" in parser.description

    def test_create_parser_when_expand_then_collects_exclusions(self) -> None:
        args = _create_parser().parse_args(
            ["expand", "--rule", "FREQ=DAILY", "--start", "2023-01-01", "--exclude", "2023-01-02", "--exclude", "2023-01-03"]
        )

        assert args.command == "expand"
        assert args.exclude == ["2023-01-02", "2023-01-03"]
        assert args.count is None

    def test_create_parser_when_no_command_then_exits(self) -> None:
        with pytest.raises(SystemExit):
            _create_parser().parse_args([])

    def test_create_parser_when_invalid_count_then_exits(self) -> None:
        with pytest.raises(SystemExit):
            _create_parser().parse_args(["expand", "--rule", "FREQ=DAILY", "--start", "2023-01-01", "--count", "x"])


@pytest.mark.unit
class TestMain:
    """Tests for main entry point."""

    def test_main_when_expand_then_prints_occurrences(self, capsys: pytest.CaptureFixture[str]) -> None:
        code = _run(["expand", "--rule", "FREQ=DAILY", "--start", "2023-01-01T10:00:00Z", "--count", "2"])

        lines = capsys.readouterr().out.splitlines()
        assert code == 0
        assert lines == [
            "2023-01-01T10:00:00.000Z  2023-01-01 10:00 UTC",
            "2023-01-02T10:00:00.000Z  2023-01-02 10:00 UTC",
        ]

    def test_main_when_expand_across_fall_back_then_local_time_is_stable(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = _run(
            [
                "expand",
                "--rule",
                "FREQ=DAILY;COUNT=5",
                "--start",
                "2025-10-30T19:00:00-07:00",
                "--tz",
                "America/Vancouver",
            ]
        )

        lines = capsys.readouterr().out.splitlines()
        assert code == 0
        assert lines[2] == "2025-11-02T02:00:00.000Z  2025-11-01 19:00 PDT"
        assert lines[3] == "2025-11-03T03:00:00.000Z  2025-11-02 19:00 PST"

    def test_main_when_exclude_then_day_is_skipped(self, capsys: pytest.CaptureFixture[str]) -> None:
        _run(
            [
                "expand",
                "--rule",
                "FREQ=DAILY",
                "--start",
                "2023-01-01T10:00:00Z",
                "--count",
                "3",
                "--exclude",
                "2023-01-02",
            ]
        )

        days = [line.split("  ")[1][:10] for line in capsys.readouterr().out.splitlines()]
        assert days == ["2023-01-01", "2023-01-03", "2023-01-04"]

    def test_main_when_config_sets_zone_then_it_is_the_default(
        self, isolated_cwd: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        (isolated_cwd / "eventseries.yaml").write_text("default_time_zone: America/Vancouver\n")

        _run(["expand", "--rule", "FREQ=DAILY", "--start", "2025-10-16T02:00:00Z", "--count", "1"])

        assert capsys.readouterr().out.strip() == "2025-10-16T02:00:00.000Z  2025-10-15 19:00 PDT"

    def test_main_when_describe_then_prints_description(self, capsys: pytest.CaptureFixture[str]) -> None:
        code = _run(["describe", "--rule", "FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE;COUNT=5"])

        assert code == 0
        assert capsys.readouterr().out.strip() == "Every 2 weeks on Monday, Wednesday, 5 times"

    def test_main_when_rule_invalid_then_exits_two(self, capsys: pytest.CaptureFixture[str]) -> None:
        code = _run(["describe", "--rule", "INTERVAL=2"])

        assert code == 2
        assert "error: RRULE missing required FREQ parameter" in capsys.readouterr().err

    def test_main_when_time_zone_unknown_then_exits_two(self, capsys: pytest.CaptureFixture[str]) -> None:
        code = _run(["expand", "--rule", "FREQ=DAILY", "--start", "2023-01-01", "--tz", "Nowhere/City"])

        assert code == 2
        assert "Unknown timezone" in capsys.readouterr().err

    def test_main_when_start_unparseable_then_exits_two(self, capsys: pytest.CaptureFixture[str]) -> None:
        code = _run(["expand", "--rule", "FREQ=DAILY", "--start", "soon"])

        assert code == 2
        assert "error:" in capsys.readouterr().err
