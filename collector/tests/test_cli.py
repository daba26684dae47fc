"""
Unit tests for the collector command-line interface.

Tests verify:
- --ip / -i, --output / -o and --log-level are parsed.
- Flags override environment settings; absent flags keep them.
- Invalid log levels are rejected by the parser.

CHANGELOG:
- 2026-10-14: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import pytest
from collector.src.cli import apply_overrides, build_parser
from collector.src.config import CollectorSettings


class TestBuildParser:
    """Flag parsing."""

    def test_no_flags(self) -> None:
        args = build_parser().parse_args([])
        assert args.ip is None
        assert args.output is None
        assert args.log_level is None

    def test_long_flags(self) -> None:
        args = build_parser().parse_args(
            ["--ip", "10.0.0.5", "--output", "p1.csv", "--log-level", "debug"]
        )
        assert args.ip == "10.0.0.5"
        assert args.output == "p1.csv"
        assert args.log_level == "DEBUG"

    def test_short_flags(self) -> None:
        args = build_parser().parse_args(["-i", "10.0.0.5", "-o", "p1.csv"])
        assert args.ip == "10.0.0.5"
        assert args.output == "p1.csv"

    def test_invalid_log_level_exits(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--log-level", "chatty"])


class TestApplyOverrides:
    """CLI flags win over environment settings."""

    def test_flags_override_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("METER_HOST", "192.168.1.50")
        monkeypatch.setenv("CSV_PATH", "env.csv")
        args = build_parser().parse_args(["--ip", "10.0.0.5", "-o", "cli.csv"])

        settings = apply_overrides(CollectorSettings(), args)

        assert settings.meter_host == "10.0.0.5"
        assert settings.csv_path == "cli.csv"

    def test_absent_flags_keep_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("METER_HOST", "192.168.1.50")
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        args = build_parser().parse_args([])

        settings = apply_overrides(CollectorSettings(), args)

        assert settings.meter_host == "192.168.1.50"
        assert settings.log_level == "ERROR"

    def test_original_settings_untouched(self) -> None:
        base = CollectorSettings()
        args = build_parser().parse_args(["--ip", "10.0.0.5"])

        apply_overrides(base, args)

        assert base.meter_host is None

    def test_blank_ip_flag_means_discovery(self) -> None:
        args = build_parser().parse_args(["--ip", ""])
        assert apply_overrides(CollectorSettings(), args).meter_host is None
