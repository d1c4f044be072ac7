"""Tests for the command-line entry point."""

from __future__ import annotations

import argparse

import pytest

from control_server.cli import build_parser, create_source, main, validate_port, validate_positive_int
from control_server.config import Settings, get_settings
from control_server.rundown_source import FileRundownSource, HttpRundownSource, StaticRundownSource


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, episode_id=None, api_base_url="http://rundown.test")


class TestValidators:
    """argparse type validators."""

    def test_valid_port(self) -> None:
        assert validate_port("8770") == 8770

    @pytest.mark.parametrize("value", ["0", "65536", "http"])
    def test_invalid_port(self, value: str) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            validate_port(value)

    @pytest.mark.parametrize("value", ["0", "-5", "fast"])
    def test_invalid_positive_int(self, value: str) -> None:
        with pytest.raises(argparse.ArgumentTypeError):
            validate_positive_int(value)


class TestParser:
    """Argument parsing and source selection."""

    def test_defaults_come_from_settings(self, settings) -> None:
        args = build_parser(settings).parse_args(["--demo"])
        assert args.port == settings.control_port
        assert args.tick_ms == settings.tick_interval_ms
        assert args.api_base_url == "http://rundown.test"
        assert isinstance(create_source(args, settings), StaticRundownSource)

    def test_episode_source(self, settings) -> None:
        args = build_parser(settings).parse_args(["--episode", "42", "--tick-ms", "50"])
        source = create_source(args, settings)
        assert isinstance(source, HttpRundownSource)
        assert source.url == "http://rundown.test/api/episodes/42/segments"
        assert args.tick_ms == 50

    def test_file_source(self, settings) -> None:
        args = build_parser(settings).parse_args(["--rundown-file", "show.json"])
        assert isinstance(create_source(args, settings), FileRundownSource)

    def test_sources_are_exclusive(self, settings) -> None:
        with pytest.raises(SystemExit):
            build_parser(settings).parse_args(["--demo", "--episode", "42"])


class TestMain:
    """main() argument and configuration errors."""

    def test_requires_a_source(self, monkeypatch) -> None:
        monkeypatch.delenv("RUNDOWN_EPISODE_ID", raising=False)
        get_settings.cache_clear()
        try:
            with pytest.raises(SystemExit) as exc_info:
                main([])
            assert exc_info.value.code == 2
        finally:
            get_settings.cache_clear()

    def test_invalid_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("RUNDOWN_CONTROL_PORT", "99999")
        get_settings.cache_clear()
        try:
            assert main(["--demo"]) == 2
        finally:
            get_settings.cache_clear()
