"""Unit tests for CLI argument parsing."""
from __future__ import annotations

from yliquid_resolver.cli import build_parser


class TestBuildParser:
    def test_positions_command(self) -> None:
        args = build_parser().parse_args(["positions", "--wallet", "0xabc"])
        assert args.command == "positions"
        assert args.wallet == "0xabc"

    def test_yield_command_default_wallet(self) -> None:
        args = build_parser().parse_args(["yield"])
        assert args.command == "yield"
        assert args.wallet is None

    def test_route_command(self) -> None:
        args = build_parser().parse_args(
            ["route", "aave-wsteth", "--principal", "1.5", "--collateral", "2"]
        )
        assert args.command == "route"
        assert args.route_id == "aave-wsteth"
        assert args.principal == "1.5"
        assert args.collateral == "2"
        assert args.market_id is None

    def test_track_subcommands(self) -> None:
        parser = build_parser()
        args = parser.parse_args(["track", "add", "42"])
        assert (args.command, args.track_command, args.token_id) == ("track", "add", "42")
        args = parser.parse_args(["track", "list"])
        assert args.track_command == "list"

    def test_settle_command(self) -> None:
        args = build_parser().parse_args(["settle", "7"])
        assert args.command == "settle"
        assert args.token_id == "7"

    def test_config_flag(self) -> None:
        args = build_parser().parse_args(["--config", "/tmp/c.yaml", "yield"])
        assert args.config == "/tmp/c.yaml"

    def test_log_level_flag(self) -> None:
        args = build_parser().parse_args(["--log-level", "DEBUG", "yield"])
        assert args.log_level == "DEBUG"

    def test_no_command(self) -> None:
        args = build_parser().parse_args([])
        assert args.command is None
