"""Command-line interface for the yLiquid position resolver."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .config import load_config
from .errors import InvalidInputError, ResolverError
from .logging_setup import configure_logging
from .services import Resolver
from .services.report import (
    render_route,
    render_settlement,
    render_wallet_positions,
    render_yield,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="yliquid-resolver",
        description="Resolve yLiquid positions, routes and vault yield over JSON-RPC",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    positions_parser = sub.add_parser(
        "positions", help="Scan a wallet's position NFTs plus tracked ids"
    )
    positions_parser.add_argument("--wallet", default=None, help="Wallet address")

    yield_parser = sub.add_parser("yield", help="Vault yield and holdings")
    yield_parser.add_argument("--wallet", default=None, help="Wallet address")

    route_parser = sub.add_parser("route", help="Venue position, rates and open gate")
    route_parser.add_argument("route_id", help="Route id, e.g. aave-wsteth")
    route_parser.add_argument("--wallet", default=None, help="Wallet address")
    route_parser.add_argument(
        "--principal", default=None, help="WETH principal (default: suggested)"
    )
    route_parser.add_argument(
        "--collateral", default=None, help="Collateral amount (default: suggested)"
    )
    route_parser.add_argument(
        "--market-id", default=None, help="Morpho market id override (bytes32)"
    )

    track_parser = sub.add_parser("track", help="Manage manually tracked position ids")
    track_sub = track_parser.add_subparsers(dest="track_command")
    add_parser = track_sub.add_parser("add", help="Track a position id")
    add_parser.add_argument("token_id")
    remove_parser = track_sub.add_parser("remove", help="Stop tracking a position id")
    remove_parser.add_argument("token_id")
    track_sub.add_parser("list", help="List tracked position ids")

    settle_parser = sub.add_parser("settle", help="Settle a position and repay its debt")
    settle_parser.add_argument("token_id")
    settle_parser.add_argument("--wallet", default=None, help="Wallet address")

    return parser


def _track(resolver: Resolver, args: argparse.Namespace) -> str:
    if args.track_command == "add":
        ids = resolver.track(args.token_id)
    elif args.track_command == "remove":
        ids = resolver.untrack(args.token_id)
    else:
        ids = resolver.tracked_ids()
    if not ids:
        return "No tracked position ids."
    return "Tracked: " + ", ".join(f"#{tid}" for tid in ids)


async def _run(args: argparse.Namespace) -> int:
    """Execute the selected command; returns the process exit code."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    resolver = Resolver(config)

    try:
        if args.command == "positions":
            output = render_wallet_positions(await resolver.wallet_positions(args.wallet))
        elif args.command == "yield":
            output = render_yield(await resolver.yield_summary(args.wallet))
        elif args.command == "route":
            route = config.route(args.route_id)
            output = render_route(
                await resolver.route(
                    args.route_id,
                    args.wallet,
                    args.principal,
                    args.collateral,
                    args.market_id,
                ),
                label=route.label if route else "",
            )
        elif args.command == "track":
            output = _track(resolver, args)
        elif args.command == "settle":
            result = await resolver.settle(args.token_id, args.wallet)
            output = render_settlement(result, config.chain.explorer_url)
        else:
            build_parser().print_help()
            return 1
    except InvalidInputError as e:
        print(f"Invalid input: {e}", file=sys.stderr)
        return 2
    except ResolverError as e:
        logger.error("%s failed: %s", args.command, e)
        return 1

    print(output)
    return 0


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(_run(args)))
