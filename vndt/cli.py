"""Command-line interface: deploy a VNDT system and report on it."""
from __future__ import annotations

import argparse
import sys
from datetime import timedelta
from typing import Any

import yaml

from .config import load_config, parse_amount
from .core import PRECISION
from .deploy import VndtSystem, deploy_system
from .ledger import UNLIMITED_ALLOWANCE
from .logging_setup import configure_logging

# Report fields holding 18-decimal amounts; everything else prints as is.
FIXED_POINT_KEYS = frozenset({
    "eth_price", "total_collateral", "total_collateral_value", "total_debt_value",
    "total_debt_shares", "debt_exchange_rate", "token_supply", "total_staked_value",
    "collateral", "debt", "staked_value", "wallet_balance", "vault_balance", "total_supply",
})


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="vndt",
        description="VNDT stable-value ledger",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a deployment YAML file (default: built-in deployment)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("deploy", help="Deploy and print the deployment summary")

    demo_parser = sub.add_parser("demo", help="Borrow, stake and accrue for a number of days")
    demo_parser.add_argument("--collateral", default="1", help="ETH locked by the demo user (default: 1)")
    demo_parser.add_argument("--mint", default="1000", help="VNDT borrowed (default: 1000)")
    demo_parser.add_argument("--stake", default="500", help="VNDT staked (default: 500)")
    demo_parser.add_argument("--days", type=int, default=365, help="Days to accrue (default: 365)")

    return parser


def _format_fixed(value: int) -> str:
    whole, frac = divmod(value, PRECISION)
    return f"{whole}.{frac:018d}".rstrip("0").rstrip(".")


def _human(report: dict[str, Any]) -> dict[str, Any]:
    """Render fixed-point amounts as decimal strings for display."""
    rendered: dict[str, Any] = {}
    for key, value in report.items():
        if isinstance(value, dict):
            rendered[key] = _human(value)
        elif key in FIXED_POINT_KEYS and isinstance(value, int):
            rendered[key] = _format_fixed(value)
        else:
            rendered[key] = value
    return rendered


def run_demo(system: VndtSystem, collateral: int, mint: int, stake: int, days: int) -> dict[str, Any]:
    """Run one user through borrow, stake, accrue and report the outcome."""
    ledger = system.ledger
    user = "demo_user"
    token = system.token_symbol
    system.fund(user, collateral)
    system.engine.add_collateral(user, collateral)
    system.engine.mint_vndt(user, mint)
    ledger.approve(user, system.vault.wallet, token, UNLIMITED_ALLOWANCE)
    system.vault.stake(user, stake)

    ledger.advance_time(ledger.current_time + timedelta(days=days))
    system.vault.accrue_interest()
    system.engine.accrue_interest()

    position = system.engine.get_position(user)
    return {
        'user': user,
        'days': days,
        'collateral': position.collateral,
        'debt': position.debt_value,
        'ratio_percent': position.ratio,
        'staked_value': system.vault.balance_of_underlying(user),
        'wallet_balance': ledger.get_balance(user, token),
        'vault_balance': ledger.get_balance(system.vault.wallet, token),
        'total_supply': ledger.total_supply(token),
    }


def _run(args: argparse.Namespace) -> int:
    configure_logging(args.log_level)
    config = load_config(args.config)
    system = deploy_system(config)

    if args.command == "deploy":
        report = system.summary()
    else:
        report = run_demo(
            system,
            parse_amount(args.collateral, "--collateral"),
            parse_amount(args.mint, "--mint"),
            parse_amount(args.stake, "--stake"),
            args.days,
        )
    print(yaml.safe_dump(_human(report), sort_keys=False, allow_unicode=True), end="")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    return _run(args)


if __name__ == "__main__":
    sys.exit(main())
