from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Callable, Sequence
from dataclasses import asdict
from decimal import InvalidOperation
from uuid import uuid4

from lpvault.config import Settings
from lpvault.domain.errors import EngineError
from lpvault.domain.fixed_point import format_units, to_units
from lpvault.ledger.token import MAX_ALLOWANCE
from lpvault.logging_context import with_run_context
from lpvault.logging_utils import setup_logging
from lpvault.persistence.uow import UnitOfWorkFactory
from lpvault.runtime import StateIntegrityError, VaultSystem, load_system, save_system
from lpvault.services.market_state import assess_actions, read_market_state
from lpvault.services.operator_service import ActionLimitExceeded, ActionResult, OperatorService

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_REJECTED = 2

Handler = Callable[[VaultSystem, argparse.Namespace, Settings], dict[str, object]]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lpvault",
        description="Share vault and bonding curve ledger. Amounts are whole units (6 decimals).",
    )
    parser.add_argument("--db-path", default=None, help="State sqlite DB (defaults to STATE_DB_PATH)")
    parser.add_argument("--log-level", default=None, help="Overrides LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    status_parser = subparsers.add_parser("status", help="Show vault, curve and operator state")
    status_parser.add_argument("--holder", default=None, help="Also report this holder's balances")

    faucet_parser = subparsers.add_parser("faucet", help="Mint funding asset to an address")
    faucet_parser.add_argument("--to", required=True)
    faucet_parser.add_argument("--amount", required=True)

    approve_parser = subparsers.add_parser("approve", help="Approve a spender on the funding asset")
    approve_parser.add_argument("--owner", required=True)
    approve_parser.add_argument(
        "--spender", required=True, help="'vault', 'curve' or a ledger address"
    )
    approve_parser.add_argument("--amount", required=True, help="Whole units or 'max'")

    deposit_parser = subparsers.add_parser("deposit", help="Deposit funding asset for shares")
    deposit_parser.add_argument("--caller", required=True)
    deposit_parser.add_argument("--amount", required=True)
    deposit_parser.add_argument("--receiver", default=None, help="Defaults to the caller")

    redeem_parser = subparsers.add_parser("redeem", help="Redeem shares for funding asset")
    redeem_parser.add_argument("--caller", required=True)
    redeem_parser.add_argument("--shares", required=True)
    redeem_parser.add_argument("--receiver", default=None, help="Defaults to the caller")

    for name, help_text in (
        ("deploy", "Operator: move pool funds to the operator wallet"),
        ("return", "Operator: return managed funds to the pool"),
    ):
        operator_parser = subparsers.add_parser(name, help=help_text)
        operator_parser.add_argument("--amount", required=True)
        operator_parser.add_argument("--caller", default=None, help="Defaults to OPERATOR_ADDRESS")

    pnl_parser = subparsers.add_parser("report-pnl", help="Operator: report trading profit or loss")
    pnl_parser.add_argument("--amount", required=True)
    direction = pnl_parser.add_mutually_exclusive_group(required=True)
    direction.add_argument("--profit", action="store_true")
    direction.add_argument("--loss", action="store_true")
    pnl_parser.add_argument("--caller", default=None, help="Defaults to OPERATOR_ADDRESS")

    buy_parser = subparsers.add_parser("buy", help="Buy curve tokens with funding asset")
    buy_parser.add_argument("--caller", required=True)
    buy_parser.add_argument("--amount", required=True)

    sell_parser = subparsers.add_parser("sell", help="Sell curve tokens for funding asset")
    sell_parser.add_argument("--caller", required=True)
    sell_parser.add_argument("--tokens", required=True)

    quote_parser = subparsers.add_parser("quote", help="Price a buy or sell without executing it")
    side = quote_parser.add_mutually_exclusive_group(required=True)
    side.add_argument("--buy", default=None, help="Funding asset to spend")
    side.add_argument("--sell", default=None, help="Curve tokens to sell")

    route_parser = subparsers.add_parser(
        "route", help="Operator: capped routing actions between vault and curve"
    )
    route_parser.add_argument(
        "action", choices=["deploy_funds", "buy", "sell", "return_funds", "report_pnl"]
    )
    route_parser.add_argument("--amount", required=True)
    route_parser.add_argument(
        "--loss", action="store_true", help="report_pnl only: amount is a loss"
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings()
    setup_logging(args.log_level or settings.log_level)
    db_path = args.db_path or settings.state_db_path

    handler, read_only = _COMMANDS[args.command]
    with with_run_context(uuid4().hex):
        try:
            with UnitOfWorkFactory(db_path, read_only=read_only)() as uow:
                system = load_system(uow, settings)
                payload = handler(system, args, settings)
                if not read_only:
                    save_system(uow, system)
        except EngineError as exc:
            _emit(exc.to_payload())
            return EXIT_REJECTED
        except ActionLimitExceeded as exc:
            _emit({"error": "ACTION_LIMIT_EXCEEDED", "reason": str(exc)})
            return EXIT_REJECTED
        except (ValueError, InvalidOperation, TypeError) as exc:
            _emit({"error": "INVALID_INPUT", "reason": str(exc)})
            return EXIT_REJECTED
        except StateIntegrityError as exc:
            logger.exception("state_integrity_failure")
            _emit({"error": "STATE_INTEGRITY", "reason": str(exc)})
            return 1

    _emit(payload)
    return EXIT_OK


def _emit(payload: dict[str, object]) -> None:
    print(json.dumps(payload, sort_keys=True, default=str))


def _caller(system: VaultSystem, value: str | None) -> str:
    return value if value is not None else system.operator


def _result_payload(result: ActionResult) -> dict[str, object]:
    payload = asdict(result)
    payload["action"] = str(result.action)
    return payload


def cmd_status(system: VaultSystem, args: argparse.Namespace, settings: Settings) -> dict[str, object]:
    del settings
    state = read_market_state(system)
    payload: dict[str, object] = {
        "state": state.as_dict(),
        "actions": [asdict(item) for item in assess_actions(state)],
    }
    if args.holder:
        payload["holder"] = {
            "address": args.holder,
            system.asset.symbol: format_units(system.asset.balance_of(args.holder)),
            system.vault.shares.symbol: format_units(system.vault.balance_of(args.holder)),
            system.curve.token.symbol: format_units(system.curve.balance_of(args.holder)),
        }
    return payload


def cmd_faucet(system: VaultSystem, args: argparse.Namespace, settings: Settings) -> dict[str, object]:
    del settings
    amount = to_units(args.amount)
    system.asset.mint(system.faucet, args.to, amount)
    return {"to": args.to, "amount": format_units(amount)}


def cmd_approve(system: VaultSystem, args: argparse.Namespace, settings: Settings) -> dict[str, object]:
    del settings
    spender = {"vault": system.vault.address, "curve": system.curve.address}.get(
        args.spender, args.spender
    )
    amount = MAX_ALLOWANCE if args.amount == "max" else to_units(args.amount)
    system.asset.approve(args.owner, spender, amount)
    return {
        "owner": args.owner,
        "spender": spender,
        "amount": "max" if amount == MAX_ALLOWANCE else format_units(amount),
    }


def cmd_deposit(system: VaultSystem, args: argparse.Namespace, settings: Settings) -> dict[str, object]:
    del settings
    assets = to_units(args.amount)
    shares = system.vault.deposit(args.caller, assets, args.receiver or args.caller)
    return {"assets": format_units(assets), "shares": format_units(shares)}


def cmd_redeem(system: VaultSystem, args: argparse.Namespace, settings: Settings) -> dict[str, object]:
    del settings
    shares = to_units(args.shares)
    assets = system.vault.redeem(args.caller, shares, args.receiver or args.caller)
    return {"assets": format_units(assets), "shares": format_units(shares)}


def cmd_deploy(system: VaultSystem, args: argparse.Namespace, settings: Settings) -> dict[str, object]:
    del settings
    amount = to_units(args.amount)
    system.vault.deploy_funds(_caller(system, args.caller), amount)
    return {"deployed": format_units(amount), "managed_assets": format_units(system.vault.managed_assets)}


def cmd_return(system: VaultSystem, args: argparse.Namespace, settings: Settings) -> dict[str, object]:
    del settings
    amount = to_units(args.amount)
    system.vault.return_funds(_caller(system, args.caller), amount)
    return {"returned": format_units(amount), "managed_assets": format_units(system.vault.managed_assets)}


def cmd_report_pnl(system: VaultSystem, args: argparse.Namespace, settings: Settings) -> dict[str, object]:
    del settings
    amount = to_units(args.amount)
    signed = -amount if args.loss else amount
    system.vault.report_pnl(_caller(system, args.caller), signed)
    return {
        "pnl": format_units(signed),
        "managed_assets": format_units(system.vault.managed_assets),
        "share_price": format_units(system.vault.share_price()),
    }


def cmd_buy(system: VaultSystem, args: argparse.Namespace, settings: Settings) -> dict[str, object]:
    del settings
    fill = system.curve.buy(args.caller, to_units(args.amount))
    return {
        "tokens": format_units(fill.tokens),
        "cost": format_units(fill.stable_amount),
        "price_after": format_units(fill.price_after),
    }


def cmd_sell(system: VaultSystem, args: argparse.Namespace, settings: Settings) -> dict[str, object]:
    del settings
    fill = system.curve.sell(args.caller, to_units(args.tokens))
    return {
        "tokens": format_units(fill.tokens),
        "proceeds": format_units(fill.stable_amount),
        "price_after": format_units(fill.price_after),
    }


def cmd_quote(system: VaultSystem, args: argparse.Namespace, settings: Settings) -> dict[str, object]:
    del settings
    curve = system.curve
    if args.buy is not None:
        quote = curve.quote_buy(to_units(args.buy))
        return {
            "side": "buy",
            "tokens": format_units(quote.tokens),
            "cost": format_units(quote.stable_amount),
            "price_after": format_units(quote.price_after),
        }
    tokens = to_units(args.sell)
    return {
        "side": "sell",
        "tokens": format_units(tokens),
        "proceeds": format_units(curve.get_sell_return(tokens)),
        "price": format_units(curve.get_price()),
    }


def cmd_route(system: VaultSystem, args: argparse.Namespace, settings: Settings) -> dict[str, object]:
    service = OperatorService.from_settings(system, settings)
    amount = to_units(args.amount)
    if args.action == "deploy_funds":
        result = service.deploy_funds(amount)
    elif args.action == "buy":
        result = service.buy(amount)
    elif args.action == "sell":
        result = service.sell(amount)
    elif args.action == "return_funds":
        result = service.return_funds(amount)
    else:
        result = service.report_pnl(amount, is_profit=not args.loss)
    return _result_payload(result)


_COMMANDS: dict[str, tuple[Handler, bool]] = {
    "status": (cmd_status, True),
    "faucet": (cmd_faucet, False),
    "approve": (cmd_approve, False),
    "deposit": (cmd_deposit, False),
    "redeem": (cmd_redeem, False),
    "deploy": (cmd_deploy, False),
    "return": (cmd_return, False),
    "report-pnl": (cmd_report_pnl, False),
    "buy": (cmd_buy, False),
    "sell": (cmd_sell, False),
    "quote": (cmd_quote, True),
    "route": (cmd_route, False),
}


if __name__ == "__main__":
    sys.exit(main())
