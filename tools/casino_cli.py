#!/usr/bin/env python3
"""
ARKAINX Casino — Operator CLI

Usage:
    python -m tools.casino_cli games
    python -m tools.casino_cli simulate mines --rounds 50000 --params '{"mine_count": 5}'
    python -m tools.casino_cli verify --server-seed S --client-seed C --nonce 4 --count 3
    python -m tools.casino_cli balance u1 --history
    python -m tools.casino_cli faucet u1
    python -m tools.casino_cli credit u1 500 --reason "support refund" --admin ops
    python -m tools.casino_cli reveal u1 <seed-id>
    python -m tools.casino_cli disable wolf_gold
"""

import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from casino.errors import CasinoError
from casino.fairness import FairnessSeedManager
from casino.service import CasinoService
from config.casino_schema import GameType, parse_params
from config.database import Database
from config.settings import configure_logging
from sim_engine import get_engine

console = Console()


def cmd_games(svc: CasinoService, args):
    table = Table(title="ARKAINX Casino — Games")
    for col in ("Game", "Family", "RTP", "Bets", "RNG", "Enabled"):
        table.add_column(col)
    for g in svc.game_info():
        table.add_row(
            g["display_name"], g["family"], f"{g['rtp'] * 100:.2f}%",
            f"{g['min_bet']}–{g['max_bet']}", g["rng_source"],
            "✅" if g["enabled"] else "❌",
        )
    console.print(table)


def cmd_simulate(svc: CasinoService, args):
    engine = get_engine(args.game)
    try:
        params = parse_params(engine.game_type, json.loads(args.params)) if args.params else None
    except (ValueError, ValidationError) as e:
        console.print(f"❌ Bad --params: {e}")
        return 1
    with console.status(f"Simulating {args.rounds:,} rounds of {engine.display_name}..."):
        result = engine.simulate(params=params, rounds=args.rounds, seed=args.seed)
    r = result.to_dict()
    lo, hi = r["confidence_95"]
    console.print(Panel(
        f"RTP measured  {r['rtp_measured'] * 100:.2f}%  (nominal {r['rtp_nominal'] * 100:.2f}%)\n"
        f"95% interval  {lo * 100:.2f}% – {hi * 100:.2f}%\n"
        f"Hit rate      {r['hit_rate'] * 100:.2f}%\n"
        f"Max hit       {r['max_multiplier_hit']}x\n"
        f"Wagered       {r['total_wagered']:,}   Returned {r['total_returned']:,}",
        title=engine.display_name,
    ))
    table = Table(title="Distribution")
    table.add_column("Bucket")
    table.add_column("Share", justify="right")
    for bucket, share in r["distribution"].items():
        table.add_row(bucket, f"{share * 100:.2f}%")
    console.print(table)


def cmd_verify(svc: CasinoService, args):
    check = FairnessSeedManager.verify_round(
        args.server_seed, args.client_seed, args.nonce, args.count, args.hash)
    if check["commitment_valid"] is False:
        console.print("❌ Server seed does not match the published hash")
        return 1
    if check["commitment_valid"]:
        console.print("✅ Server seed matches the published hash")
    table = Table(title=f"Floats for nonce {args.nonce}")
    table.add_column("Counter", justify="right")
    table.add_column("Float")
    for i, f in enumerate(check["floats"]):
        table.add_row(str(i), f"{f:.10f}")
    console.print(table)


def cmd_balance(svc: CasinoService, args):
    balance = svc.ledger.get_balance(args.user)
    ledger_sum = svc.ledger.ledger_sum(args.user)
    mark = "✅" if balance == ledger_sum else "❌"
    console.print(f"{args.user}: {balance:,} tokens  {mark} ledger sum {ledger_sum:,}")
    if not args.history:
        return 0 if balance == ledger_sum else 1
    page = svc.ledger.transaction_history(args.user, page=args.page)
    table = Table(title=f"Transactions (page {page['page']}/{page['pages']}, {page['total']} total)")
    for col in ("ID", "Type", "Amount", "Balance", "Game", "At"):
        table.add_column(col)
    for t in page["transactions"]:
        table.add_row(str(t["id"]), t["type"], f"{t['amount']:+,}", f"{t['balance_after']:,}",
                      t["game_type"] or "", t["created_at"] or "")
    console.print(table)
    return 0 if balance == ledger_sum else 1


def _print_result(res, ok_message) -> int:
    if res.ok:
        console.print(f"✅ {ok_message(res.value)}")
        return 0
    console.print(f"❌ {res.error.code}: {res.error}")
    return 1


def cmd_faucet(svc: CasinoService, args):
    return _print_result(svc.ledger.claim_faucet(args.user),
                         lambda v: f"Faucet claimed, balance {v.new_balance:,}")


def cmd_credit(svc: CasinoService, args):
    op = svc.ledger.admin_debit if args.debit else svc.ledger.admin_credit
    return _print_result(op(args.user, args.amount, args.admin, args.reason),
                         lambda v: f"Balance now {v.new_balance:,}")


def cmd_reveal(svc: CasinoService, args):
    try:
        revealed = svc.fairness.reveal(args.user, args.seed_id)
    except CasinoError as e:
        console.print(f"❌ {e.code}: {e}")
        return 1
    console.print_json(json.dumps(revealed))


def cmd_toggle(svc: CasinoService, args):
    svc.set_game_enabled(args.game, args.command == "enable")
    console.print(f"✅ {args.game} {args.command}d")


def main(argv=None):
    parser = argparse.ArgumentParser(description="ARKAINX Casino operator tools")
    parser.add_argument("--db", type=str, default=None, help="SQLite path (default CASINO_DB_PATH)")
    parser.add_argument("--log-level", type=str, default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("games", help="List games, limits and switches")

    p = sub.add_parser("simulate", help="Monte Carlo RTP for one game")
    p.add_argument("game", choices=[g.value for g in GameType])
    p.add_argument("--rounds", type=int, default=100_000)
    p.add_argument("--seed", type=int, default=42)
    p.add_argument("--params", type=str, default=None, help="JSON round parameters")

    p = sub.add_parser("verify", help="Recompute the floats of a revealed round")
    p.add_argument("--server-seed", required=True)
    p.add_argument("--client-seed", required=True)
    p.add_argument("--nonce", type=int, required=True)
    p.add_argument("--count", type=int, default=5)
    p.add_argument("--hash", type=str, default=None, help="Published server seed hash")

    p = sub.add_parser("balance", help="Balance and ledger check")
    p.add_argument("user")
    p.add_argument("--history", action="store_true")
    p.add_argument("--page", type=int, default=1)

    p = sub.add_parser("faucet", help="Claim the faucet for a user")
    p.add_argument("user")

    p = sub.add_parser("credit", help="Admin credit (or --debit)")
    p.add_argument("user")
    p.add_argument("amount", type=int)
    p.add_argument("--reason", required=True)
    p.add_argument("--admin", default="cli")
    p.add_argument("--debit", action="store_true")

    p = sub.add_parser("reveal", help="Reveal and retire a fairness seed")
    p.add_argument("user")
    p.add_argument("seed_id")

    for name in ("enable", "disable"):
        p = sub.add_parser(name, help=f"{name.capitalize()} a game")
        p.add_argument("game", choices=[g.value for g in GameType])

    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    svc = CasinoService(Database(args.db))

    handlers = {
        "games": cmd_games,
        "simulate": cmd_simulate,
        "verify": cmd_verify,
        "balance": cmd_balance,
        "faucet": cmd_faucet,
        "credit": cmd_credit,
        "reveal": cmd_reveal,
        "enable": cmd_toggle,
        "disable": cmd_toggle,
    }
    return handlers[args.command](svc, args) or 0


if __name__ == "__main__":
    sys.exit(main())
