"""
ARKAINX Casino — Wallet Ledger

Integer token balances with an append-only transaction log. Every
balance change writes exactly one `transactions` row in the same SQLite
transaction, so at any instant

    wallets.balance == SUM(transactions.amount)     (per user)

and the newest row's balance_after equals the wallet balance.

Serialization: each mutation runs under the user's lock *and* inside
BEGIN IMMEDIATE. Callers that need several steps to be one unit (bet +
session create, payout + session finalize) pass their open transaction
as `conn=` and hold the user lock themselves.

Transaction types and sign of `amount`:
    BET, ADMIN_DEBIT               negative
    WIN, ADMIN_CREDIT, FAUCET,
    REFUND                         positive

Usage:
    from casino.ledger import WalletLedger
    ledger = WalletLedger(db)
    ledger.ensure_wallet("u1")
    ledger.claim_faucet("u1")
    res = ledger.place_bet("u1", 100, "dice")
    if res.ok:
        print(res.value.new_balance)
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from casino.errors import InsufficientBalance, InvalidAction, InvalidBetAmount, Result
from casino.locks import UserLocks
from config.database import Database, DatabaseConnection
from config.settings import CasinoConfig

logger = logging.getLogger("arkainx.ledger")

BET = "BET"
WIN = "WIN"
ADMIN_CREDIT = "ADMIN_CREDIT"
ADMIN_DEBIT = "ADMIN_DEBIT"
FAUCET = "FAUCET"
REFUND = "REFUND"

TRANSACTION_TYPES = (BET, WIN, ADMIN_CREDIT, ADMIN_DEBIT, FAUCET, REFUND)
DEBIT_TYPES = (BET, ADMIN_DEBIT)


@dataclass
class TransactionResult:
    new_balance: int
    transaction_id: Optional[int] = None


def _game_key(game_type) -> Optional[str]:
    if game_type is None:
        return None
    return getattr(game_type, "value", game_type)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class WalletLedger:
    """Balance primitives. Failures come back as Result, never half-applied."""

    def __init__(self, db: Database, locks: UserLocks = None):
        self.db = db
        self.locks = locks or UserLocks()

    # ─── Core mutation ────────────────────────────────────────

    def _apply(self, tx: DatabaseConnection, user_id: str, tx_type: str, amount: int,
               game_type=None, meta: dict = None) -> TransactionResult:
        """Debit or credit `amount` (> 0) and append the matching row.

        Raises InsufficientBalance before any write if a debit would go
        below zero. Must run inside an open transaction.
        """
        row = tx.execute("SELECT balance FROM wallets WHERE user_id=?", (user_id,)).fetchone()
        balance = row["balance"] if row else 0
        signed = -amount if tx_type in DEBIT_TYPES else amount
        new_balance = balance + signed
        if new_balance < 0:
            raise InsufficientBalance(balance=balance, required=amount)

        if row is None:
            tx.execute("INSERT INTO wallets (user_id, balance) VALUES (?, 0)", (user_id,))
        tx.execute(
            "UPDATE wallets SET balance=?, updated_at=datetime('now') WHERE user_id=?",
            (new_balance, user_id),
        )
        tx.execute(
            """INSERT INTO transactions
               (user_id, type, amount, balance_after, game_type, metadata_json)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (user_id, tx_type, signed, new_balance, _game_key(game_type),
             json.dumps(meta) if meta else None),
        )
        tx_id = tx.lastrowid
        logger.info(f"{tx_type} {signed:+d} for {user_id}"
                    f"{' on ' + _game_key(game_type) if game_type else ''} → {new_balance}")
        return TransactionResult(new_balance=new_balance, transaction_id=tx_id)

    def _mutate(self, user_id: str, tx_type: str, amount: int, game_type=None,
                meta: dict = None, conn: DatabaseConnection = None) -> Result:
        with self.locks.hold(user_id):
            try:
                with self.db.transaction(conn) as tx:
                    return Result.success(self._apply(tx, user_id, tx_type, amount, game_type, meta))
            except InsufficientBalance as e:
                logger.warning(f"{tx_type} rejected for {user_id}: {e}")
                return Result.failure(e)

    # ─── Public primitives ────────────────────────────────────

    def ensure_wallet(self, user_id: str, initial_balance: int = 0,
                      admin_id: str = "system") -> int:
        """Create the wallet if missing. An opening balance is booked as
        ADMIN_CREDIT so the ledger sums from the first row."""
        with self.locks.hold(user_id):
            with self.db.transaction() as tx:
                row = tx.execute("SELECT balance FROM wallets WHERE user_id=?", (user_id,)).fetchone()
                if row:
                    return row["balance"]
                tx.execute("INSERT INTO wallets (user_id, balance) VALUES (?, 0)", (user_id,))
                if initial_balance > 0:
                    return self._apply(tx, user_id, ADMIN_CREDIT, initial_balance,
                                       meta={"adminId": admin_id, "reason": "opening balance"}).new_balance
                return 0

    def get_balance(self, user_id: str, conn: DatabaseConnection = None) -> int:
        with self.db.read(conn) as db:
            row = db.execute("SELECT balance FROM wallets WHERE user_id=?", (user_id,)).fetchone()
        return row["balance"] if row else 0

    def place_bet(self, user_id: str, amount: int, game_type, meta: dict = None,
                  conn: DatabaseConnection = None) -> Result:
        if not isinstance(amount, int) or amount <= 0:
            return Result.failure(InvalidBetAmount("Bet amount must be positive"))
        return self._mutate(user_id, BET, amount, game_type, meta, conn)

    def credit_winnings(self, user_id: str, amount: int, game_type, meta: dict = None,
                        conn: DatabaseConnection = None) -> Result:
        """Nothing to credit (≤ 0) is a successful no-op with no row written."""
        if amount <= 0:
            return Result.success(TransactionResult(new_balance=self.get_balance(user_id, conn)))
        return self._mutate(user_id, WIN, amount, game_type, meta, conn)

    def refund(self, user_id: str, amount: int, game_type, reason: str,
               conn: DatabaseConnection = None) -> Result:
        if amount <= 0:
            return Result.failure(InvalidAction("Refund amount must be positive"))
        return self._mutate(user_id, REFUND, amount, game_type, {"reason": reason}, conn)

    # ─── Admin ────────────────────────────────────────────────

    def _admin(self, tx_type: str, user_id: str, amount: int, admin_id: str,
               reason: str, ip: str = None) -> Result:
        if not reason or not reason.strip():
            return Result.failure(InvalidAction("Admin adjustments require a reason"))
        if amount <= 0:
            return Result.failure(InvalidAction("Admin amount must be positive"))
        meta = {"adminId": admin_id, "reason": reason.strip(), "ip": ip}
        with self.locks.hold(user_id):
            try:
                with self.db.transaction() as tx:
                    applied = self._apply(tx, user_id, tx_type, amount, meta=meta)
                    tx.execute(
                        """INSERT INTO audit_log (admin_id, action, target_user_id, details_json, ip)
                           VALUES (?, ?, ?, ?, ?)""",
                        (admin_id, tx_type, user_id,
                         json.dumps({"amount": amount, "reason": reason.strip(),
                                     "transaction_id": applied.transaction_id}), ip),
                    )
            except InsufficientBalance as e:
                logger.warning(f"{tx_type} by {admin_id} rejected for {user_id}: {e}")
                return Result.failure(e)
        return Result.success(applied)

    def admin_credit(self, user_id: str, amount: int, admin_id: str, reason: str,
                     ip: str = None) -> Result:
        return self._admin(ADMIN_CREDIT, user_id, amount, admin_id, reason, ip)

    def admin_debit(self, user_id: str, amount: int, admin_id: str, reason: str,
                    ip: str = None) -> Result:
        return self._admin(ADMIN_DEBIT, user_id, amount, admin_id, reason, ip)

    def audit_log(self, target_user_id: str = None, limit: int = 50) -> list[dict]:
        sql = "SELECT * FROM audit_log"
        params = []
        if target_user_id:
            sql += " WHERE target_user_id=?"
            params.append(target_user_id)
        sql += " ORDER BY id DESC LIMIT ?"
        params.append(limit)
        with self.db.read() as db:
            rows = db.execute(sql, params).fetchall()
        for r in rows:
            r["details"] = json.loads(r.pop("details_json") or "{}")
        return rows

    # ─── Faucet ───────────────────────────────────────────────

    def claim_faucet(self, user_id: str, now: datetime = None) -> Result:
        """Free tokens once per cooldown window. Cooldown check, credit and
        last_faucet_at update commit together or not at all."""
        now = now or _now()
        cooldown = timedelta(hours=CasinoConfig.FAUCET_COOLDOWN_HOURS)
        with self.locks.hold(user_id):
            with self.db.transaction() as tx:
                row = tx.execute("SELECT last_faucet_at FROM wallets WHERE user_id=?",
                                 (user_id,)).fetchone()
                last = row["last_faucet_at"] if row else None
                if last:
                    elapsed = now - datetime.fromisoformat(last)
                    if elapsed < cooldown:
                        hours_left = math.ceil((cooldown - elapsed).total_seconds() / 3600)
                        logger.warning(f"Faucet on cooldown for {user_id} ({hours_left}h left)")
                        return Result.failure(InvalidAction(
                            f"Faucet available in {hours_left} hours"))
                applied = self._apply(tx, user_id, FAUCET, CasinoConfig.FAUCET_AMOUNT,
                                      meta={"claimedAt": now.isoformat()})
                tx.execute("UPDATE wallets SET last_faucet_at=? WHERE user_id=?",
                           (now.isoformat(), user_id))
        return Result.success(applied)

    # ─── History ──────────────────────────────────────────────

    def transaction_history(self, user_id: str, page: int = 1, page_size: int = None,
                            tx_type: str = None) -> dict:
        page = max(1, page)
        page_size = min(page_size or CasinoConfig.DEFAULT_PAGE_SIZE, CasinoConfig.MAX_PAGE_SIZE)
        where, params = "user_id=?", [user_id]
        if tx_type:
            where += " AND type=?"
            params.append(tx_type)
        with self.db.read() as db:
            total = db.execute(f"SELECT COUNT(*) AS n FROM transactions WHERE {where}",
                               params).fetchone()["n"]
            rows = db.execute(
                f"""SELECT id, type, amount, balance_after, game_type, metadata_json, created_at
                    FROM transactions WHERE {where}
                    ORDER BY id DESC LIMIT ? OFFSET ?""",
                params + [page_size, (page - 1) * page_size],
            ).fetchall()
        for r in rows:
            raw = r.pop("metadata_json")
            r["metadata"] = json.loads(raw) if raw else None
        return {
            "transactions": rows,
            "total": total,
            "page": page,
            "pages": math.ceil(total / page_size) if total else 0,
        }

    def ledger_sum(self, user_id: str) -> int:
        """SUM(amount) over the user's transactions — equals the balance."""
        with self.db.read() as db:
            row = db.execute("SELECT COALESCE(SUM(amount), 0) AS s FROM transactions WHERE user_id=?",
                             (user_id,)).fetchone()
        return row["s"]
