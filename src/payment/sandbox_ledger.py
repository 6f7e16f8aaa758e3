# src/payment/sandbox_ledger.py — v1
"""File-backed payment ledger (LEDGER_BACKEND=sandbox).

Keeps one wallet's balance in <root>/<wallet_id>.json. Used for local runs,
dry runs against a real CI channel, and tests. Deposits are bookkeeping only.
"""

from __future__ import annotations

import hashlib
import json
import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path

from pinhandoff.core.errors import LedgerError
from pinhandoff.payment.base_ledger import BasePaymentLedger
from pinhandoff.payment.models import LedgerStatus

logger = logging.getLogger(__name__)


class SandboxLedger(BasePaymentLedger):
    """Local JSON ledger keyed by a hash of the wallet key."""

    def __init__(
        self,
        root: Path | str,
        wallet_key: str,
        runway_rate: Decimal = Decimal("0.01"),
    ) -> None:
        if not wallet_key:
            raise LedgerError("a wallet key is required to open the ledger")
        self._root = Path(root).expanduser()
        wallet_id = hashlib.sha256(wallet_key.encode("utf-8")).hexdigest()[:16]
        self._path = self._root / f"{wallet_id}.json"
        self._rate = runway_rate
        self._closed = False

    async def current_status(self) -> LedgerStatus:
        self._ensure_open()
        return LedgerStatus(balance=self._read_balance(), runway_rate=self._rate)

    async def deposit(self, amount: Decimal) -> None:
        self._ensure_open()
        if amount <= 0:
            raise LedgerError(f"deposit amount must be positive, got {amount}")
        balance = self._read_balance() + amount
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps({"balance": str(balance)}), encoding="utf-8")
        except OSError as e:
            raise LedgerError(f"failed to record deposit: {e}") from e
        logger.info("Deposited %s into sandbox ledger (balance %s)", amount, balance)

    async def close(self) -> None:
        self._closed = True

    def _ensure_open(self) -> None:
        if self._closed:
            raise LedgerError("ledger session already closed")

    def _read_balance(self) -> Decimal:
        if not self._path.exists():
            return Decimal("0")
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return Decimal(str(data["balance"]))
        except (OSError, ValueError, KeyError, InvalidOperation) as e:
            raise LedgerError(f"unreadable ledger state {self._path}: {e}") from e
