# src/payment/base_ledger.py — v1
"""Abstract payment-ledger interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal

from pinhandoff.payment.models import LedgerStatus


class BasePaymentLedger(ABC):
    """Unified interface for payment-ledger backends.

    Implementations raise LedgerError for any failed call.
    """

    @abstractmethod
    async def current_status(self) -> LedgerStatus:
        """Return the current balance and runway rate."""

    @abstractmethod
    async def deposit(self, amount: Decimal) -> None:
        """Deposit amount into the ledger."""

    async def close(self) -> None:
        """Release the ledger session."""
