# src/payment/models.py — v1
"""Payment models: LedgerStatus, TopUpDecision."""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel


class LedgerStatus(BaseModel):
    """Balance and spend rate reported by the payment ledger."""

    balance: Decimal
    runway_rate: Decimal
    """Cost per day of storage at the current usage."""


class TopUpDecision(BaseModel):
    """Result of Payment Guard authorization."""

    top_up_amount: Decimal = Decimal("0")
    rejected: bool = False
    reason: Literal["exceeds-cap"] | None = None
    required_top_up: Decimal = Decimal("0")
    """Top-up after balance-cap clamping, before the top-up cap check."""
    clamped: bool = False
    """True when the balance cap reduced the runway-derived top-up."""
