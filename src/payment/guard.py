# src/payment/guard.py — v1
"""Payment Guard: bounded top-up computation.

Two caps, deliberately asymmetric:
  - max balance CLAMPS: it protects against overfunding, so the top-up is
    reduced to fit (never below zero, never withdrawing).
  - max top-up REJECTS: it bounds the worst-case loss of a single run, so a
    larger requirement stops the run instead of being silently trimmed.
"""

from __future__ import annotations

import logging
from decimal import ROUND_FLOOR, Decimal

from pinhandoff.payment.models import TopUpDecision

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


def amount_needed_for(target_runway_days: int, runway_rate: Decimal) -> Decimal:
    """Balance required to sustain target_runway_days at runway_rate per day."""
    if target_runway_days <= 0 or runway_rate <= 0:
        return _ZERO
    return Decimal(target_runway_days) * runway_rate


def runway_days(balance: Decimal, runway_rate: Decimal) -> int | None:
    """Whole days the balance lasts at runway_rate; None when nothing is being spent."""
    if runway_rate <= 0:
        return None
    if balance <= 0:
        return 0
    return int((balance / runway_rate).to_integral_value(rounding=ROUND_FLOOR))


def authorize(
    current_balance: Decimal,
    target_runway_days: int,
    runway_rate: Decimal,
    cap_max_balance: Decimal | None = None,
    cap_max_top_up: Decimal | None = None,
) -> TopUpDecision:
    """Compute the deposit needed to reach the runway target within the caps.

    Args:
        current_balance: Ledger balance before this run.
        target_runway_days: Days of runway to guarantee.
        runway_rate: Cost per day, as reported by the ledger.
        cap_max_balance: Never fund the balance above this amount.
        cap_max_top_up: Never deposit more than this in one run.

    Returns:
        TopUpDecision. rejected=True (reason "exceeds-cap") when the top-up
        cap would be exceeded; top_up_amount is then zero.
    """
    required = max(
        _ZERO, amount_needed_for(target_runway_days, runway_rate) - current_balance
    )
    unclamped = required
    clamped = False

    if cap_max_balance is not None:
        if current_balance >= cap_max_balance:
            if required > 0:
                logger.warning(
                    "Current balance (%s) already equals or exceeds max balance (%s); "
                    "no additional deposit will be made",
                    current_balance, cap_max_balance,
                )
            required = _ZERO
        elif current_balance + required > cap_max_balance:
            required = cap_max_balance - current_balance
            logger.warning(
                "Required top-up (%s) would exceed max balance (%s); reducing to %s",
                unclamped, cap_max_balance, required,
            )
        clamped = required != unclamped

    if cap_max_top_up is not None and required > cap_max_top_up:
        return TopUpDecision(
            rejected=True,
            reason="exceeds-cap",
            required_top_up=required,
            clamped=clamped,
        )

    return TopUpDecision(
        top_up_amount=required, required_top_up=required, clamped=clamped
    )
