# src/payment/funding.py — v1
"""Funding step of an upload: read the ledger, authorize, deposit, snapshot."""

from __future__ import annotations

import logging
from decimal import Decimal

from pinhandoff.core.errors import CapExceeded, LedgerError
from pinhandoff.core.models import PaymentSnapshot
from pinhandoff.payment.base_ledger import BasePaymentLedger
from pinhandoff.payment.guard import authorize, runway_days
from pinhandoff.payment.models import LedgerStatus

logger = logging.getLogger(__name__)


async def read_status(ledger: BasePaymentLedger) -> LedgerStatus:
    """Read ledger status, normalizing failures to LedgerError."""
    try:
        return await ledger.current_status()
    except LedgerError:
        raise
    except Exception as e:
        raise LedgerError(f"failed to read payment status: {e}") from e


async def ensure_funded(
    ledger: BasePaymentLedger,
    min_days: int,
    max_balance: Decimal | None = None,
    max_top_up: Decimal | None = None,
) -> PaymentSnapshot:
    """Top up the ledger so it covers min_days of runway, within the caps.

    Returns:
        PaymentSnapshot taken after any deposit.

    Raises:
        LedgerError: If the ledger cannot be read or the deposit fails.
        CapExceeded: If the required top-up exceeds max_top_up.
    """
    initial = await read_status(ledger)
    decision = authorize(
        current_balance=initial.balance,
        target_runway_days=min_days,
        runway_rate=initial.runway_rate,
        cap_max_balance=max_balance,
        cap_max_top_up=max_top_up,
    )

    if decision.rejected:
        raise CapExceeded(required=decision.required_top_up, cap=max_top_up)

    status = initial
    if decision.top_up_amount > 0:
        logger.info("Depositing %s to reach %d days of runway", decision.top_up_amount, min_days)
        try:
            await ledger.deposit(decision.top_up_amount)
        except LedgerError:
            raise
        except Exception as e:
            raise LedgerError(f"deposit of {decision.top_up_amount} failed: {e}") from e
        status = await read_status(ledger)
    else:
        logger.info("No deposit needed (balance %s)", initial.balance)

    return PaymentSnapshot(
        balance=status.balance,
        runway_days=runway_days(status.balance, status.runway_rate),
        deposited_this_run=status.balance - initial.balance,
    )
