# src/payment/ledger_factory.py — v1
"""Factory for payment-ledger instantiation."""

from __future__ import annotations

from pinhandoff.config.settings import Settings
from pinhandoff.payment.base_ledger import BasePaymentLedger


def create_ledger(settings: Settings) -> BasePaymentLedger:
    """Instantiate the configured payment-ledger backend.

    Raises:
        ValueError: If the backend is not supported.
    """
    if settings.ledger_backend == "sandbox":
        from pinhandoff.payment.sandbox_ledger import SandboxLedger
        return SandboxLedger(
            root=settings.ledger_root,
            wallet_key=settings.wallet_private_key.get_secret_value(),
            runway_rate=settings.sandbox_runway_rate,
        )

    raise ValueError(f"Unsupported ledger backend: {settings.ledger_backend!r}")
