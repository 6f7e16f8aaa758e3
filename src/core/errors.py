# src/core/errors.py — v1
"""Error taxonomy shared by every phase.

Fatal errors (ConfigError, LedgerError, CapExceeded and the packing/publish
failures) propagate to the CLI, which reports the phase that failed and exits
non-zero. Recoverable conditions stay inside the reuse-resolution flow:
ChannelError is logged and treated as a miss, ContextCorruption is caught at
the store boundary and replaced by an empty record. An expected cache miss
is not an exception at all (see channel.models.ChannelLookup).
"""

from __future__ import annotations


class PinHandoffError(Exception):
    """Base class for all pinhandoff errors."""

    fatal: bool = True

    def __init__(self, message: str, phase: str | None = None) -> None:
        self.phase = phase
        super().__init__(message)

    def with_phase(self, phase: str) -> PinHandoffError:
        """Attach the failing phase if none was recorded yet."""
        if self.phase is None:
            self.phase = phase
        return self


class ConfigError(PinHandoffError):
    """Invalid or missing required input. Raised before any network call."""


class BundleUnavailable(ConfigError):
    """The build bundle an upload execution depends on cannot be retrieved."""


class ChannelError(PinHandoffError):
    """Transient I/O failure talking to the artifact channel."""

    fatal = False


class LedgerError(PinHandoffError):
    """A payment-ledger call failed; balance cannot be trusted."""


class CapExceeded(PinHandoffError):
    """Required top-up exceeds the configured hard cap."""

    def __init__(
        self,
        required: object,
        cap: object,
        phase: str | None = None,
    ) -> None:
        self.required = required
        self.cap = cap
        super().__init__(
            f"Top-up required ({required}) exceeds max top-up ({cap}); "
            "raise the cap deliberately to proceed",
            phase=phase,
        )


class ContextCorruption(PinHandoffError):
    """Stored context record could not be parsed."""

    fatal = False


class ContextConflict(PinHandoffError):
    """Attempted mutation breaks a context record invariant."""


class PackError(PinHandoffError):
    """Archive packing failed."""


class PublishError(PinHandoffError):
    """Paid publish to the storage network failed."""
