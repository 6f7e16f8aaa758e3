# src/channel/lookup.py — v2
"""Bundle lookup with miss/fault outcomes instead of exceptions.

"Not found", "expired" and "found but unreadable" are the same thing to a
reader: a cache miss. Only a failing listing is reported as a fault, and
even that is recoverable.
"""

from __future__ import annotations

import logging
import zipfile
from pathlib import Path

from pinhandoff.channel.base_channel import BaseArtifactChannel
from pinhandoff.channel.bundle import unpack_bundle
from pinhandoff.channel.models import ArtifactRecord, ArtifactScope, ChannelLookup
from pinhandoff.core.errors import ChannelError
from pinhandoff.logging.logger import notice

logger = logging.getLogger(__name__)


def _newest_live(records: list[ArtifactRecord], name: str) -> ArtifactRecord | None:
    live = [r for r in records if r.name == name and not r.expired]
    if not live:
        return None
    return max(live, key=lambda r: (r.created_at is not None, r.created_at or 0, r.id))


async def find_bundle(
    channel: BaseArtifactChannel,
    name: str,
    dest: Path,
    run_id: str | None = None,
) -> ChannelLookup:
    """Locate, fetch and unpack the newest live bundle called name.

    Args:
        channel: Artifact channel backend.
        name: Bundle name.
        dest: Directory to unpack into (created if missing).
        run_id: Restrict the search to one producing run; None = repository-wide.

    Returns:
        ChannelLookup describing the outcome. Never raises for channel errors.
    """
    try:
        records = await channel.list(ArtifactScope(name=name, run_id=run_id))
    except Exception as e:  # noqa: BLE001
        logger.warning("Listing bundles for %s failed, treating as miss: %s", name, e)
        return ChannelLookup(outcome="fault", name=name, reason=str(e))

    record = _newest_live(records, name)
    if record is None:
        expired = any(r.name == name and r.expired for r in records)
        reason = "expired" if expired else "not found"
        notice(logger, "Bundle %s %s", name, reason)
        return ChannelLookup(outcome="miss", name=name, reason=reason)

    try:
        data = await channel.fetch(record.id)
        unpack_bundle(data, dest)
    except (ChannelError, zipfile.BadZipFile, ValueError, OSError) as e:
        notice(logger, "Bundle %s listed but unreadable (%s), treating as miss", name, e)
        return ChannelLookup(outcome="miss", name=name, record=record, reason=f"unreadable: {e}")

    logger.info("Fetched bundle %s (id %s)", name, record.id)
    return ChannelLookup(outcome="hit", name=name, record=record, path=dest)
