# src/channel/local_channel.py — v2
"""Filesystem artifact channel (CHANNEL_BACKEND=local).

Stores each bundle as <root>/<artifact_id>.zip plus a JSON sidecar. Expiry
is computed from the retention requested at publish time, so local runs see
the same "bundle vanished" behaviour as a hosted CI channel.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pinhandoff.channel.base_channel import BaseArtifactChannel
from pinhandoff.channel.bundle import pack_bundle
from pinhandoff.channel.models import ArtifactRecord, ArtifactScope
from pinhandoff.core.errors import ChannelError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LocalArtifactChannel(BaseArtifactChannel):
    """Artifact channel backed by a local directory."""

    def __init__(
        self,
        root: Path | str,
        run_id: str = "",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._root = Path(root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)
        self._run_id = run_id
        self._clock = clock

    async def publish(
        self, name: str, files: list[Path], retention_days: int
    ) -> str:
        """Zip files and store them as a new bundle."""
        if not files:
            raise ChannelError(f"nothing to publish for bundle {name}")
        artifact_id = uuid.uuid4().hex[:12]
        created = self._clock()
        try:
            data = pack_bundle(files)
            self._blob_path(artifact_id).write_bytes(data)
            meta = {
                "id": artifact_id,
                "name": name,
                "run_id": self._run_id,
                "size_bytes": len(data),
                "created_at": created.isoformat(),
                "expires_at": (created + timedelta(days=retention_days)).isoformat(),
            }
            self._meta_path(artifact_id).write_text(json.dumps(meta, indent=2), encoding="utf-8")
        except OSError as e:
            raise ChannelError(f"failed to publish bundle {name}: {e}") from e
        logger.debug("Published local bundle %s as %s", name, artifact_id)
        return artifact_id

    async def list(self, scope: ArtifactScope) -> list[ArtifactRecord]:
        """List bundles in scope, newest first."""
        now = self._clock()
        records: list[ArtifactRecord] = []
        for meta_path in self._root.glob("*.json"):
            try:
                meta = json.loads(meta_path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError):
                logger.debug("Skipping unreadable bundle sidecar %s", meta_path)
                continue
            if not isinstance(meta, dict):
                logger.debug("Skipping non-object bundle sidecar %s", meta_path)
                continue
            if scope.name is not None and meta.get("name") != scope.name:
                continue
            if scope.run_id is not None and meta.get("run_id") != scope.run_id:
                continue
            try:
                expires_at = datetime.fromisoformat(meta["expires_at"])
                record = ArtifactRecord(
                    id=meta["id"],
                    name=meta["name"],
                    run_id=meta.get("run_id", ""),
                    size_bytes=meta.get("size_bytes", 0),
                    created_at=datetime.fromisoformat(meta["created_at"]),
                    expired=now >= expires_at,
                )
            except (KeyError, TypeError, ValueError) as e:
                logger.debug("Skipping malformed bundle sidecar %s: %s", meta_path, e)
                continue
            records.append(record)
        records.sort(key=lambda r: r.created_at or now, reverse=True)
        return records

    async def fetch(self, artifact_id: str) -> bytes:
        """Read a bundle's zip bytes."""
        try:
            return self._blob_path(artifact_id).read_bytes()
        except OSError as e:
            raise ChannelError(f"bundle {artifact_id} is not downloadable: {e}") from e

    def _blob_path(self, artifact_id: str) -> Path:
        return self._root / f"{artifact_id}.zip"

    def _meta_path(self, artifact_id: str) -> Path:
        return self._root / f"{artifact_id}.json"
