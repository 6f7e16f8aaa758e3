# src/publish/sandbox_publisher.py — v1
"""File-backed publisher (PUBLISHER_BACKEND=sandbox).

Stores archives under <root>/<network>/ and derives piece and dataset ids
from the content hash, so republishing identical content yields identical
identifiers. Used for local runs and tests.
"""

from __future__ import annotations

import hashlib
import json
import logging
import shutil
from pathlib import Path

from pinhandoff.core.errors import PublishError
from pinhandoff.core.models import ProviderInfo, PublishResult
from pinhandoff.publish.base_publisher import BasePublisher

logger = logging.getLogger(__name__)

SANDBOX_PROVIDER = ProviderInfo(id="0", name="sandbox")


class SandboxPublisher(BasePublisher):
    """Publisher that writes to a local directory."""

    def __init__(self, root: Path | str, network: str = "calibration") -> None:
        self._root = Path(root).expanduser() / network
        self._network = network
        self._closed = False
        self.published: list[str] = []

    async def publish(
        self,
        archive_ref: Path,
        content_hash: str,
        with_cdn: bool = False,
        provider_address: str = "",
    ) -> PublishResult:
        if self._closed:
            raise PublishError("publisher session already closed")
        archive = Path(archive_ref)
        if not archive.is_file():
            raise PublishError(f"archive not found at {archive}")
        if not content_hash:
            raise PublishError("content hash is required to publish")

        digest = hashlib.sha256(f"{self._network}:{content_hash}".encode()).hexdigest()
        provider = (
            ProviderInfo(id=provider_address, name=provider_address)
            if provider_address else SANDBOX_PROVIDER
        )
        target = self._root / f"{content_hash}{archive.suffix}"
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(archive, target)
        except OSError as e:
            raise PublishError(f"failed to store {archive.name}: {e}") from e

        result = PublishResult(
            content_hash=content_hash,
            piece_id=str(int(digest[:8], 16) % 1_000_000),
            piece_cid=f"piece-{digest[:40]}",
            dataset_id=str(int(digest[8:14], 16) % 10_000),
            provider=provider,
            preview_locator=target.as_uri() if with_cdn else "",
            network=self._network,
        )
        target.with_suffix(".json").write_text(result.model_dump_json(indent=2), encoding="utf-8")
        self.published.append(content_hash)
        logger.info(
            "Published %s as piece %s in dataset %s", content_hash, result.piece_cid, result.dataset_id,
        )
        return result

    async def close(self) -> None:
        self._closed = True


def stored_results(root: Path | str, network: str = "calibration") -> list[dict]:
    """Publish results recorded under a sandbox root, oldest name first."""
    base = Path(root).expanduser() / network
    if not base.is_dir():
        return []
    return [json.loads(p.read_text(encoding="utf-8")) for p in sorted(base.glob("*.json"))]
