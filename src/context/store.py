# src/context/store.py — v1
"""Context store: load/merge/save of the CombinedContext record.

The record lives at <workspace>/action-context/context.json, next to the
staged archive, so that the whole directory can be shipped as a bundle.
merge() is the only mutation path: callers never read, mutate in memory and
write back on their own. One writer per process; callers await each merge
before issuing the next.
"""

from __future__ import annotations

import json
import logging
import shutil
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from pinhandoff.context.migrate import migrate_record
from pinhandoff.context.models import CombinedContext
from pinhandoff.core.errors import ContextConflict, ContextCorruption
from pinhandoff.core.models import TERMINAL_STATUSES

logger = logging.getLogger(__name__)

CONTEXT_DIRNAME = "action-context"
CONTEXT_FILENAME = "context.json"
ARCHIVE_SUFFIXES = (".car", ".tar")


def merge_context(
    existing: CombinedContext, partial: Mapping[str, Any]
) -> CombinedContext:
    """Field-level overwrite union of partial into existing.

    Every key present in partial replaces the existing value; other fields are
    untouched. Merging the same partial twice gives the same record as once,
    and partials touching disjoint keys commute.

    Raises:
        ContextConflict: If partial rewrites an already-set content hash or
            moves the status backward.
    """
    _check_content_hash(existing, partial)
    _check_status(existing, partial)

    merged = existing.to_record()
    for key, value in partial.items():
        if key == "schema_version":
            continue
        if hasattr(value, "model_dump"):
            value = value.model_dump(mode="json")
        merged[key] = value
    return CombinedContext.model_validate(merged)


def _check_content_hash(existing: CombinedContext, partial: Mapping[str, Any]) -> None:
    if "content_hash" not in partial or not existing.content_hash:
        return
    new_hash = partial["content_hash"]
    if new_hash != existing.content_hash:
        raise ContextConflict(
            f"content hash is write-once: record holds {existing.content_hash}, "
            f"refusing {new_hash}; new content needs a fresh record"
        )


def _status_rank(status: str | None) -> int:
    if status is None:
        return 0
    return 2 if status in TERMINAL_STATUSES else 1


def _check_status(existing: CombinedContext, partial: Mapping[str, Any]) -> None:
    if "status" not in partial:
        return
    new_status = partial["status"]
    old_status = existing.status
    if new_status == old_status:
        return
    if old_status in TERMINAL_STATUSES or _status_rank(new_status) < _status_rank(old_status):
        raise ContextConflict(
            f"status only moves forward: {old_status} -> {new_status} refused"
        )


class ContextStore:
    """JSON-file backed store for the CombinedContext of one working area."""

    def __init__(self, workspace: Path | str) -> None:
        self._workspace = Path(workspace).expanduser()
        self._dir = self._workspace / CONTEXT_DIRNAME
        self._path = self._dir / CONTEXT_FILENAME

    @property
    def context_dir(self) -> Path:
        return self._dir

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> CombinedContext:
        """Read the record; never fails.

        A missing file yields an empty record. An unreadable one is logged
        loudly (prior state is lost) and also yields an empty record.
        """
        if not self._path.exists():
            return CombinedContext()
        try:
            return self.parse(self._path.read_text(encoding="utf-8"))
        except ContextCorruption as e:
            logger.error(
                "Discarding unreadable context record %s, prior state is lost: %s",
                self._path, e,
            )
            return CombinedContext()
        except OSError as e:
            logger.error("Failed to read context record %s: %s", self._path, e)
            return CombinedContext()

    @staticmethod
    def parse(text: str) -> CombinedContext:
        """Parse a stored record, migrating legacy shapes.

        Raises:
            ContextCorruption: If the text is not a loadable record.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ContextCorruption(f"invalid JSON: {e}") from e
        try:
            return CombinedContext.model_validate(migrate_record(data))
        except ValidationError as e:
            raise ContextCorruption(f"invalid context record: {e}") from e

    async def save(self, context: CombinedContext) -> None:
        """Persist the full record."""
        self._dir.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".json.tmp")
        tmp.write_text(context.model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(self._path)

    async def merge(self, partial: Mapping[str, Any]) -> CombinedContext:
        """Load, overwrite the fields in partial, persist and return the record."""
        merged = merge_context(await self.load(), partial)
        await self.save(merged)
        return merged

    async def begin(self, partial: Mapping[str, Any]) -> CombinedContext:
        """Start a new record lineage for a fresh build.

        Only a prior publish_result survives: it names the content hash it
        describes, so it stays truthful and lets the reuse resolver match it.
        """
        previous = await self.load()
        fresh = CombinedContext()
        if previous.publish_result is not None:
            fresh = fresh.model_copy(update={"publish_result": previous.publish_result})
        merged = merge_context(fresh, partial)
        await self.save(merged)
        return merged

    async def stage_archive(self, archive: Path) -> Path:
        """Copy the archive into the context directory, dropping stale archives."""
        archive = Path(archive)
        if not archive.is_file():
            raise FileNotFoundError(f"archive not found at {archive}")
        self._dir.mkdir(parents=True, exist_ok=True)
        destination = self._dir / archive.name

        for entry in self._dir.iterdir():
            if (
                entry.is_file()
                and entry.suffix.lower() in ARCHIVE_SUFFIXES
                and entry.name != archive.name
            ):
                entry.unlink()

        if archive.resolve() != destination.resolve():
            shutil.copy2(archive, destination)
        return destination

    def locate_archive(self, context: CombinedContext) -> Path | None:
        """Find the archive a record points at, falling back to the context dir.

        A bundle restored on another machine carries the archive file but an
        archive_ref pointing at the producer's filesystem.
        """
        candidates: list[Path] = []
        if context.archive_ref:
            candidates.append(Path(context.archive_ref))
        name = context.archive_filename or (
            Path(context.archive_ref).name if context.archive_ref else ""
        )
        if name:
            candidates.append(self._dir / name)
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        return None

    def bundle_files(self) -> list[Path]:
        """Files shipped in a bundle: everything directly under the context dir."""
        if not self._dir.is_dir():
            return []
        return sorted(
            p for p in self._dir.iterdir()
            if p.is_file() and not p.name.endswith(".tmp")
        )


def context_outputs(context: CombinedContext) -> dict[str, str]:
    """Flatten a record into context_* step outputs."""
    result = context.publish_result
    pr = context.pr
    return {
        "context_content_hash": context.content_hash,
        "context_archive_ref": context.archive_ref,
        "context_archive_filename": context.archive_filename,
        "context_piece_cid": result.piece_cid if result else "",
        "context_piece_id": result.piece_id if result else "",
        "context_dataset_id": result.dataset_id if result else "",
        "context_provider_id": result.provider.id if result else "",
        "context_provider_name": result.provider.name if result else "",
        "context_upload_status": context.status or "",
        "context_artifact_identity": context.artifact_identity,
        "context_producing_run_id": context.producing_run_id,
        "context_event_name": context.event_name,
        "context_pr_number": str(pr.number) if pr else "",
        "context_pr_sha": pr.commit_sha if pr else "",
        "context_pr_title": pr.title if pr else "",
        "context_pr_author": pr.author if pr else "",
    }
