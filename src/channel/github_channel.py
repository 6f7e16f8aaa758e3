# src/channel/github_channel.py — v2
"""GitHub Actions artifact channel (CHANNEL_BACKEND=github).

Listing and download use the REST API with GITHUB_TOKEN. Publishing uses
the Actions results service with the job's runtime token, which is only
exposed when the job declares `permissions: actions: write`.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import httpx

from pinhandoff.channel.base_channel import BaseArtifactChannel
from pinhandoff.channel.bundle import pack_bundle
from pinhandoff.channel.models import ArtifactRecord, ArtifactScope
from pinhandoff.core.errors import ChannelError

logger = logging.getLogger(__name__)

_ARTIFACT_SERVICE = "twirp/github.actions.results.api.v1.ArtifactService"
_PER_PAGE = 100
_ATTEMPTS = 2


def backend_ids_from_token(runtime_token: str) -> tuple[str, str]:
    """Extract (workflow_run_backend_id, workflow_job_run_backend_id) from the runtime JWT.

    The ids live in the `scp` claim as "Actions.Results:<run>:<job>".
    """
    try:
        payload_b64 = runtime_token.split(".")[1]
        payload_b64 += "=" * (-len(payload_b64) % 4)
        claims = json.loads(base64.urlsafe_b64decode(payload_b64))
    except (IndexError, ValueError) as e:
        raise ChannelError(f"malformed actions runtime token: {e}") from e

    for scope in str(claims.get("scp", "")).split():
        parts = scope.split(":")
        if parts[0] == "Actions.Results" and len(parts) == 3:
            return parts[1], parts[2]
    raise ChannelError("actions runtime token carries no Actions.Results scope")


class GithubArtifactChannel(BaseArtifactChannel):
    """Artifact channel backed by GitHub Actions artifacts."""

    def __init__(
        self,
        repository: str,
        token: str,
        api_url: str = "https://api.github.com",
        runtime_token: str = "",
        results_url: str = "",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        owner, _, repo = repository.partition("/")
        if not owner or not repo:
            raise ChannelError(f"invalid repository format: {repository!r}")
        self._owner = owner
        self._repo = repo
        self._api_url = api_url.rstrip("/")
        self._runtime_token = runtime_token
        self._results_url = results_url
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    # ------------------------------------------------------------------
    # Listing and download (REST)
    # ------------------------------------------------------------------

    async def list(self, scope: ArtifactScope) -> list[ArtifactRecord]:
        """List artifacts by name, repository-wide or for one workflow run."""
        base = f"{self._api_url}/repos/{self._owner}/{self._repo}/actions"
        url = f"{base}/runs/{scope.run_id}/artifacts" if scope.run_id else f"{base}/artifacts"

        records: list[ArtifactRecord] = []
        page = 1
        while True:
            params: dict[str, Any] = {"per_page": _PER_PAGE, "page": page}
            if scope.name:
                params["name"] = scope.name
            response = await self._request("GET", url, params=params, headers=self._headers)
            if response.status_code == 404:
                return []
            self._raise_for_status(response, f"list artifacts ({url})")
            try:
                artifacts = response.json().get("artifacts") or []
            except (ValueError, AttributeError) as e:
                raise ChannelError(f"list artifacts ({url}) returned an unreadable body: {e}") from e
            for artifact in artifacts:
                try:
                    records.append(self._to_record(artifact))
                except (KeyError, TypeError, ValueError, AttributeError) as e:
                    logger.debug("Skipping malformed artifact entry %r: %s", artifact, e)
            if len(artifacts) < _PER_PAGE:
                break
            page += 1

        records.sort(key=lambda r: r.created_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        return records

    async def fetch(self, artifact_id: str) -> bytes:
        """Download an artifact's zip archive."""
        url = (
            f"{self._api_url}/repos/{self._owner}/{self._repo}"
            f"/actions/artifacts/{artifact_id}/zip"
        )
        response = await self._request("GET", url, headers=self._headers)
        self._raise_for_status(response, f"download artifact {artifact_id}")
        return response.content

    # ------------------------------------------------------------------
    # Publish (results service)
    # ------------------------------------------------------------------

    async def publish(
        self, name: str, files: list[Path], retention_days: int
    ) -> str:
        """Create, upload and finalize an artifact from files."""
        if not self._runtime_token or not self._results_url:
            raise ChannelError(
                "GitHub did not expose the runtime token required to publish "
                f"{name}; add `permissions: actions: write` to the job"
            )
        if not files:
            raise ChannelError(f"nothing to publish for bundle {name}")

        run_backend_id, job_backend_id = backend_ids_from_token(self._runtime_token)
        data = pack_bundle(files)
        expires_at = datetime.now(timezone.utc) + timedelta(days=retention_days)
        ids = {
            "workflow_run_backend_id": run_backend_id,
            "workflow_job_run_backend_id": job_backend_id,
            "name": name,
        }

        created = await self._twirp("CreateArtifact", {
            **ids,
            "version": 4,
            "expires_at": expires_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
        })
        upload_url = created.get("signed_upload_url")
        if not created.get("ok") or not upload_url:
            raise ChannelError(f"results service refused to create artifact {name}")

        response = await self._request(
            "PUT", upload_url, content=data, headers={"x-ms-blob-type": "BlockBlob"}
        )
        self._raise_for_status(response, f"upload artifact {name}")

        finalized = await self._twirp("FinalizeArtifact", {
            **ids,
            "size": str(len(data)),
            "hash": f"sha256:{hashlib.sha256(data).hexdigest()}",
        })
        if not finalized.get("ok"):
            raise ChannelError(f"results service refused to finalize artifact {name}")

        artifact_id = str(finalized.get("artifact_id", ""))
        logger.info("Published artifact %s (ID: %s, %d bytes)", name, artifact_id, len(data))
        return artifact_id

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _twirp(self, method: str, body: dict[str, Any]) -> dict[str, Any]:
        origin = httpx.URL(self._results_url)
        url = f"{origin.scheme}://{origin.netloc.decode()}/{_ARTIFACT_SERVICE}/{method}"
        response = await self._request(
            "POST",
            url,
            json=body,
            headers={"Authorization": f"Bearer {self._runtime_token}"},
        )
        self._raise_for_status(response, f"results service {method}")
        try:
            return response.json()
        except ValueError as e:
            raise ChannelError(f"results service {method} returned invalid JSON") from e

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, retrying once on transport errors and 5xx responses."""
        last_error: Exception | None = None
        for attempt in range(1, _ATTEMPTS + 1):
            try:
                response = await self._client.request(method, url, **kwargs)
            except httpx.HTTPError as e:
                last_error = e
                logger.debug("%s %s failed (attempt %d): %s", method, url, attempt, e)
                continue
            if response.status_code >= 500 and attempt < _ATTEMPTS:
                logger.debug("%s %s returned %d, retrying", method, url, response.status_code)
                continue
            return response
        raise ChannelError(f"{method} {url} failed: {last_error}") from last_error

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        raise ChannelError(f"{action} failed with HTTP {response.status_code}")

    @staticmethod
    def _to_record(artifact: dict[str, Any]) -> ArtifactRecord:
        created = artifact.get("created_at")
        run = artifact.get("workflow_run") or {}
        return ArtifactRecord(
            id=str(artifact["id"]),
            name=str(artifact.get("name", "")),
            expired=bool(artifact.get("expired", False)),
            size_bytes=int(artifact.get("size_in_bytes") or 0),
            created_at=datetime.fromisoformat(created.replace("Z", "+00:00")) if created else None,
            run_id=str(run.get("id") or ""),
        )
