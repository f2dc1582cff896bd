# poster_press/gateways/rest_queue.py
"""
Job queue backed by the hosted PostgREST API.

The claim is delegated to a server-side function (``rpc/claim_render_job``)
that selects and marks one queued row inside a single statement, so the
database serializes claims from any number of workers.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from poster_press.errors import ErrorCode, QueueError, truncate_detail
from poster_press.models.jobs import JobRecord, JobState, job_from_row
from poster_press.models.store import JobQueue, validate_fields

from .rest import RestClient

logger = logging.getLogger(__name__)


def _to_column(key: str, value: Any) -> tuple[str, Any]:
    # The remote table calls the lifecycle column "status"
    if key == "state":
        return "status", value.value if isinstance(value, JobState) else value
    return key, value


class RestJobQueue(JobQueue):
    """JobQueue over PostgREST: one RPC for claims, PATCH for updates."""

    def __init__(
        self,
        client: RestClient,
        table: str = "render_jobs",
        claim_rpc: str = "claim_render_job",
    ) -> None:
        self._client = client
        self._table = table
        self._claim_rpc = claim_rpc

    @property
    def _table_url(self) -> str:
        return f"/rest/v1/{self._table}"

    async def claim_next(self) -> JobRecord | None:
        try:
            response = await self._client.request(
                "POST", f"/rest/v1/rpc/{self._claim_rpc}", json={}
            )
        except httpx.HTTPError as e:
            raise QueueError(f"Claim RPC failed: {e}") from e

        data = response.json() if response.content else None
        # Functions returning SETOF come back as a list
        if isinstance(data, list):
            data = data[0] if data else None
        if not data:
            return None

        try:
            record = job_from_row(data)
        except ValueError as e:
            # The RPC already marked the row claimed; fail it so it is not claimed again
            if data.get("id") is not None:
                await self._fail_malformed(str(data["id"]), str(e))
            raise
        logger.info(f"Claimed job {record.job_id}")
        return record

    async def _fail_malformed(self, job_id: str, detail: str) -> None:
        try:
            await self.update(
                job_id,
                state=JobState.FAILED,
                error_code=ErrorCode.READ_INPUT_FAILED.value,
                error_detail=truncate_detail(f"Malformed job row: {detail}"),
            )
        except Exception as e:
            logger.error(f"Could not mark malformed job {job_id} failed: {e}")

    async def update(self, job_id: str, **kwargs) -> None:
        validate_fields(kwargs)

        patch = dict(_to_column(k, v) for k, v in kwargs.items())
        patch["updated_at"] = datetime.now(timezone.utc).isoformat()

        try:
            response = await self._client.request(
                "PATCH",
                self._table_url,
                params={"id": f"eq.{job_id}"},
                json=patch,
                headers={"Prefer": "return=representation"},
            )
        except httpx.HTTPError as e:
            raise QueueError(f"Update of job {job_id} failed: {e}") from e

        if not response.json():
            raise ValueError(f"Job {job_id} not found")
        logger.info(f"Updated job {job_id}: {list(kwargs.keys())}")

    async def add(self, record: JobRecord) -> None:
        row = {
            "id": record.job_id,
            "project_id": record.project_id,
            "template_id": record.template_id,
            "mode": record.mode.value,
            "status": record.state.value,
            "created_at": record.created_at.isoformat(),
        }
        try:
            await self._client.request("POST", self._table_url, json=row)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 409:
                raise ValueError(f"Job {record.job_id} already exists") from e
            raise QueueError(f"Insert of job {record.job_id} failed: {e}") from e
        except httpx.HTTPError as e:
            raise QueueError(f"Insert of job {record.job_id} failed: {e}") from e

    async def get(self, job_id: str) -> JobRecord | None:
        rows = await self._select({"id": f"eq.{job_id}", "select": "*"})
        return job_from_row(rows[0]) if rows else None

    async def list_all(self) -> list[JobRecord]:
        rows = await self._select({"select": "*", "order": "created_at.desc"})
        return [job_from_row(row) for row in rows]

    async def requeue_stale_claims(self, older_than_seconds: float) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(seconds=older_than_seconds)
        try:
            response = await self._client.request(
                "PATCH",
                self._table_url,
                params={
                    "status": f"eq.{JobState.CLAIMED.value}",
                    "updated_at": f"lt.{cutoff.isoformat()}",
                },
                json={
                    "status": JobState.QUEUED.value,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                },
                headers={"Prefer": "return=representation"},
            )
        except httpx.HTTPError as e:
            raise QueueError(f"Stale claim requeue failed: {e}") from e

        requeued = len(response.json())
        if requeued:
            logger.warning(f"Requeued {requeued} stale claimed job(s)")
        return requeued

    async def close(self) -> None:
        await self._client.aclose()

    async def _select(self, params: dict[str, str]) -> list[dict[str, Any]]:
        try:
            response = await self._client.request("GET", self._table_url, params=params)
        except httpx.HTTPError as e:
            raise QueueError(f"Job query failed: {e}") from e
        return response.json()
