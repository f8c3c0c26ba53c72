"""API tests for the export endpoints, run against a SQLite-backed app."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
from celery.exceptions import TimeoutError as CeleryTimeoutError

from src.models.enums import ExportJobStatus
from src.modules.export.tasks import cleanup_exports

BASE = "/api/v1/exports"


class TestSubmit:
    @pytest.mark.asyncio
    async def test_requires_authentication(self, async_client):
        resp = await async_client.post(f"{BASE}/jobs", json={"export_type": "assets"})

        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_create_then_conflict(self, async_client, owner, headers_for, dispatched):
        payload = {"export_type": "assets", "config": {"format": "csv"}}

        first = await async_client.post(f"{BASE}/jobs", json=payload, headers=headers_for(owner))

        assert first.status_code == 201
        body = first.json()
        assert body["status"] == "PENDING"
        assert body["export_type"] == "assets"
        assert "30 days" in body["warning"]
        assert dispatched == [body["id"]]

        second = await async_client.post(f"{BASE}/jobs", json=payload, headers=headers_for(owner))

        assert second.status_code == 409
        error = second.json()["error"]
        assert error["code"] == "CONFLICT"
        assert error["requestId"]
        assert len(dispatched) == 1

    @pytest.mark.asyncio
    async def test_invalid_body(self, async_client, owner, headers_for):
        resp = await async_client.post(
            f"{BASE}/jobs",
            json={"export_type": "invoices", "config": {"format": "pdf"}},
            headers=headers_for(owner),
        )

        assert resp.status_code == 422
        fields = {d["field"] for d in resp.json()["error"]["details"]}
        assert "body.export_type" in fields

    @pytest.mark.asyncio
    async def test_future_range_rejected(self, async_client, owner, headers_for, dispatched):
        future = (datetime.now(UTC) + timedelta(days=2)).isoformat()
        payload = {
            "export_type": "scan_logs",
            "config": {"filters": {"date_range": {"from": "2026-01-01", "to": future}}},
        }

        resp = await async_client.post(f"{BASE}/jobs", json=payload, headers=headers_for(owner))

        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"
        assert dispatched == []


class TestJobStatus:
    @pytest.mark.asyncio
    async def test_owner_sees_job(self, async_client, owner, headers_for, add_job):
        job = await add_job(requested_by=owner.id)

        resp = await async_client.get(f"{BASE}/jobs/{job.id}", headers=headers_for(owner))

        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == str(job.id)
        assert body["status"] == "PENDING"
        assert body["download_url"] is None

    @pytest.mark.asyncio
    async def test_completed_job_has_download_url(self, async_client, owner, headers_for, add_job):
        job = await add_job(status=ExportJobStatus.COMPLETED, file_name="a.csv", file_path="/x/a.csv")

        resp = await async_client.get(f"{BASE}/jobs/{job.id}", headers=headers_for(owner))

        assert resp.json()["download_url"] == f"/api/v1/exports/download/{job.id}"

    @pytest.mark.asyncio
    async def test_other_user_forbidden(self, async_client, other_user, headers_for, add_job):
        job = await add_job(requested_by="U001")

        resp = await async_client.get(f"{BASE}/jobs/{job.id}", headers=headers_for(other_user))

        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_job(self, async_client, owner, headers_for):
        resp = await async_client.get(f"{BASE}/jobs/{uuid.uuid4()}", headers=headers_for(owner))

        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_cancel(self, async_client, owner, headers_for, add_job):
        job = await add_job(requested_by=owner.id)

        resp = await async_client.delete(f"{BASE}/jobs/{job.id}", headers=headers_for(owner))
        again = await async_client.get(f"{BASE}/jobs/{job.id}", headers=headers_for(owner))

        assert resp.status_code == 200
        assert resp.json() == {"message": "Export job cancelled"}
        assert again.status_code == 404


class TestDownload:
    @pytest.mark.asyncio
    async def test_streams_file(self, async_client, owner, headers_for, add_job, export_dir):
        path = export_dir / "scan_logs_1.csv"
        path.write_text("scan_id,asset_no\n1,A0001\n")
        job = await add_job(
            status=ExportJobStatus.COMPLETED,
            file_path=str(path),
            file_name=path.name,
            file_size=path.stat().st_size,
            total_records=1,
        )

        resp = await async_client.get(f"{BASE}/download/{job.id}", headers=headers_for(owner))

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert "scan_logs_1.csv" in resp.headers["content-disposition"]
        assert resp.text == "scan_id,asset_no\n1,A0001\n"

    @pytest.mark.asyncio
    async def test_expired(self, async_client, owner, headers_for, add_job, export_dir):
        path = export_dir / "old.csv"
        path.write_text("x\n")
        job = await add_job(
            status=ExportJobStatus.COMPLETED,
            file_path=str(path),
            file_name=path.name,
            now=datetime.now(UTC) - timedelta(days=2),
        )

        resp = await async_client.get(f"{BASE}/download/{job.id}", headers=headers_for(owner))

        assert resp.status_code == 410
        assert resp.json()["error"]["code"] == "GONE"

    @pytest.mark.asyncio
    async def test_not_ready(self, async_client, owner, headers_for, add_job):
        job = await add_job()

        resp = await async_client.get(f"{BASE}/download/{job.id}", headers=headers_for(owner))

        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "BUSINESS_RULE_VIOLATION"


class TestHistoryAndStats:
    @pytest.mark.asyncio
    async def test_history_meta(self, async_client, owner, headers_for, add_job):
        for _ in range(3):
            await add_job(status=ExportJobStatus.COMPLETED)
        await add_job(requested_by="U002", status=ExportJobStatus.COMPLETED)

        resp = await async_client.get(
            f"{BASE}/history", params={"page": 1, "limit": 2}, headers=headers_for(owner)
        )

        assert resp.status_code == 200
        body = resp.json()
        assert len(body["items"]) == 2
        assert body["meta"]["totalItems"] == 3
        assert body["meta"]["totalPages"] == 2

    @pytest.mark.asyncio
    async def test_history_limit_bounds(self, async_client, owner, headers_for):
        resp = await async_client.get(
            f"{BASE}/history", params={"limit": 500}, headers=headers_for(owner)
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_stats(self, async_client, owner, headers_for, add_job):
        await add_job(status=ExportJobStatus.FAILED)
        await add_job()

        resp = await async_client.get(f"{BASE}/stats", headers=headers_for(owner))

        assert resp.json() == {"pending": 1, "completed": 0, "failed": 1, "total": 2}


class TestAdministration:
    @pytest.mark.asyncio
    async def test_cleanup_requires_admin(self, async_client, owner, headers_for):
        resp = await async_client.post(f"{BASE}/cleanup", headers=headers_for(owner))

        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_cleanup_runs_as_worker_task(self, async_client, admin, headers_for):
        counts = {
            "interrupted_jobs": 1,
            "expired_files": 2,
            "old_records": 0,
            "orphaned_files": 3,
            "duration_ms": 12,
        }
        queued = MagicMock(id="task-1")
        queued.get.return_value = counts

        with patch.object(cleanup_exports, "delay", return_value=queued) as delay:
            resp = await async_client.post(f"{BASE}/cleanup", headers=headers_for(admin))

        assert resp.status_code == 200
        assert resp.json() == counts
        delay.assert_called_once_with(manual=True)
        queued.get.assert_called_once()

    @pytest.mark.asyncio
    async def test_cleanup_already_running(self, async_client, admin, headers_for):
        queued = MagicMock(id="task-2")
        queued.get.return_value = {"skipped": True}

        with patch.object(cleanup_exports, "delay", return_value=queued):
            resp = await async_client.post(f"{BASE}/cleanup", headers=headers_for(admin))

        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "CONFLICT"

    @pytest.mark.asyncio
    async def test_cleanup_still_running_is_accepted(self, async_client, admin, headers_for):
        queued = MagicMock(id="task-3")
        queued.get.side_effect = CeleryTimeoutError("still running")

        with patch.object(cleanup_exports, "delay", return_value=queued):
            resp = await async_client.post(f"{BASE}/cleanup", headers=headers_for(admin))

        assert resp.status_code == 202
        assert resp.json() == {"task_id": "task-3", "message": "Export cleanup is still running"}

    @pytest.mark.asyncio
    async def test_storage_stats(self, async_client, admin, headers_for, add_job, export_dir):
        (export_dir / "a.csv").write_bytes(b"x" * 1536)
        await add_job()

        resp = await async_client.get(f"{BASE}/storage-stats", headers=headers_for(admin))

        assert resp.status_code == 200
        body = resp.json()
        assert body["files"] == {
            "total_count": 1,
            "total_size_bytes": 1536,
            "total_size_formatted": "1.5 KB",
        }
        assert body["database"]["pending"] == 1
