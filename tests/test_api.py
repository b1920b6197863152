"""HTTP tests for the timeline, notification and cron endpoints."""

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import httpx
import pytest

from activity_engine.api.timeline import get_timeline_aggregator
from activity_engine.core import Settings, get_session_factory, get_settings
from activity_engine.main import app
from activity_engine.services.timeline import TimelineAggregator


CRON_SECRET = "test-cron-secret"


class BrokenAggregator(TimelineAggregator):
    async def _fetch_alerts(self, organization_id, since, assignee_id):
        raise RuntimeError("statement timeout")


@pytest.fixture
def settings() -> Settings:
    return Settings(CRON_SECRET=CRON_SECRET)


@pytest.fixture
async def client(session_factory, settings):
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_settings] = lambda: settings

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


class TestTimelineEndpoint:

    async def test_returns_ranked_page(
        self, client, org_id, make_template, make_assignment, make_submission,
    ):
        now = datetime.now(timezone.utc)
        template = await make_template(name="Night audit")
        await make_assignment(
            template,
            assigned_at=now - timedelta(days=3),
            scheduled_date=(now - timedelta(days=2)).date(),
        )
        await make_submission(submitted_at=now - timedelta(hours=1))

        response = await client.get(
            "/api/v1/timeline",
            headers={"X-Organization-ID": str(org_id)},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total_count"] == 2
        assert data["overdue_count"] == 1
        assert data["total_pages"] == 1
        assert [item["kind"] for item in data["items"]] == ["assignment", "submission"]
        assert data["items"][0]["urgency"] == "overdue"
        assert data["items"][0]["description"] == 'Assigned "Night audit"'

    async def test_requires_organization_header(self, client):
        response = await client.get("/api/v1/timeline")
        assert response.status_code == 400

    async def test_rejects_malformed_organization_header(self, client):
        response = await client.get("/api/v1/timeline", headers={"X-Organization-ID": "clinic-7"})
        assert response.status_code == 400

    async def test_unknown_organization(self, client):
        response = await client.get("/api/v1/timeline", headers={"X-Organization-ID": str(uuid4())})
        assert response.status_code == 404

    async def test_source_failure_is_503(self, client, session_factory, org_id):
        app.dependency_overrides[get_timeline_aggregator] = lambda: BrokenAggregator(session_factory)

        response = await client.get("/api/v1/timeline", headers={"X-Organization-ID": str(org_id)})

        assert response.status_code == 503
        assert response.json()["error"] == "timeline_unavailable"

    async def test_page_size_is_capped(self, client, org_id):
        response = await client.get(
            "/api/v1/timeline",
            params={"page_size": 500},
            headers={"X-Organization-ID": str(org_id)},
        )
        assert response.status_code == 422


class TestNotificationEndpoints:

    async def test_mark_read(self, client, make_template, make_alert, user_id):
        alert = await make_alert(await make_template())

        response = await client.post(
            f"/api/v1/notifications/{alert.id}/read",
            headers={"X-User-ID": str(user_id)},
        )

        assert response.status_code == 200
        assert response.json()["already_read"] is False

    async def test_mark_read_of_someone_else(self, client, make_template, make_alert):
        alert = await make_alert(await make_template())

        response = await client.post(
            f"/api/v1/notifications/{alert.id}/read",
            headers={"X-User-ID": str(uuid4())},
        )

        assert response.status_code == 403

    async def test_mark_read_unknown(self, client, user_id):
        response = await client.post(
            f"/api/v1/notifications/{uuid4()}/read",
            headers={"X-User-ID": str(user_id)},
        )
        assert response.status_code == 404

    async def test_mark_several_read(self, client, make_template, make_alert, user_id):
        alerts = [await make_alert(await make_template(name=name)) for name in ("A", "B")]

        response = await client.post(
            "/api/v1/notifications/read",
            json={"notification_ids": [str(a.id) for a in alerts]},
            headers={"X-User-ID": str(user_id)},
        )

        assert response.status_code == 200
        assert response.json() == {"cleared": 2}

    async def test_mark_several_requires_ids(self, client, user_id):
        response = await client.post(
            "/api/v1/notifications/read",
            json={"notification_ids": []},
            headers={"X-User-ID": str(user_id)},
        )
        assert response.status_code == 422


class TestCronEndpoint:

    async def test_runs_sweep(self, client, make_template, make_assignment):
        await make_assignment(await make_template(deadline_date=date(2025, 3, 10)))

        response = await client.post(
            "/api/v1/cron/missed-tasks",
            headers={"Authorization": f"Bearer {CRON_SECRET}"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["organizations_processed"] == 1
        assert data["alerts_created"] == 1
        assert data["digests_created"] == 1
        assert data["errors"] == []

    async def test_wrong_secret(self, client):
        response = await client.post(
            "/api/v1/cron/missed-tasks",
            headers={"Authorization": "Bearer nope"},
        )
        assert response.status_code == 401

    async def test_missing_secret(self, client):
        response = await client.post("/api/v1/cron/missed-tasks")
        assert response.status_code == 401

    async def test_unconfigured_secret(self, client):
        app.dependency_overrides[get_settings] = lambda: Settings()

        response = await client.post(
            "/api/v1/cron/missed-tasks",
            headers={"Authorization": f"Bearer {CRON_SECRET}"},
        )

        assert response.status_code == 503


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
