import uuid

import pytest

from leadflow.db.enums import FlowStatus, JobStatus
from leadflow.db.models import Flow, ScheduledEmail
from leadflow.services import job_service
from leadflow.services.workflow_validator import MSG_SOURCE_NO_CONTACTS

from conftest import edge, email_node, source_node, wait_node


@pytest.fixture
def flow_payload(make_lead_source, make_template):
    ls = make_lead_source(
        [{"name": "A", "email": "a@x.com"}, {"name": "B", "email": "b@x.com"}]
    )
    tpl = make_template(subject="Intro", body="Hello")
    return {
        "name": "Outreach",
        "nodes": [source_node("S1", ls.id), wait_node("W1", hours=2), email_node("E1", tpl.id)],
        "edges": [edge("S1", "W1"), edge("W1", "E1")],
    }


def _pending_jobs(db, flow_id):
    return job_service.list_jobs_for_flow(db, uuid.UUID(str(flow_id)), status=JobStatus.PENDING)


def _row_count(db, flow_id):
    return db.query(ScheduledEmail).filter(ScheduledEmail.flow_id == uuid.UUID(str(flow_id))).count()


# =============================================================================
# Save
# =============================================================================


@pytest.mark.asyncio
async def test_save_does_not_schedule(authed_client, db, flow_payload):
    response = await authed_client.post("/workflows/save", json=flow_payload)

    assert response.status_code == 201
    data = response.json()
    assert data["flow"]["status"] == FlowStatus.PENDING.value
    assert data["flow"]["nodes"][0]["position"] == {"x": 0, "y": 0}
    assert data["schedule"] is None
    assert _pending_jobs(db, data["flow"]["id"]) == []


@pytest.mark.asyncio
async def test_save_rejects_invalid_graph(authed_client, db, flow_payload, make_lead_source):
    empty = make_lead_source([], name="Empty")
    flow_payload["nodes"][0] = source_node("S1", empty.id)

    response = await authed_client.post("/workflows/save", json=flow_payload)

    assert response.status_code == 400
    assert response.json()["detail"] == MSG_SOURCE_NO_CONTACTS
    assert db.query(Flow).count() == 0


@pytest.mark.asyncio
async def test_save_rejects_unknown_node_type(authed_client, flow_payload):
    flow_payload["nodes"].append({"id": "X", "type": "sms", "data": {}})

    response = await authed_client.post("/workflows/save", json=flow_payload)

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_save_and_start_schedules(authed_client, db, flow_payload):
    response = await authed_client.post("/workflows/save-and-start", json=flow_payload)

    assert response.status_code == 201
    data = response.json()
    assert data["flow"]["status"] == FlowStatus.RUNNING.value
    assert data["schedule"] == {"scheduled": 2, "anomalies": []}
    assert len(_pending_jobs(db, data["flow"]["id"])) == 2
    assert _row_count(db, data["flow"]["id"]) == 2


# =============================================================================
# Read
# =============================================================================


@pytest.mark.asyncio
async def test_list_and_get(authed_client, flow_payload):
    created = (await authed_client.post("/workflows/save", json=flow_payload)).json()["flow"]

    listing = await authed_client.get("/workflows/getAll")
    assert listing.status_code == 200
    assert [f["id"] for f in listing.json()] == [created["id"]]

    detail = await authed_client.get(f"/workflows/get/{created['id']}")
    assert detail.status_code == 200
    assert detail.json()["name"] == "Outreach"


@pytest.mark.asyncio
async def test_other_users_flow_is_not_found(authed_client, db, other_user):
    flow = Flow(user_id=other_user.id, name="Theirs", nodes=[], edges=[])
    db.add(flow)
    db.commit()

    response = await authed_client.get(f"/workflows/get/{flow.id}")

    assert response.status_code == 404


# =============================================================================
# Update
# =============================================================================


@pytest.mark.asyncio
async def test_update_cancels_outstanding_emails(authed_client, db, flow_payload):
    created = (await authed_client.post("/workflows/save-and-start", json=flow_payload)).json()
    flow_id = created["flow"]["id"]

    response = await authed_client.patch(f"/workflows/update/{flow_id}", json={"name": "Renamed"})

    assert response.status_code == 200
    data = response.json()
    assert data["flow"]["name"] == "Renamed"
    assert data["flow"]["status"] == FlowStatus.PENDING.value
    assert _pending_jobs(db, flow_id) == []
    assert _row_count(db, flow_id) == 0


@pytest.mark.asyncio
async def test_invalid_update_leaves_schedule_untouched(
    authed_client, db, flow_payload, make_lead_source
):
    created = (await authed_client.post("/workflows/save-and-start", json=flow_payload)).json()
    flow_id = created["flow"]["id"]
    empty = make_lead_source([], name="Empty")
    nodes = list(flow_payload["nodes"])
    nodes[0] = source_node("S1", empty.id)

    response = await authed_client.patch(f"/workflows/update/{flow_id}", json={"nodes": nodes})

    assert response.status_code == 400
    assert len(_pending_jobs(db, flow_id)) == 2


@pytest.mark.asyncio
async def test_update_and_start_replaces_schedule(authed_client, db, flow_payload):
    created = (await authed_client.post("/workflows/save-and-start", json=flow_payload)).json()
    flow_id = created["flow"]["id"]
    old_job_ids = {j.id for j in _pending_jobs(db, flow_id)}
    nodes = list(flow_payload["nodes"])
    nodes[1] = wait_node("W1", days=1)

    response = await authed_client.patch(
        f"/workflows/update-and-start/{flow_id}", json={"nodes": nodes}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["flow"]["status"] == FlowStatus.RUNNING.value
    assert data["schedule"]["scheduled"] == 2
    new_jobs = _pending_jobs(db, flow_id)
    assert len(new_jobs) == 2
    assert old_job_ids.isdisjoint({j.id for j in new_jobs})


# =============================================================================
# Scheduler control
# =============================================================================


@pytest.mark.asyncio
async def test_start_twice_does_not_duplicate(authed_client, db, flow_payload):
    flow_id = (await authed_client.post("/workflows/save", json=flow_payload)).json()["flow"]["id"]

    first = await authed_client.post(f"/workflows/start-scheduler/{flow_id}")
    second = await authed_client.post(f"/workflows/start-scheduler/{flow_id}")

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["flow"]["status"] == FlowStatus.RUNNING.value
    assert len(_pending_jobs(db, flow_id)) == 2
    assert _row_count(db, flow_id) == 2


@pytest.mark.asyncio
async def test_stop_returns_flow_to_pending(authed_client, db, flow_payload):
    flow_id = (
        await authed_client.post("/workflows/save-and-start", json=flow_payload)
    ).json()["flow"]["id"]

    response = await authed_client.post(f"/workflows/stop-scheduler/{flow_id}")

    assert response.status_code == 200
    assert response.json()["flow"]["status"] == FlowStatus.PENDING.value
    assert _pending_jobs(db, flow_id) == []


@pytest.mark.asyncio
async def test_stop_reports_stale_jobs(authed_client, db, flow_payload):
    flow_id = (
        await authed_client.post("/workflows/save-and-start", json=flow_payload)
    ).json()["flow"]["id"]
    stale = _pending_jobs(db, flow_id)[0]
    job_service.mark_job_completed(db, stale)

    response = await authed_client.post(f"/workflows/stop-scheduler/{flow_id}")

    assert response.status_code == 409
    assert "no longer in the job queue" in response.json()["detail"]
    assert _row_count(db, flow_id) == 0

    retry = await authed_client.post(f"/workflows/stop-scheduler/{flow_id}")
    assert retry.status_code == 200


@pytest.mark.asyncio
async def test_delete_cancels_and_removes(authed_client, db, flow_payload):
    flow_id = (
        await authed_client.post("/workflows/save-and-start", json=flow_payload)
    ).json()["flow"]["id"]

    response = await authed_client.delete(f"/workflows/delete/{flow_id}")

    assert response.status_code == 204
    assert db.query(Flow).count() == 0
    assert _pending_jobs(db, flow_id) == []


# =============================================================================
# Auth
# =============================================================================


@pytest.mark.asyncio
async def test_requires_authentication(client):
    response = await client.get("/workflows/getAll")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_mutation_requires_csrf_header(authed_client, flow_payload):
    response = await authed_client.post(
        "/workflows/save", json=flow_payload, headers={"X-Requested-With": ""}
    )

    assert response.status_code == 403
