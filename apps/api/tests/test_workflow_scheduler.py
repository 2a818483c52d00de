from datetime import datetime, timedelta, timezone

from leadflow.db.enums import FlowStatus, JobStatus, JobType
from leadflow.db.models import Flow, Job, ScheduledEmail
from leadflow.schemas.workflow import WorkflowGraph
from leadflow.services.workflow_errors import SchedulingAnomaly
from leadflow.services.workflow_resolver import PlanEntry, ResolvedPlan, resolve_plan
from leadflow.services.workflow_scheduler import schedule_plan

from conftest import edge, email_node, source_node, wait_node

NOW = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


def _flow_with_plan(db, test_user, make_lead_source, make_template, contacts=None):
    ls = make_lead_source(
        contacts or [{"name": "A", "email": "a@x.com"}, {"name": "B", "email": "b@x.com"}]
    )
    tpl = make_template(subject="Subject", body="Body")
    graph = WorkflowGraph.model_validate(
        {
            "nodes": [source_node("S1", ls.id), wait_node("W1", hours=2), email_node("E1", tpl.id)],
            "edges": [edge("S1", "W1"), edge("W1", "E1")],
        }
    )
    nodes, edges = graph.to_storage()
    flow = Flow(user_id=test_user.id, name="Outreach", nodes=nodes, edges=edges)
    db.add(flow)
    db.commit()
    return flow, resolve_plan(db, graph, test_user.id, now=NOW)


def test_schedule_plan_enqueues_and_records(db, queue, test_user, make_lead_source, make_template):
    flow, plan = _flow_with_plan(db, test_user, make_lead_source, make_template)

    result = schedule_plan(db, queue, flow, plan, sender_email=test_user.email)

    assert result.scheduled == 2
    assert result.anomalies == []

    rows = db.query(ScheduledEmail).filter(ScheduledEmail.flow_id == flow.id).all()
    assert sorted(r.recipient_email for r in rows) == ["a@x.com", "b@x.com"]

    jobs = db.query(Job).all()
    assert len(jobs) == 2
    assert {j.id for j in jobs} == {r.job_id for r in rows}
    for job in jobs:
        assert job.job_type == JobType.WORKFLOW_EMAIL.value
        assert job.run_at == NOW + timedelta(hours=2)
        assert job.max_attempts == 1
        assert job.payload["flow_id"] == str(flow.id)
        assert job.payload["sender"] == test_user.email
        assert job.payload["subject"] == "Subject"
        assert job.payload["email_node_id"] == "E1"

    db.refresh(flow)
    assert flow.status == FlowStatus.RUNNING.value


def test_empty_plan_leaves_flow_pending(db, queue, test_user, make_lead_source, make_template):
    flow, _ = _flow_with_plan(db, test_user, make_lead_source, make_template)

    result = schedule_plan(db, queue, flow, ResolvedPlan(), sender_email=test_user.email)

    assert result.scheduled == 0
    db.refresh(flow)
    assert flow.status == FlowStatus.PENDING.value


def test_enqueue_failure_is_reported(db, fake_queue, test_user, make_lead_source, make_template):
    flow, plan = _flow_with_plan(db, test_user, make_lead_source, make_template)
    fake_queue.fail_schedule = True

    result = schedule_plan(db, fake_queue, flow, plan, sender_email=test_user.email)

    assert result.scheduled == 0
    assert [a.kind for a in result.anomalies] == ["enqueue_failed", "enqueue_failed"]
    assert db.query(ScheduledEmail).count() == 0
    db.refresh(flow)
    assert flow.status == FlowStatus.PENDING.value


def _broken_entry(plan):
    good = plan.entries[0]
    # NOT NULL violation on the tracking row
    return PlanEntry(
        source_node_id=None,
        contact=good.contact,
        email_node_id=good.email_node_id,
        template_id=good.template_id,
        subject=good.subject,
        body=good.body,
        send_at=good.send_at,
    )


def test_persist_failure_cancels_the_job(db, queue, test_user, make_lead_source, make_template):
    flow, plan = _flow_with_plan(db, test_user, make_lead_source, make_template)
    plan = ResolvedPlan(entries=[_broken_entry(plan), plan.entries[1]])

    result = schedule_plan(db, queue, flow, plan, sender_email=test_user.email)

    assert result.scheduled == 1
    assert [a.kind for a in result.anomalies] == ["persist_failed"]
    assert result.drift == []

    statuses = sorted(j.status for j in db.query(Job).all())
    assert statuses == [JobStatus.CANCELED.value, JobStatus.PENDING.value]
    assert db.query(ScheduledEmail).count() == 1


def test_failed_compensation_reports_orphan_job(
    db, fake_queue, test_user, make_lead_source, make_template
):
    flow, plan = _flow_with_plan(db, test_user, make_lead_source, make_template)
    plan = ResolvedPlan(entries=[_broken_entry(plan)])
    fake_queue.cancel_returns_zero = True

    result = schedule_plan(db, fake_queue, flow, plan, sender_email=test_user.email)

    assert result.scheduled == 0
    assert [a.kind for a in result.anomalies] == ["persist_failed"]
    assert [d.kind for d in result.drift] == ["orphan_job"]
    assert result.drift[0].job_id in fake_queue.jobs


def test_resolver_anomalies_carried_into_result(db, fake_queue, test_user, make_lead_source, make_template):
    flow, plan = _flow_with_plan(db, test_user, make_lead_source, make_template)
    plan.anomalies.append(SchedulingAnomaly("cycle", "loop", source_node_id="S1", email_node_id="E1"))

    result = schedule_plan(db, fake_queue, flow, plan, sender_email=test_user.email)

    assert result.scheduled == 2
    assert [a.kind for a in result.anomalies] == ["cycle"]
