"""CLI tools for Leadflow administration."""

import asyncio
from uuid import UUID

import click

from leadflow.core.security import create_session_token
from leadflow.db.session import SessionLocal
from leadflow.services import flow_status_service, user_service


@click.group()
def cli():
    """Leadflow CLI tools."""
    pass


@cli.command()
@click.option("--email", required=True, help="User email address")
@click.option("--display-name", default="", help="Display name (defaults to the email's local part)")
def create_user(email: str, display_name: str):
    """
    Create a user and print a session token for it.

    Example:
        python -m leadflow.cli create-user --email "owner@example.com"
    """
    db = SessionLocal()
    try:
        user = user_service.create_user(db, email, display_name)
        token = create_session_token(user.id, user.email, user.token_version)
        click.echo(f"✓ Created user: {user.email}")
        click.echo(f"  ID: {user.id}")
        click.echo(f"  Token: {token}")
    except ValueError as e:
        db.rollback()
        click.echo(f"❌ {e}")
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email address")
def issue_token(email: str):
    """Print a fresh session token for an existing user."""
    db = SessionLocal()
    try:
        user = user_service.get_user_by_email(db, email)
        if not user:
            click.echo(f"❌ User not found: {email}")
            return
        click.echo(create_session_token(user.id, user.email, user.token_version))
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email to revoke sessions for")
def revoke_sessions(email: str):
    """
    Revoke all sessions for a user by bumping their token_version.

    Example:
        python -m leadflow.cli revoke-sessions --email "user@example.com"
    """
    db = SessionLocal()
    try:
        user = user_service.get_user_by_email(db, email)
        if not user:
            click.echo(f"❌ User not found: {email}")
            return

        old_version = user.token_version
        user = user_service.revoke_sessions(db, user)

        click.echo(f"✓ Revoked all sessions for {email}")
        click.echo(f"  Token version: {old_version} → {user.token_version}")
    finally:
        db.close()


@cli.command()
@click.argument("flow_id", type=click.UUID)
def flow_status(flow_id: UUID):
    """Show a flow's stored and projected status and its outstanding emails."""
    from leadflow.db.models import Flow

    db = SessionLocal()
    try:
        flow = db.query(Flow).filter(Flow.id == flow_id).first()
        if not flow:
            click.echo(f"❌ Flow not found: {flow_id}")
            return
        projected = flow_status_service.project_flow_status(db, flow.id)
        outstanding = flow_status_service.count_outstanding(db, flow.id)
        click.echo(f"Flow: {flow.name} ({flow.id})")
        click.echo(f"  Status: {flow.status} (projected: {projected.value})")
        click.echo(f"  Outstanding emails: {outstanding}")
    finally:
        db.close()


@cli.command()
@click.argument("flow_id", type=click.UUID)
@click.option("--repair", is_flag=True, help="Clear stale rows and cancel orphan jobs")
def check_drift(flow_id: UUID, repair: bool):
    """Compare a flow's scheduled emails with the job queue."""
    from leadflow.services.job_queue import DatabaseJobQueue
    from leadflow.services.workflow_drift import detect_drift, repair_drift

    db = SessionLocal()
    try:
        queue = DatabaseJobQueue(db)
        findings = detect_drift(db, queue, flow_id)
        if not findings:
            click.echo(f"✓ No drift for flow {flow_id}")
            return
        for drift in findings:
            click.echo(f"  [{drift.kind}] {drift.message}")
        if repair:
            repaired = repair_drift(db, queue, flow_id, findings)
            click.echo(f"✓ Repaired {repaired} of {len(findings)} finding(s)")
        else:
            click.echo(f"❌ {len(findings)} finding(s); rerun with --repair to fix")
    finally:
        db.close()


@cli.command()
@click.option("--limit", default=None, type=int, help="Max jobs to run (default: WORKER_BATCH_SIZE)")
def run_due_jobs(limit: int | None):
    """Run one batch of due jobs and exit."""
    from leadflow.worker import run_due_jobs as run_batch

    db = SessionLocal()
    try:
        processed = asyncio.run(run_batch(db, limit=limit))
        click.echo(f"✓ Processed {processed} job(s)")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
