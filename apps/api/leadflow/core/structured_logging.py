"""Structured logging helpers (PII-safe)."""

from typing import Any


def build_log_context(
    *,
    user_id: str | None = None,
    flow_id: str | None = None,
    job_id: str | None = None,
    node_id: str | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Return a PII-safe log context dict (no recipient addresses)."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = user_id
    if flow_id:
        context["flow_id"] = flow_id
    if job_id:
        context["job_id"] = job_id
    if node_id:
        context["node_id"] = node_id
    if request_id:
        context["request_id"] = request_id
    return context
