"""
Common utilities for agentsync.

Shared between the sync engine and the CLI: status names, report
formatting and the run timestamp.
"""

from datetime import datetime, timezone
from typing import Optional


STATUS_UPDATED = "updated"
STATUS_WOULD_UPDATE = "would update"
STATUS_OK = "ok"


def status_for(changed: bool, simulate: bool) -> str:
    """
    Pick the status word reported for one target.

    Args:
        changed: Whether the destination differs from the rendered output
        simulate: Whether this is a dry-run/check run

    Returns:
        One of STATUS_UPDATED, STATUS_WOULD_UPDATE or STATUS_OK
    """
    if not changed:
        return STATUS_OK
    return STATUS_WOULD_UPDATE if simulate else STATUS_UPDATED


def format_report_line(agent_name: str, status: str, dest: str) -> str:
    """Format the per-target line, e.g. ``[claude] updated: /home/me/CLAUDE.md``."""
    return f"[{agent_name}] {status}: {dest}"


def run_timestamp(now: Optional[datetime] = None) -> str:
    """
    Format the run-wide timestamp as 14 digits, ``YYYYMMDDHHMMSS`` in UTC.

    Args:
        now: Moment to format (defaults to the current time)
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y%m%d%H%M%S")
