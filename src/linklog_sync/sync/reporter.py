"""Report formatting functions.

Provides human-readable and machine-readable output for engine operations:

- ``format_write_outcome`` -- result of one immediate write.
- ``format_drain_report`` -- post-drain summary.
- ``format_queue_status`` -- queue and index overview.
- ``report_to_json`` -- structured dict for MCP tool output.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import DrainReport, WriteOutcome

# ------------------------------------------------------------------
# Immediate writes
# ------------------------------------------------------------------


def format_write_outcome(profile_url: str, outcome: WriteOutcome) -> str:
    """Format a write outcome the way the capture form shows it."""
    mode = outcome.mode.value
    if outcome.success:
        row = f" (row {outcome.remote_id})" if outcome.remote_id else ""
        return f"Saved {profile_url} ({mode}){row}."
    if outcome.queued:
        return (
            f"Could not save {profile_url} now: {outcome.error}. "
            "Queued for retry; it will be sent automatically."
        )
    return f"Save failed for {profile_url} ({mode}): {outcome.error}"


# ------------------------------------------------------------------
# Drain passes
# ------------------------------------------------------------------


def format_drain_report(report: DrainReport) -> str:
    """Format a drain report as human-readable text.

    Sections are only included when they contain at least one result.

    Args:
        report: The completed drain report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append(f"Drain started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append(report.summary())
    lines.append("")

    if report.synced:
        lines.append("Synced:")
        for r in report.synced:
            lines.append(f"  {r.profile_url} ({r.mode.value})")
        lines.append("")

    if report.requeued:
        lines.append("Requeued:")
        for r in report.requeued:
            lines.append(
                f"  {r.profile_url}: retry {r.retry_count}, {r.error}"
            )
        lines.append("")

    if report.dropped:
        lines.append("Dropped:")
        for r in report.dropped:
            kind = r.error_kind.value if r.error_kind else "error"
            lines.append(f"  {r.profile_url} [{kind}]: {r.error}")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Queue status
# ------------------------------------------------------------------


def format_queue_status(status: dict) -> str:
    """Format the dict returned by ``SyncEngine.status()``."""
    lines = [
        "Queue status",
        f"  Scheduler:  {status['scheduler_state']}",
        f"  Queued:     {status['queued']}",
        f"  Indexed:    {status['indexed']}",
        f"  Last drain: {status['last_drain'] or 'never'}",
    ]
    items = status.get("items", [])
    if items:
        lines.append("")
        lines.append("Pending writes:")
        for item in items:
            line = (
                f"  {item['profile_url']} ({item['mode']}, "
                f"retry {item['retry_count']})"
            )
            if item.get("last_error"):
                line += f": {item['last_error']}"
            lines.append(line)
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: DrainReport) -> dict:
    """Convert a drain report to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "profile_url": r.profile_url,
            "mode": r.mode.value,
            "action": r.action.value,
            "retry_count": r.retry_count,
        }
        if r.error:
            entry["error"] = r.error
        if r.error_kind:
            entry["error_kind"] = r.error_kind.value
        results_list.append(entry)

    return {
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "total": len(report.results),
            "synced": len(report.synced),
            "requeued": len(report.requeued),
            "dropped": len(report.dropped),
            "remaining": report.remaining,
        },
        "results": results_list,
    }
