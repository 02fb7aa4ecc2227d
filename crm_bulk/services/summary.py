from __future__ import annotations

from ..models.import_outcome import ImportOutcome

"""Summary rendering for import results.

Two renderings of the same ImportOutcome:
- render_summary_line: machine-greppable SUMMARY line for the CLI / logs
- render_import_message: short human message with a bounded error sample
"""

__all__ = [
    "format_seconds",
    "render_summary_line",
    "render_import_message",
]


def format_seconds(value: float) -> str:
    """Compact seconds formatting without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(entity: str, outcome: ImportOutcome, elapsed_seconds: float) -> str:
    """Render the SUMMARY line.

    Format:
    SUMMARY entity={name} rows={processed} created={n} updated={n} errors={n} elapsed_sec={x}

    Examples:
        >>> o = ImportOutcome(success_count=3, update_count=1, error_count=1)
        >>> render_summary_line("accounts", o, 2.0)
        'SUMMARY entity=accounts rows=5 created=3 updated=1 errors=1 elapsed_sec=2'
    """
    return (
        f"SUMMARY entity={entity} "
        f"rows={outcome.processed} "
        f"created={outcome.success_count} "
        f"updated={outcome.update_count} "
        f"errors={outcome.error_count} "
        f"elapsed_sec={format_seconds(elapsed_seconds)}"
    )


def render_import_message(outcome: ImportOutcome, noun: str, sample_size: int = 3) -> str:
    """User-facing result message, e.g. "3 new accounts imported, 1 errors".

    Only the first ``sample_size`` row errors are included; the full list stays in
    ``outcome.errors`` / the error log.
    """
    parts = []
    if outcome.success_count > 0:
        parts.append(f"{outcome.success_count} new {noun} imported")
    if outcome.update_count > 0:
        parts.append(f"{outcome.update_count} {noun} updated")
    if outcome.error_count > 0:
        parts.append(f"{outcome.error_count} errors")
    message = ", ".join(parts) if parts else f"No {noun} were imported"

    stats = outcome.user_resolution
    if stats.get("resolved", 0) > 0 or stats.get("fallback", 0) > 0:
        message += f" | Users: {stats.get('resolved', 0)} resolved, {stats.get('fallback', 0)} fallback"

    sample = outcome.error_sample(sample_size)
    if sample:
        message += ". " + "; ".join(sample)
        hidden = outcome.error_count - len(sample)
        if hidden > 0:
            message += f" (+{hidden} more)"
    return message
