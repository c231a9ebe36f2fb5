from __future__ import annotations

from ..models.import_outcome import RunSummary

"""SUMMARY line rendering.

Format:
    SUMMARY files={n} success={s} failed={f} accepted={a} rejected={r} inserted={i} elapsed_sec={e}
"""


def _format_number(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # 指数表記を避ける
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(summary: RunSummary) -> str:
    """Render the SUMMARY line for one CLI run.

    Examples:
        >>> s = RunSummary(success_files=1, failed_files=0, accepted_rows=3,
        ...                rejected_rows=1, inserted_rows=3, elapsed_seconds=2.0)
        >>> render_summary_line(s)
        'SUMMARY files=1 success=1 failed=0 accepted=3 rejected=1 inserted=3 elapsed_sec=2'
    """
    return (
        f"SUMMARY files={summary.total_files} "
        f"success={summary.success_files} "
        f"failed={summary.failed_files} "
        f"accepted={summary.accepted_rows} "
        f"rejected={summary.rejected_rows} "
        f"inserted={summary.inserted_rows} "
        f"elapsed_sec={_format_number(summary.elapsed_seconds)}"
    )
