"""
Report rendering for the PYLON usage reporter.
Builds the usage summary and per-index breakdown tables from a finished
ReportState and optionally exports the breakdown to CSV.
"""

import logging
import sys
from datetime import datetime
from typing import Optional, TextIO

import pandas as pd

from error_handling import handle_pipeline_phase, ReportRenderError
from usage_calculator import ReportState, delimit

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = ["User Name", "Billing Start Date", "Total Usage", "Generated At"]
BREAKDOWN_COLUMNS = ["Volume", "Status", "Index Name", "Identity", "Index ID"]

DISCLAIMER = (
    "Disclaimer: These totals are approximations only and may not accurately represent interaction totals\n"
    "  for official billing purposes."
)


def build_summary_frame(username: str, state: ReportState, generated_at: datetime) -> pd.DataFrame:
    """One-row summary of the billing period total."""
    return pd.DataFrame(
        [[
            username,
            state.billing_window.start_date.isoformat(),
            delimit(state.volume),
            generated_at.strftime('%Y-%m-%d %H:%M:%S %z'),
        ]],
        columns=SUMMARY_COLUMNS,
    )


def build_breakdown_frame(state: ReportState, formatted: bool = True) -> pd.DataFrame:
    """
    Per-index volumes, highest volume first.

    Args:
        state: Finished report state.
        formatted: Render volumes with thousands separators; raw integers
            otherwise (used for CSV export).
    """
    rows = []
    for volume, indexes in state.sorted_volume_groups():
        for index in indexes:
            rows.append([
                delimit(volume) if formatted else volume,
                index.status,
                index.name,
                state.identity_label(index),
                index.id,
            ])
    return pd.DataFrame(rows, columns=BREAKDOWN_COLUMNS)


def render_table(frame: pd.DataFrame) -> str:
    if frame.empty:
        return "  (no rows)"
    return frame.to_string(index=False)


@handle_pipeline_phase(phase_name="REPORT", error_cls=ReportRenderError)
def print_report(
    username: str,
    state: ReportState,
    generated_at: datetime,
    stream: Optional[TextIO] = None
) -> None:
    """Print both tables and the closing disclaimer."""
    out = stream or sys.stdout

    summary = render_table(build_summary_frame(username, state, generated_at))
    breakdown = render_table(build_breakdown_frame(state))

    out.write("\nUsage Summary:\n")
    out.write("=" * 70 + "\n")
    out.write(summary + "\n")
    out.write("=" * 70 + "\n")

    out.write("\nUsage Totals by Index:\n")
    out.write("=" * 70 + "\n")
    out.write(breakdown + "\n")
    out.write("=" * 70 + "\n")

    if state.redacted_indexes:
        out.write(
            f"\n{len(state.redacted_indexes)} redacted indexes were counted as 0 interactions: "
            f"{', '.join(state.redacted_indexes)}\n"
        )
    if state.unanalyzed_indexes:
        out.write(
            f"\n{len(state.unanalyzed_indexes)} indexes could not be analyzed and were counted as 0 interactions: "
            f"{', '.join(state.unanalyzed_indexes)}\n"
        )
    if state.invalid_indexes:
        out.write(
            f"\n{len(state.invalid_indexes)} indexes could not be read and were counted as 0 interactions: "
            f"{', '.join(state.invalid_indexes)}\n"
        )

    out.write(f"\n{DISCLAIMER}\n\n")


@handle_pipeline_phase(phase_name="EXPORT_CSV", error_cls=ReportRenderError)
def export_breakdown_csv(state: ReportState, output_filename: str = 'usage_by_index.csv') -> None:
    """
    Export the per-index breakdown with raw integer volumes.

    Args:
        state: Finished report state.
        output_filename: Output CSV filename.
    """
    frame = build_breakdown_frame(state, formatted=False)
    frame.to_csv(output_filename, index=False)
    logger.info(f"Usage breakdown saved to {output_filename} ({len(frame)} rows)")
