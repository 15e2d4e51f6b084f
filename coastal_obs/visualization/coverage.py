import datetime as dt
from typing import Dict, List, Sequence, Tuple

from ..exporters.verifier import VerificationReport

GREEN = "\033[92m"
ORANGE = "\033[93m"  # yellow renders as orange on most terminals
RED = "\033[91m"
RESET = "\033[0m"


def _cell(report: VerificationReport, color: bool) -> str:
    if report.records_found == 0:
        symbol, tint = ".", RED
    elif report.missing_expected:
        symbol, tint = "~", ORANGE
    else:
        symbol, tint = "X", GREEN
    return f"{tint}{symbol}{RESET}" if color else symbol


def render_completeness_chart(reports: Sequence[VerificationReport], *, color: bool = True) -> str:
    """Station x day grid: X complete, ~ some expected fields missing, . no records."""
    if not reports:
        return "No verification results to chart."

    days: List[dt.date] = sorted({report.day for report in reports})
    stations: List[str] = []
    cells: Dict[Tuple[str, dt.date], VerificationReport] = {}
    for report in reports:
        if report.station_id not in stations:
            stations.append(report.station_id)
        cells[(report.station_id, report.day)] = report

    width = max(20, max(len(station) for station in stations) + 2)
    lines = [
        f"Completeness {days[0].isoformat()} to {days[-1].isoformat()}",
        "-" * 80,
        f"{'Station':<{width}} " + " ".join(day.strftime("%m/%d") for day in days),
    ]
    for station in stations:
        row = []
        for day in days:
            report = cells.get((station, day))
            # Pad to the five-character date header.
            row.append((_cell(report, color) if report else " ") + "    ")
        lines.append(f"{station:<{width}} " + " ".join(row).rstrip())
    lines.append("-" * 80)
    lines.append("X complete   ~ expected fields missing   . no records")
    return "\n".join(lines)


def print_completeness_chart(reports: Sequence[VerificationReport], *, color: bool = True) -> None:
    print(render_completeness_chart(reports, color=color))
