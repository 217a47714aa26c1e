"""Plain-text rendering of the run summary."""

from typing import List, Optional, Tuple

from ..analysis.trend import TrendSummary


def _fmt(value: Optional[float], unit: str = "", digits: int = 3) -> str:
    if value is None:
        return "n/a"
    return f"{value:+.{digits}f}{unit}"


def format_summary(
    summary: TrendSummary,
    mean_lst: List[Tuple[int, Optional[float]]],
    region_name: str = "region"
) -> str:
    """Human-readable summary of the region-mean trend and annual series."""
    lines = [
        "=" * 60,
        f"LST trend summary - {region_name}",
        "=" * 60,
        f"Mean slope:        {_fmt(summary.mean_slope, ' C/yr', 4)}",
        f"Total change:      {_fmt(summary.total_change, ' C')} over {summary.span_years} years",
        f"Threshold:         |slope| > {summary.threshold} C/yr",
        f"Valid pixels:      {summary.valid_pixels:,}",
        f"Significant:       {summary.significant_pixels:,}",
        f"Years regressed:   {len(summary.years_used)}",
        "",
        "Annual mean LST:",
    ]
    for year, value in mean_lst:
        lines.append(f"  {year}: {'missing' if value is None else f'{value:.2f} C'}")
    lines.append("=" * 60)
    return "\n".join(lines)
