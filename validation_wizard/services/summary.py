from __future__ import annotations

from collections.abc import Mapping

from ..models.session_state import Phase
from .correction import PhaseStats

"""SUMMARY line rendering.

Format::

    SUMMARY rows={rows} generic_rules={n} generic_errors={n} generic_corrected={n}
    custom_rules={n} custom_errors={n} custom_corrected={n} status={clean|resolved|errors}
"""

__all__ = [
    "all_errors_resolved",
    "render_summary_line",
]


def all_errors_resolved(stats: Mapping[Phase, PhaseStats]) -> bool:
    """True when corrected totals equal detected totals across phases."""
    detected = sum(s.errors_detected for s in stats.values())
    corrected = sum(s.errors_corrected for s in stats.values())
    return corrected == detected


def render_summary_line(rows: int, stats: Mapping[Phase, PhaseStats]) -> str:
    """Render the SUMMARY line for one run.

    Examples:
        >>> render_summary_line(3, {Phase.GENERIC: PhaseStats(2, 1, 0)})
        'SUMMARY rows=3 generic_rules=2 generic_errors=1 generic_corrected=0 custom_rules=0 custom_errors=0 custom_corrected=0 status=errors'
    """
    parts = [f"SUMMARY rows={rows}"]
    for phase in (Phase.GENERIC, Phase.CUSTOM):
        s = stats.get(phase, PhaseStats())
        parts.append(
            f"{phase.value}_rules={s.rules_applied} "
            f"{phase.value}_errors={s.errors_detected} "
            f"{phase.value}_corrected={s.errors_corrected}"
        )
    detected = sum(s.errors_detected for s in stats.values())
    if detected == 0:
        status = "clean"
    elif all_errors_resolved(stats):
        status = "resolved"
    else:
        status = "errors"
    parts.append(f"status={status}")
    return " ".join(parts)
