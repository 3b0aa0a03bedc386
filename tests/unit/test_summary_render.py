from __future__ import annotations

import re

from validation_wizard.models.session_state import Phase
from validation_wizard.services.correction import PhaseStats
from validation_wizard.services.summary import all_errors_resolved, render_summary_line

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY rows=([0-9]+) generic_rules=([0-9]+) generic_errors=([0-9]+) generic_corrected=([0-9]+) "
    r"custom_rules=([0-9]+) custom_errors=([0-9]+) custom_corrected=([0-9]+) status=(clean|resolved|errors)$"
)


def test_render_clean_run():
    line = render_summary_line(4, {Phase.GENERIC: PhaseStats(3, 0, 0), Phase.CUSTOM: PhaseStats(1, 0, 0)})
    m = SUMMARY_PATTERN.match(line)
    assert m is not None
    assert m.groups() == ("4", "3", "0", "0", "1", "0", "0", "clean")


def test_render_resolved_and_errors():
    resolved = {Phase.GENERIC: PhaseStats(3, 2, 2), Phase.CUSTOM: PhaseStats(1, 1, 1)}
    assert render_summary_line(4, resolved).endswith("status=resolved")
    assert all_errors_resolved(resolved)

    partial = {Phase.GENERIC: PhaseStats(3, 2, 2), Phase.CUSTOM: PhaseStats(1, 1, 0)}
    assert render_summary_line(4, partial).endswith("status=errors")
    assert not all_errors_resolved(partial)


def test_missing_phase_renders_zeros():
    line = render_summary_line(0, {})
    assert line == (
        "SUMMARY rows=0 generic_rules=0 generic_errors=0 generic_corrected=0 "
        "custom_rules=0 custom_errors=0 custom_corrected=0 status=clean"
    )
