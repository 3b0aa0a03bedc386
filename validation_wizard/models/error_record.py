from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

from .error_location import ErrorLocation

"""ErrorRecord model for the validation report.

One JSON Lines record per detected error location, written by
``validation_wizard.logging.error_log.ErrorLogBuffer``. The key set is fixed:
no extra keys are ever emitted.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured validation report record.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        template: template id (string form)
        sheet: sheet name ('' for CSV sources)
        column: column the error belongs to
        phase: generic / custom / final
        row: 1-based data row number
        value: original value ("NULL" sentinel for empty cells)
        rule_failed: identifier of the failing rule
        reason_code: stable reason code
        reason: human-readable message
    """
    timestamp: str  # ISO8601 UTC
    template: str
    sheet: str
    column: str
    phase: str
    row: int
    value: str
    rule_failed: str
    reason_code: str
    reason: str

    @staticmethod
    def create(template: str, sheet: str, column: str, phase: str, location: ErrorLocation) -> ErrorRecord:
        """Create a record from an ErrorLocation with the current UTC timestamp."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            template=str(template),
            sheet=sheet,
            column=column,
            phase=phase,
            row=location.row,
            value=location.value,
            rule_failed=location.rule_failed,
            reason_code=location.reason_code,
            reason=location.reason,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
