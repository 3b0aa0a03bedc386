"""Domain models for the data-upload validation wizard.

Rules and formula tokens, reason codes and outcomes, error locations, rows,
session state and configuration.
"""

from .config_models import CustomRuleConfig, WizardConfig
from .error_location import ErrorIndex, ErrorLocation
from .error_record import ErrorRecord
from .formula import FormulaError, Token, TokenKind
from .reasons import ReasonCode, ValidationOutcome
from .row_data import NULL_SENTINEL, RowData
from .rules import (
    REQUIRED,
    CustomRule,
    DateFormat,
    DateRule,
    RequiredRule,
    Rule,
    TransformDateRule,
    TypeKind,
    TypeRule,
)
from .session_state import Phase, SessionState

__all__ = [
    # Configuration models
    "CustomRuleConfig",
    "WizardConfig",
    # Rule model
    "REQUIRED",
    "CustomRule",
    "DateFormat",
    "DateRule",
    "FormulaError",
    "RequiredRule",
    "Rule",
    "Token",
    "TokenKind",
    "TransformDateRule",
    "TypeKind",
    "TypeRule",
    # Validation results
    "ErrorIndex",
    "ErrorLocation",
    "ErrorRecord",
    "ReasonCode",
    "ValidationOutcome",
    # Processing models
    "NULL_SENTINEL",
    "Phase",
    "RowData",
    "SessionState",
]
