from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the validation wizard.

Produced by ``validation_wizard.config.loader.load_config`` after the YAML has
passed JSON-schema validation. Rule identifiers are kept as strings here; the
session turns them into typed rules (and surfaces composition errors).
"""

__all__ = [
    "CustomRuleConfig",
    "WizardConfig",
]


@dataclass(frozen=True)
class CustomRuleConfig:
    """Custom (formula) rule as written in the config file."""
    rule_name: str
    column_name: str
    formula: list[str]  # dragged items, e.g. ["<=", "200"] / ["'a'", "+", "'b'"]
    is_active: bool = True
    description: str = ""
    rule_id: int | None = None


@dataclass(frozen=True)
class WizardConfig:
    """Root configuration for one validation run (one template, one sheet)."""
    template_id: int
    source_file: str
    columns: dict[str, list[str]]  # column -> ordered rule identifiers
    sheet_name: str | None = None  # CSV では無視
    header_row: int = 1  # 1-based
    output_directory: str = "./output"
    batch_size: int = 500
    null_sentinels: set[str] | None = None  # 大文字化済
    custom_rules: list[CustomRuleConfig] = field(default_factory=list)
