from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import CustomRuleConfig, WizardConfig

"""Config loader.

- Load the YAML config (default ``config/wizard.yml``)
- Validate it against the packaged JSON schema
- Apply defaults and build WizardConfig
"""

__all__ = [
    "ConfigError",
    "SCHEMA_PATH",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: Any) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or invalid, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path)
        raise ConfigError(f"config validation failed{f' at {where}' if where else ''}: {e.message}") from e


def load_config(path: Path) -> WizardConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e

    _validate_config_schema(data)

    # source_file / output_directory は config ファイル基準の相対パス
    base = path.parent
    source = Path(data["source_file"])
    if not source.is_absolute():
        source = base / source
    output = Path(data.get("output_directory", "./output"))
    if not output.is_absolute():
        output = base / output

    sentinels = data.get("null_sentinels")
    custom_rules = [
        CustomRuleConfig(
            rule_name=raw["rule_name"],
            column_name=raw["column_name"],
            formula=[str(item) for item in raw["formula"]],
            is_active=raw.get("is_active", True),
            description=raw.get("description", ""),
            rule_id=raw.get("rule_id"),
        )
        for raw in data.get("custom_rules", [])
    ]
    return WizardConfig(
        template_id=data["template_id"],
        source_file=str(source),
        columns={str(k): list(v) for k, v in data["columns"].items()},
        sheet_name=data.get("sheet_name"),
        header_row=data.get("header_row", 1),
        output_directory=str(output),
        batch_size=data.get("batch_size", 500),
        null_sentinels={s.strip().upper() for s in sentinels} if sentinels else None,
        custom_rules=custom_rules,
    )
