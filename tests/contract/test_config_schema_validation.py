from __future__ import annotations

import json

import jsonschema
import pytest
import yaml
from jsonschema.exceptions import ValidationError

from validation_wizard.config.loader import SCHEMA_PATH

"""Config schema contract test (packaged config_schema.json)."""


@pytest.fixture(scope="module")
def schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def test_config_schema_is_valid_draft(schema):
    jsonschema.Draft202012Validator.check_schema(schema)


def test_config_schema_valid_example(schema, sample_config_yaml):
    jsonschema.validate(yaml.safe_load(sample_config_yaml), schema)


def test_config_schema_minimal_example(schema):
    config = {"template_id": 1, "source_file": "upload.xlsx", "columns": {"qty": ["Required", "Int"]}}
    jsonschema.validate(config, schema)


@pytest.mark.parametrize(
    "patch",
    [
        {"template_id": 0},
        {"source_file": ""},
        {"columns": {}},
        {"columns": {"qty": [""]}},
        {"header_row": 0},
        {"batch_size": "500"},
        {"custom_rules": [{"rule_name": "r", "column_name": "qty"}]},
        {"custom_rules": [{"rule_name": "r", "column_name": "qty", "formula": []}]},
        {"custom_rules": [{"rule_name": "r", "column_name": "qty", "formula": ["<", 1], "extra": True}]},
        {"unknown_key": 1},
    ],
)
def test_config_schema_invalid_examples(schema, patch):
    config = {"template_id": 1, "source_file": "upload.xlsx", "columns": {"qty": ["Required", "Int"]}}
    config.update(patch)
    with pytest.raises(ValidationError):
        jsonschema.validate(config, schema)
