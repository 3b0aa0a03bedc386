from __future__ import annotations

import logging
import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Protocol

import yaml

from ..excel.reader import MissingColumnsError, SheetHeaderError, UnsupportedFileError, read_table
from ..excel.writer import output_path, write_rows
from ..models.formula import FormulaError, formula_to_parameters, parameters_to_formula
from ..models.row_data import RowData
from ..models.rules import CustomRule, Rule, parse_rule_identifier
from ..models.session_state import Phase

"""Template Store collaborator.

``TemplateStore`` is the contract the session consumes: fetch headers and
rows, fetch rule definitions, persist corrections and maintain rule
definitions (insert, update, toggle, delete). ``FileTemplateStore``
implements it over local files: templates are registered source files
(CSV / Excel), rule definitions live in a YAML file, and corrected data is
written next to the other outputs.

Failures surface as ``TemplateStoreError``; callers never get "no rows" in
place of an error.
"""

__all__ = [
    "FileTemplateStore",
    "RuleDefinition",
    "TemplateData",
    "TemplateStore",
    "TemplateStoreError",
]

logger = logging.getLogger(__name__)

RULES_FILE = "rules.yml"


class TemplateStoreError(Exception):
    """Collaborator failure (unknown template, unreadable file, write error)."""


@dataclass(frozen=True)
class TemplateData:
    headers: list[str]
    rows: list[RowData]
    sheet_name: str = ""


@dataclass(frozen=True)
class RuleDefinition:
    """A persisted rule bound to one template column."""
    template_id: int
    column_name: str
    rule: Rule
    rule_id: int | None = None
    parameters: str = field(default="", compare=False)


class TemplateStore(Protocol):
    def fetch_template_headers_and_rows(self, template_id: int, sheet_name: str | None = None) -> TemplateData: ...

    def fetch_rule_definitions(self, template_id: int) -> list[RuleDefinition]: ...

    def persist_corrections(
        self, template_id: int, corrections: Mapping[tuple[str, int], str], phase: Phase
    ) -> dict[str, str]: ...

    def persist_rule_definition(self, definition: RuleDefinition) -> int: ...

    def update_rule_definition(self, rule_id: int, definition: RuleDefinition) -> None: ...

    def set_rule_active(self, rule_id: int, is_active: bool) -> None: ...

    def delete_rule_definition(self, rule_id: int) -> None: ...

    def export_rows(self, template_id: int, rows: Sequence[RowData], suffix: str) -> dict[str, str]: ...


def _definition_to_dict(d: RuleDefinition) -> dict[str, Any]:
    record: dict[str, Any] = {
        "rule_id": d.rule_id,
        "template_id": d.template_id,
        "column_name": d.column_name,
        "rule_name": d.rule.identifier,
    }
    if isinstance(d.rule, CustomRule):
        record["parameters"] = formula_to_parameters(d.rule.column_name, d.rule.formula)
        record["is_active"] = d.rule.is_active
        record["description"] = d.rule.description
    return record


def _definition_from_dict(record: Mapping[str, Any]) -> RuleDefinition:
    template_id = int(record["template_id"])
    rule_id = record.get("rule_id")
    parameters = record.get("parameters") or ""
    if parameters:
        column, tokens = parameters_to_formula(parameters)
        rule: Rule = CustomRule(
            rule_name=str(record["rule_name"]),
            column_name=column,
            formula=tokens,
            rule_id=rule_id,
            template_id=template_id,
            is_active=bool(record.get("is_active", True)),
            description=str(record.get("description") or ""),
        )
    else:
        rule = parse_rule_identifier(str(record["rule_name"]))
    return RuleDefinition(
        template_id=template_id,
        column_name=str(record["column_name"]).strip().lower(),
        rule=rule,
        rule_id=rule_id,
        parameters=parameters,
    )


class FileTemplateStore:
    """File-backed TemplateStore.

    Args:
        output_directory: where corrected files and ``rules.yml`` are written
        header_row: 1-based header row used when reading templates
        null_sentinels: extra upper-cased strings read as "NULL"
    """

    def __init__(
        self,
        output_directory: Path | str,
        *,
        header_row: int = 1,
        null_sentinels: set[str] | None = None,
    ) -> None:
        self.output_directory = Path(output_directory)
        self.header_row = header_row
        self.null_sentinels = null_sentinels
        self._sources: dict[int, Path] = {}
        self._loaded: dict[int, TemplateData] = {}
        self._lock = threading.Lock()

    @property
    def rules_path(self) -> Path:
        return self.output_directory / RULES_FILE

    def register(self, template_id: int, source: Path | str) -> None:
        self._sources[int(template_id)] = Path(source)

    def _source(self, template_id: int) -> Path:
        try:
            return self._sources[int(template_id)]
        except KeyError:
            raise TemplateStoreError(f"unknown template: {template_id}") from None

    def fetch_template_headers_and_rows(self, template_id: int, sheet_name: str | None = None) -> TemplateData:
        path = self._source(template_id)
        if not path.exists():
            raise TemplateStoreError(f"template file not found: {path}")
        try:
            sheet = read_table(
                path, sheet_name, header_row=self.header_row, null_sentinels=self.null_sentinels
            )
        except (SheetHeaderError, MissingColumnsError, UnsupportedFileError) as e:
            raise TemplateStoreError(str(e)) from e
        except (OSError, ValueError) as e:
            # pandas / openpyxl の読み込み失敗 (シート名不一致など)
            raise TemplateStoreError(f"cannot read {path.name}: {e}") from e
        data = TemplateData(headers=sheet.columns, rows=sheet.rows, sheet_name=sheet.sheet_name)
        self._loaded[int(template_id)] = data
        logger.info(f"template {template_id}: {path.name} headers={len(data.headers)} rows={len(data.rows)}")
        return data

    def _read_definitions(self) -> list[dict[str, Any]]:
        if not self.rules_path.exists():
            return []
        try:
            data = yaml.safe_load(self.rules_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise TemplateStoreError(f"invalid rules file {self.rules_path}: {e}") from e
        return list(data.get("rules", []))

    def fetch_rule_definitions(self, template_id: int) -> list[RuleDefinition]:
        result = []
        for record in self._read_definitions():
            if int(record.get("template_id", -1)) != int(template_id):
                continue
            try:
                result.append(_definition_from_dict(record))
            except (FormulaError, ValueError, KeyError) as e:
                raise TemplateStoreError(f"invalid rule definition {record!r}: {e}") from e
        return result

    def persist_rule_definition(self, definition: RuleDefinition) -> int:
        """Insert or replace a definition (same template, column and rule name)."""
        with self._lock:
            records = self._read_definitions()
            key = (definition.template_id, definition.column_name, definition.rule.identifier)
            existing = next(
                (r for r in records if (r.get("template_id"), r.get("column_name"), r.get("rule_name")) == key),
                None,
            )
            if existing is not None:
                rule_id = int(existing["rule_id"])
                records.remove(existing)
            else:
                rule_id = max((int(r.get("rule_id") or 0) for r in records), default=0) + 1
            stored = RuleDefinition(
                template_id=definition.template_id,
                column_name=definition.column_name,
                rule=definition.rule,
                rule_id=rule_id,
            )
            records.append(_definition_to_dict(stored))
            self._write_definitions(records)
        logger.info(f"rule saved template={definition.template_id} rule={definition.rule.identifier} id={rule_id}")
        return rule_id

    def _write_definitions(self, records: list[dict[str, Any]]) -> None:
        self.output_directory.mkdir(parents=True, exist_ok=True)
        try:
            self.rules_path.write_text(
                yaml.safe_dump({"rules": records}, sort_keys=False, allow_unicode=True), encoding="utf-8"
            )
        except OSError as e:
            raise TemplateStoreError(f"cannot write {self.rules_path}: {e}") from e

    @staticmethod
    def _position(records: list[dict[str, Any]], rule_id: int) -> int:
        for i, record in enumerate(records):
            if record.get("rule_id") is not None and int(record["rule_id"]) == int(rule_id):
                return i
        raise TemplateStoreError(f"unknown rule id: {rule_id}")

    def update_rule_definition(self, rule_id: int, definition: RuleDefinition) -> None:
        """Overwrite the definition stored under ``rule_id`` (position kept)."""
        with self._lock:
            records = self._read_definitions()
            i = self._position(records, rule_id)
            stored = replace(definition, rule_id=int(rule_id))
            records[i] = _definition_to_dict(stored)
            self._write_definitions(records)
        logger.info(f"rule updated id={rule_id} rule={definition.rule.identifier}")

    def set_rule_active(self, rule_id: int, is_active: bool) -> None:
        with self._lock:
            records = self._read_definitions()
            i = self._position(records, rule_id)
            if "parameters" not in records[i]:
                raise TemplateStoreError(f"rule {rule_id} is not a custom rule")
            records[i]["is_active"] = bool(is_active)
            self._write_definitions(records)
        logger.info(f"rule toggled id={rule_id} active={is_active}")

    def delete_rule_definition(self, rule_id: int) -> None:
        with self._lock:
            records = self._read_definitions()
            del records[self._position(records, rule_id)]
            self._write_definitions(records)
        logger.info(f"rule deleted id={rule_id}")

    def _data(self, template_id: int) -> TemplateData:
        data = self._loaded.get(int(template_id))
        return data if data is not None else self.fetch_template_headers_and_rows(template_id)

    def persist_corrections(
        self, template_id: int, corrections: Mapping[tuple[str, int], str], phase: Phase
    ) -> dict[str, str]:
        """Apply corrections to the template rows and write ``<stem>_corrected``.

        Returns:
            ``{"corrected_file_path": ...}``
        """
        data = self._data(template_id)
        by_row: dict[int, list[tuple[str, str]]] = {}
        for (column, row), value in corrections.items():
            by_row.setdefault(row, []).append((column, value))
        rows = []
        for row in data.rows:
            for column, value in by_row.get(row.row_number, []):
                row = row.with_value(column, value)
            rows.append(row)
        result = self.export_rows(template_id, rows, "corrected")
        logger.info(
            f"corrections persisted template={template_id} phase={phase.value} cells={len(corrections)} "
            f"file={result['file_path']}"
        )
        return {"corrected_file_path": result["file_path"]}

    def export_rows(self, template_id: int, rows: Sequence[RowData], suffix: str) -> dict[str, str]:
        source = self._source(template_id)
        data = self._data(template_id)
        target = output_path(source, self.output_directory, suffix)
        try:
            write_rows(target, data.headers, rows, sheet_name=data.sheet_name or None)
        except OSError as e:
            raise TemplateStoreError(f"cannot write {target}: {e}") from e
        return {"file_path": str(target)}
