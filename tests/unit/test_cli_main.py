from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

from validation_wizard.cli.__main__ import EXIT_ERRORS_DETECTED, EXIT_FATAL, EXIT_SUCCESS, main as cli_main


def test_cli_clean_file(write_config, clean_csv, capsys):
    code = cli_main([])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS
    assert "INFO validating template=7 file=upload.csv rows=2" in out
    assert "status=clean" in out
    assert "validation report:" not in out


def test_cli_dirty_file(write_config, dirty_csv, temp_workdir: Path, capsys):
    code = cli_main([])
    out = capsys.readouterr().out
    assert code == EXIT_ERRORS_DETECTED
    assert "generic_errors=4" in out
    assert "custom_errors=3" in out
    assert "INFO validation report: " in out
    assert len(list((temp_workdir / "logs").glob("errors-*.log"))) == 1


def test_cli_export_skipped_when_errors(write_config, dirty_csv, temp_workdir: Path, capsys):
    code = cli_main(["--export"])
    out = capsys.readouterr().out
    assert code == EXIT_ERRORS_DETECTED
    assert "WARN export skipped: errors detected" in out
    assert not (temp_workdir / "output").exists()


def test_cli_debug_lists_reasons(write_config, dirty_csv, capsys):
    cli_main(["--debug"])
    out = capsys.readouterr().out
    assert "DEBUG debug mode enabled" in out
    assert "DEBUG generic row=2: qty: Int - " in out
    assert "DEBUG custom row=3: qty: Required - Contains No Data" in out


def test_cli_inspect_data(write_config, dirty_csv, capsys):
    code = cli_main(["--inspect-data"])
    out = capsys.readouterr().out
    assert code == EXIT_SUCCESS
    assert "FILE: upload.csv" in out
    assert "cols=['id', 'qty', 'email', 'joined']" in out


def test_cli_inspect_data_missing_file(write_config, capsys):
    code = cli_main(["--inspect-data"])
    assert code == EXIT_FATAL
    assert "inspect: file not found" in capsys.readouterr().out


def test_cli_config_missing(temp_workdir: Path, capsys):
    with patch.dict(os.environ):
        os.environ.pop("VALIDATION_WIZARD_CONFIG", None)
        code = cli_main([])
    assert code == EXIT_FATAL
    assert "ERROR config: config file not found" in capsys.readouterr().out


def test_cli_config_from_env_file(write_config, clean_csv, temp_workdir: Path, capsys):
    moved = write_config.with_name("other.yml")
    write_config.rename(moved)
    (temp_workdir / ".env").write_text("VALIDATION_WIZARD_CONFIG=config/other.yml\n", encoding="utf-8")
    with patch.dict(os.environ):
        os.environ.pop("VALIDATION_WIZARD_CONFIG", None)
        code = cli_main([])
    assert code == EXIT_SUCCESS


def test_cli_source_missing(write_config, capsys):
    code = cli_main([])
    out = capsys.readouterr().out
    assert code == EXIT_FATAL
    assert "ERROR store: template file not found" in out


def test_cli_unknown_rule(write_config, dirty_csv, capsys):
    text = write_config.read_text(encoding="utf-8").replace("[Required, Email]", "[Required, Emial]")
    write_config.write_text(text, encoding="utf-8")
    code = cli_main([])
    assert code == EXIT_FATAL
    assert "ERROR config: rules: unknown rule: 'Emial'" in capsys.readouterr().out


def test_cli_incomplete_rule_set(write_config, dirty_csv, capsys):
    text = write_config.read_text(encoding="utf-8").replace("id: [Required, Int]", "id: [Required]")
    write_config.write_text(text, encoding="utf-8")
    code = cli_main([])
    assert code == EXIT_FATAL
    assert "Expected 1 generic or Date rule, found 0." in capsys.readouterr().out
