"""Tests for the installation helper script."""

from __future__ import annotations

import pytest

from menu_builder import data_manager, setup_workbook
from menu_builder.constants import EXPECTED_SCHEMA_VERSION
from menu_builder.entities import AppSettings


def test_write_default_config_round_trips_through_parser(tmp_path):
    config_path = setup_workbook.write_default_config(tmp_path / "config.ini")

    parser = data_manager.read_config(config_path)
    settings = data_manager.parse_settings(parser, base_path=tmp_path)

    assert settings.data_file == (tmp_path / setup_workbook.DEFAULT_DATA_FILE).resolve()
    assert settings.schema_version == EXPECTED_SCHEMA_VERSION
    assert settings.default_app_settings == AppSettings()


def test_write_default_config_refuses_overwrite(tmp_path):
    setup_workbook.write_default_config(tmp_path / "config.ini")
    with pytest.raises(FileExistsError):
        setup_workbook.write_default_config(tmp_path / "config.ini")


def test_run_from_config_creates_config_and_workbook(tmp_path):
    workbook = setup_workbook.run_from_config(tmp_path / "config.ini")

    assert (tmp_path / "config.ini").exists()
    snapshot = data_manager.load_snapshot(workbook)
    assert snapshot.items == []
    assert snapshot.schema_version == EXPECTED_SCHEMA_VERSION


def test_main_reports_existing_workbook(tmp_path, capsys):
    config = str(tmp_path / "config.ini")
    assert setup_workbook.main(["--config", config]) == 0
    assert setup_workbook.main(["--config", config]) == 1
    assert "--force" in capsys.readouterr().out
    assert setup_workbook.main(["--config", config, "--force"]) == 0
