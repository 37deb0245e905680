from __future__ import annotations

import os

from rapportini import database
from rapportini.config import Settings, settings


def test_settings_follow_environment():
    assert str(settings.sqlite_path) == os.environ["RP_SQLITE_PATH"]
    assert database.DATABASE_URL == f"sqlite:///{settings.sqlite_path}"
    assert settings.export_dir.is_dir()


def test_settings_only_carry_used_options():
    assert set(Settings.model_fields) == {
        "app_name",
        "host",
        "port",
        "sqlite_path",
        "export_dir",
        "log_level",
        "brand_name",
        "brand_tagline",
        "summary_form_code",
        "extraordinary_form_code",
    }


def test_log_level_is_normalized():
    assert Settings(log_level=" debug ").log_level == "DEBUG"
