# ============================================================================
# tests/unit/test_configuration.py
# ============================================================================
"""
Tests for settings modules
"""

import pytest
from pydantic import ValidationError as SettingsError

from exam_pipeline.config.extraction_config import ExtractionSettings
from exam_pipeline.config.persistence_config import PersistenceSettings
from exam_pipeline.config.progress_config import ProgressSettings


def test_defaults():
    persistence = PersistenceSettings()
    progress = ProgressSettings()
    assert persistence.SAVE_MAX_ATTEMPTS == 3
    assert persistence.SAVE_BACKOFF_SECONDS == 1.0
    assert persistence.MAX_FILES_PER_BATCH == 10
    assert progress.PROGRESS_CAP == 90.0


def test_environment_override(monkeypatch):
    monkeypatch.setenv("EXTRACTION_ENDPOINT", "http://extract.internal/api")
    monkeypatch.setenv("MAX_UPLOAD_BYTES", "1024")
    settings = ExtractionSettings()
    assert settings.EXTRACTION_ENDPOINT == "http://extract.internal/api"
    assert settings.MAX_UPLOAD_BYTES == 1024


def test_timeout_must_be_positive(monkeypatch):
    monkeypatch.setenv("EXTRACTION_TIMEOUT_SECONDS", "0")
    with pytest.raises(SettingsError):
        ExtractionSettings()


def test_progress_cap_bounds(monkeypatch):
    monkeypatch.setenv("PROGRESS_CAP", "120")
    with pytest.raises(SettingsError):
        ProgressSettings()


def test_save_attempts_at_least_one(monkeypatch):
    monkeypatch.setenv("SAVE_MAX_ATTEMPTS", "0")
    with pytest.raises(SettingsError):
        PersistenceSettings()
