import logging

from chronii.logging_setup import LOGGER_NAME, setup_logging
from chronii.settings import Settings, get_settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in (
            "LOCAL_STORE_BACKEND",
            "LOCAL_STORE_PATH",
            "CLOUD_STORE_BACKEND",
            "CLOUD_STORE_PATH",
            "NOTE_SAVE_DEBOUNCE_SECONDS",
            "STORE_TIMEOUT_SECONDS",
            "CLEAR_LOCAL_AFTER_UPLOAD",
            "CORS_ALLOW_ORIGINS",
            "LOG_LEVEL",
        ):
            monkeypatch.delenv(name, raising=False)
        assert get_settings() == Settings()

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("LOCAL_STORE_BACKEND", "SQLite")
        monkeypatch.setenv("LOCAL_STORE_PATH", "/tmp/chronii/local.db")
        monkeypatch.setenv("NOTE_SAVE_DEBOUNCE_SECONDS", "0.5")
        monkeypatch.setenv("CLEAR_LOCAL_AFTER_UPLOAD", "yes")
        monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://a.test, http://b.test")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        settings = get_settings()
        assert settings.local_store_backend == "sqlite"
        assert settings.local_store_path == "/tmp/chronii/local.db"
        assert settings.note_save_debounce_seconds == 0.5
        assert settings.clear_local_after_upload is True
        assert settings.cors_allow_origins == ["http://a.test", "http://b.test"]
        assert settings.log_level == "DEBUG"

    def test_unsupported_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("CLOUD_STORE_BACKEND", "firestore")
        monkeypatch.setenv("STORE_TIMEOUT_SECONDS", "soon")
        monkeypatch.setenv("NOTE_SAVE_DEBOUNCE_SECONDS", "-1")
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        settings = get_settings()
        assert settings.cloud_store_backend == "memory"
        assert settings.store_timeout_seconds == 10.0
        assert settings.note_save_debounce_seconds == 2.0
        assert settings.log_level == "INFO"


def test_setup_logging_adds_one_handler():
    logger = setup_logging("DEBUG", logger_name="chronii-test")
    setup_logging("DEBUG", logger_name="chronii-test")
    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG
    assert LOGGER_NAME == "chronii"
