from pathlib import Path

import pytest

from notmuch_mail.config import (
    ConverterType,
    IndexSettings,
    SenderSettings,
    Settings,
    TextRendererConfig,
    get_settings,
)
from notmuch_mail.log import configure, logger


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("NOTMUCH_DATABASE", "NOTMUCH_CONFIG", "MSMTP_HOST", "MSMTP_CONFIG", "MSMTP_PATH"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestIndexSettings:
    def test_defaults(self):
        settings = IndexSettings()
        assert settings.program == "notmuch"
        assert settings.is_remote is False
        assert settings.max_output_bytes == 64 * 1024 * 1024

    def test_notmuch_environment(self, monkeypatch):
        monkeypatch.setenv("NOTMUCH_DATABASE", "/srv/mail")
        monkeypatch.setenv("NOTMUCH_CONFIG", "/etc/notmuch-config")
        settings = IndexSettings()
        assert settings.database_path == Path("/srv/mail")
        assert settings.config_path == Path("/etc/notmuch-config")

    def test_remote(self, monkeypatch):
        monkeypatch.setenv("NOTMUCH_MAIL_INDEX_HOST", "mail.example.com")
        monkeypatch.setenv("NOTMUCH_MAIL_INDEX_PORT", "2222")
        settings = IndexSettings()
        assert settings.is_remote
        assert settings.port == 2222


class TestSenderSettings:
    def test_msmtp_environment(self, monkeypatch):
        monkeypatch.setenv("MSMTP_PATH", "/opt/bin/msmtp")
        monkeypatch.setenv("MSMTP_CONFIG", "/home/alice/.msmtprc")
        monkeypatch.setenv("MSMTP_HOST", "relay.example.com")
        monkeypatch.setenv("MSMTP_USER", "alice")
        monkeypatch.setenv("MSMTP_PORT", "2200")
        monkeypatch.setenv("MSMTP_IDENTITY_FILE", "/home/alice/.ssh/id_ed25519")
        settings = SenderSettings()
        assert settings.path == "/opt/bin/msmtp"
        assert settings.config_file == Path("/home/alice/.msmtprc")
        assert settings.host == "relay.example.com"
        assert settings.user == "alice"
        assert settings.port == 2200
        assert settings.identity_file == Path("/home/alice/.ssh/id_ed25519")
        assert settings.is_remote

    def test_local_by_default(self):
        assert SenderSettings().is_remote is False


class TestRendererConfig:
    def test_defaults(self):
        config = TextRendererConfig()
        assert config.converter_type == ConverterType.BUILTIN
        assert config.text_width == 80
        assert config.preserve_links is False

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("NOTMUCH_MAIL_RENDER_CONVERTER_TYPE", "auto")
        monkeypatch.setenv("NOTMUCH_MAIL_RENDER_EXTERNAL_COMMAND", "w3m -dump -T text/html")
        config = TextRendererConfig()
        assert config.converter_type == ConverterType.AUTO
        assert config.external_command == "w3m -dump -T text/html"

    def test_width_must_be_positive(self):
        with pytest.raises(ValueError):
            TextRendererConfig(text_width=0)


class TestSettings:
    def test_sections(self, monkeypatch):
        monkeypatch.setenv("MSMTP_HOST", "relay.example.com")
        settings = Settings()
        assert settings.sender.host == "relay.example.com"
        assert settings.index.program == "notmuch"

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()

    def test_log_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("NOTMUCH_MAIL_LOG_LEVEL", "debug")
        assert get_settings().log_level == "debug"


class TestLogging:
    def test_configure_uses_settings_level(self, monkeypatch, capsys):
        monkeypatch.setenv("NOTMUCH_MAIL_LOG_LEVEL", "debug")
        try:
            configure(get_settings().log_level)
            logger.debug("index opened")
            assert "index opened" in capsys.readouterr().err
        finally:
            configure("INFO")

    def test_configure_filters_below_level(self, capsys):
        try:
            configure("warning")
            logger.info("quiet")
            logger.warning("loud")
            err = capsys.readouterr().err
            assert "quiet" not in err
            assert "loud" in err
        finally:
            configure("INFO")
