"""Configuration management.

Every section can be overridden through environment variables. The index
section also honours notmuch's own ``NOTMUCH_DATABASE`` / ``NOTMUCH_CONFIG``
and the sender section reads the conventional ``MSMTP_*`` variables.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MAX_OUTPUT_BYTES = 64 * 1024 * 1024


class IndexSettings(BaseSettings):
    """How to reach the notmuch index, locally or over SSH"""

    model_config = SettingsConfigDict(
        env_prefix="NOTMUCH_MAIL_INDEX_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    program: str = Field(default="notmuch", description="notmuch binary, resolved on the target host")
    database_path: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("NOTMUCH_MAIL_INDEX_DATABASE_PATH", "NOTMUCH_DATABASE"),
    )
    config_path: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("NOTMUCH_MAIL_INDEX_CONFIG_PATH", "NOTMUCH_CONFIG"),
    )
    host: str | None = Field(default=None, description="Remote host; enables the SSH transport when set")
    user: str | None = None
    port: int | None = None
    identity_file: Path | None = None
    ssh_options: list[str] = Field(default_factory=list, description="Extra `-o` values passed to ssh")
    max_output_bytes: int = Field(default=DEFAULT_MAX_OUTPUT_BYTES, gt=0)

    @property
    def is_remote(self) -> bool:
        return bool(self.host)


class SenderSettings(BaseSettings):
    """msmtp submission settings"""

    model_config = SettingsConfigDict(
        env_prefix="MSMTP_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    path: str = Field(default="msmtp", description="msmtp binary, resolved on the target host")
    config_file: Path | None = Field(default=None, validation_alias=AliasChoices("MSMTP_CONFIG_FILE", "MSMTP_CONFIG"))
    host: str | None = None
    user: str | None = None
    port: int | None = None
    identity_file: Path | None = None
    from_address: str | None = Field(default=None, description="Identity used instead of msmtp's configured one")
    ssh_options: list[str] = Field(default_factory=list)

    @property
    def is_remote(self) -> bool:
        return bool(self.host)


class ConverterType(str, Enum):
    BUILTIN = "builtin"
    EXTERNAL = "external"
    AUTO = "auto"


class TextRendererConfig(BaseSettings):
    """HTML to text conversion settings"""

    model_config = SettingsConfigDict(env_prefix="NOTMUCH_MAIL_RENDER_", case_sensitive=False, extra="ignore")

    converter_type: ConverterType = ConverterType.BUILTIN
    external_command: str | None = Field(default=None, description="e.g. `w3m -dump -T text/html`")
    text_width: int = Field(default=80, gt=0)
    preserve_links: bool = False


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="NOTMUCH_MAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    index: IndexSettings = Field(default_factory=IndexSettings)
    sender: SenderSettings = Field(default_factory=SenderSettings)
    renderer: TextRendererConfig = Field(default_factory=TextRendererConfig)


@lru_cache
def get_settings() -> Settings:
    return Settings()
