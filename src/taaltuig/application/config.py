from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from taaltuig.domain import constants as c

CONFIG_FILES = [
    Path.home() / ".config/taaltuig/config.toml",
    Path.home() / ".taaltuig.toml",
]


class AppConfig(BaseSettings):
    """
    Runtime configuration for taaltuig.
    Supports loading from:
    1. Environment variables (TAALTUIG_*)
    2. Config file (~/.config/taaltuig/config.toml)
    3. Manual overrides (CLI)

    Per-user scheduling parameters are not here; they live in the store
    (see SchedulingConfig).
    """

    model_config = SettingsConfigDict(
        env_prefix="TAALTUIG_",
        extra="ignore",
    )

    # Storage: None keeps everything in memory for the life of the process
    data_file: Path | None = None
    user_id: str = "local"
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/taaltuig/logs")

    # Session
    hold_horizon_hours: float = Field(default=c.DEFAULT_HOLD_HORIZON_HOURS, gt=0)

    # Server
    host: str = "127.0.0.1"
    port: int = 8787

    # 0 warnings only, 1 info, 2 debug; -v on the command line raises it
    verbose: int = Field(default=0, ge=0)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # First existing file wins
        toml_file = next((f for f in CONFIG_FILES if f.exists()), None)

        # Later sources have lower priority: init (CLI) > env > file
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (
            init_settings,
            env_settings,
        )

    @field_validator("data_file", mode="before")
    @classmethod
    def resolve_data_file(cls, v: Any) -> Path | None:
        if v is None or v == "":
            return None
        return Path(v).expanduser().resolve()


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/taaltuig/config.toml (if exists)
    3. Environment variables (TAALTUIG_*)
    4. cli_overrides (passed from Typer); None values are dropped
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
