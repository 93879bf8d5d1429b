from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CONFIG_FILENAME = "logokit.toml"


class PipelineConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    timeout_sec: float = Field(120.0, gt=0)
    upload_concurrency: int = Field(4, ge=1)
    upload_retries: int = Field(1, ge=0, le=1)
    key_prefix: str = "complete-assets"


class VectorConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    enabled: bool = True
    command: list[str] = Field(default_factory=lambda: ["inkscape"])
    timeout_sec: float = Field(30.0, gt=0)
    simplify: bool = True

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: list[str]) -> list[str]:
        if not v or not v[0]:
            raise ValueError("command must name an executable")
        return v


class SourceConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    max_bytes: int = Field(50 * 1024 * 1024, gt=0)
    min_download_bytes: int = Field(1024, ge=0)
    download_timeout_sec: float = Field(30.0, gt=0)


class LocalStorageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    root: Path = Path("temp/complete-assets")
    base_url: Optional[str] = None


class HttpStorageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    endpoint: str
    public_base_url: Optional[str] = None
    token_env: str = "LOGOKIT_STORAGE_TOKEN"
    timeout_sec: float = Field(30.0, gt=0)


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    backend: Literal["local", "http"] = "local"
    local: LocalStorageConfig = LocalStorageConfig()
    http: Optional[HttpStorageConfig] = None

    @model_validator(mode="after")
    def check_backend_configured(self) -> "StorageConfig":
        if self.backend == "http" and self.http is None:
            raise ValueError("storage backend 'http' requires a [storage.http] section")
        return self


class LogoKitConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    pipeline: PipelineConfig = PipelineConfig()
    vector: VectorConfig = VectorConfig()
    source: SourceConfig = SourceConfig()
    storage: StorageConfig = StorageConfig()


class ConfigError(Exception):
    def __init__(self, message: str, path: Optional[Path] = None, line: Optional[int] = None):
        self.path = path
        self.line = line
        if path:
            loc = f"{path}"
            if line:
                loc += f":{line}"
            message = f"{loc}: {message}"
        super().__init__(message)


def load_config(config_path: Path) -> LogoKitConfig:
    if not config_path.exists():
        raise ConfigError(
            f"Config file not found: {config_path}\n"
            f"Create {CONFIG_FILENAME} or omit --config to use the defaults",
            path=config_path,
        )

    import tomllib

    try:
        data = tomllib.loads(config_path.read_text(encoding="utf-8"))
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        raise ConfigError(f"Failed to parse TOML: {e}", path=config_path) from e

    try:
        return LogoKitConfig.model_validate(data)
    except ValueError as e:
        raise ConfigError(f"Invalid configuration: {e}", path=config_path) from e


def find_config(start_dir: Optional[Path] = None) -> Optional[Path]:
    if start_dir is None:
        start_dir = Path.cwd()

    current = start_dir.resolve()
    while current != current.parent:
        candidate = current / CONFIG_FILENAME
        if candidate.exists():
            return candidate
        current = current.parent

    return None


def resolve_config(config_path: Optional[Path] = None) -> LogoKitConfig:
    """Load an explicit config file, else the nearest discovered one, else defaults."""
    if config_path is not None:
        return load_config(config_path)
    found = find_config()
    if found is None:
        return LogoKitConfig()
    return load_config(found)
