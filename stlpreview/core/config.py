"""Configuration management for stlpreview using Pydantic."""

from pathlib import Path
from typing import Literal, Optional

import tomli
from pydantic import BaseModel, ConfigDict, Field

from stlpreview.core.exceptions import ConfigurationError


class DecoderConfig(BaseModel):
    """Configuration for STL decoding."""

    model_config = ConfigDict(frozen=True)

    size_tolerance: int = Field(
        100,
        ge=0,
        description="Byte slack allowed for binary files whose header starts with 'solid'",
    )
    epsilon: float = Field(
        1e-7, gt=0, description="Distance/area threshold for degenerate facets"
    )
    show_progress: bool = Field(False, description="Show progress bar for ASCII parsing")


class WeldingConfig(BaseModel):
    """Configuration for vertex welding and smooth normals."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(
        True, description="Weld coincident vertices and emit per-vertex normals"
    )
    precision: int = Field(
        7, ge=1, le=12, description="Decimal places used to build vertex keys"
    )
    normal_fallback_threshold: float = Field(
        1e-4, gt=0, description="Summed normal length below which (0, 0, 1) is used"
    )


class NormalizeConfig(BaseModel):
    """Configuration for centering and rescaling."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(False, description="Center and rescale before serializing")
    target_size: float = Field(
        5.0, gt=0, description="Largest bounding box extent after rescaling"
    )


class ExportConfig(BaseModel):
    """Configuration for OBJ serialization."""

    model_config = ConfigDict(frozen=True)

    float_precision: int = Field(6, ge=1, le=12, description="Decimals written per float")
    header_comment: str = Field(
        "Converted from STL by stlpreview", description="First comment line"
    )


class ProcessingConfig(BaseModel):
    """Configuration for file handling and batch processing."""

    model_config = ConfigDict(frozen=True)

    max_file_size: int = Field(
        1_000_000_000, gt=0, description="Largest accepted STL file (bytes)"
    )
    parallel_enabled: bool = Field(False, description="Enable parallel batch conversion")
    max_workers: Optional[int] = Field(
        None, ge=1, description="Max workers for parallel processing (None = auto)"
    )


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    model_config = ConfigDict(frozen=True)

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO", description="Logging level"
    )
    format: Literal["json", "console", "plain"] = Field(
        "console", description="Log format"
    )
    colorize: bool = Field(True, description="Colorize console output on a TTY")
    add_caller_info: bool = Field(False, description="Add file/line/function to events")
    timestamp_format: str = Field("iso", description="structlog TimeStamper format")
    log_dir: Optional[Path] = Field(None, description="Directory for log files")
    log_to_file: bool = Field(False, description="Enable file logging")


class Config(BaseModel):
    """Main configuration for stlpreview."""

    model_config = ConfigDict(frozen=True)

    decoder: DecoderConfig = Field(
        default_factory=DecoderConfig, description="Decoder configuration"
    )
    welding: WeldingConfig = Field(
        default_factory=WeldingConfig, description="Welding configuration"
    )
    normalize: NormalizeConfig = Field(
        default_factory=NormalizeConfig, description="Normalization configuration"
    )
    export: ExportConfig = Field(
        default_factory=ExportConfig, description="Export configuration"
    )
    processing: ProcessingConfig = Field(
        default_factory=ProcessingConfig, description="Processing configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    @classmethod
    def from_toml(cls, path: Path | str) -> "Config":
        """Load configuration from TOML file.

        Args:
            path: Path to TOML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigurationError: If TOML is invalid
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "rb") as f:
            try:
                data = tomli.load(f)
            except tomli.TOMLDecodeError as e:
                raise ConfigurationError(
                    f"Invalid TOML in {path}: {e}", details={"path": str(path)}
                ) from e

        return cls(**data)

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """Create configuration from dictionary."""
        return cls(**data)

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return self.model_dump(mode="json", exclude_none=True)

    def save_toml(self, path: Path | str) -> None:
        """Save configuration to TOML file.

        Args:
            path: Path to save TOML file
        """
        import tomli_w

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "wb") as f:
            tomli_w.dump(self.to_dict(), f)


def get_default_config() -> Config:
    """Get default configuration."""
    return Config()


def load_config(path: Optional[Path | str] = None) -> Config:
    """Load configuration from file or return defaults.

    Args:
        path: Optional path to configuration file

    Returns:
        Config instance
    """
    if path:
        return Config.from_toml(path)
    return get_default_config()
