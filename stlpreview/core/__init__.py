"""Core functionality for stlpreview.

The converter lives in ``stlpreview.core.converter``; it is not re-exported
here because the processing modules import this package for their config.
"""

from stlpreview.core.config import (
    Config,
    DecoderConfig,
    ExportConfig,
    LoggingConfig,
    NormalizeConfig,
    ProcessingConfig,
    WeldingConfig,
    get_default_config,
    load_config,
)
from stlpreview.core.exceptions import (
    ConfigurationError,
    MeshLoadError,
    ObjParseError,
    StlPreviewError,
)

__all__ = [
    # Config classes
    "Config",
    "DecoderConfig",
    "WeldingConfig",
    "NormalizeConfig",
    "ExportConfig",
    "ProcessingConfig",
    "LoggingConfig",
    # Config functions
    "get_default_config",
    "load_config",
    # Exceptions
    "StlPreviewError",
    "ConfigurationError",
    "MeshLoadError",
    "ObjParseError",
]
