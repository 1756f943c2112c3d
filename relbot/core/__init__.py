"""Core types shared by every layer."""

from .config import (
    ChangelogConfig,
    Config,
    ConfigError,
    GithubConfig,
    RecipesConfig,
    ReleaseConfig,
    load_config,
)
from .errors import ErrorCode
from .result import Err, Ok, Result

__all__ = [
    # config
    "ChangelogConfig",
    "Config",
    "ConfigError",
    "GithubConfig",
    "RecipesConfig",
    "ReleaseConfig",
    "load_config",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
]
