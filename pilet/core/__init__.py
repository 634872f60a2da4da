"""Core domain types: configuration, exit codes and the Result type."""

from .config import AcquisitionMode, AuthScheme, ConfigError, ReleaseConfig, parse_pairs
from .errors import ErrorCode
from .result import Err, Ok, Result, collect, is_err, is_ok

__all__ = [
    # config
    "AcquisitionMode",
    "AuthScheme",
    "ConfigError",
    "ReleaseConfig",
    "parse_pairs",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
    "collect",
    "is_err",
    "is_ok",
]
