"""Run configuration for ``pilet publish``.

A ``ReleaseConfig`` is resolved once per run from command-line options and
environment variables. No configuration file is read: the environment is the
only fallback layer.

Environment variables:
    PILET_FEED_URL       feed service URL when --url is not given
    PILET_API_KEY        API key when --api-key is not given
    PILET_CERT           CA certificate file when --cert is not given
    NPM_CONFIG_REGISTRY  registry for --from npm when --registry is not given
"""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType

from pilet.core.result import Err, Ok, Result

__all__ = [
    "AcquisitionMode",
    "AuthScheme",
    "ConfigError",
    "ReleaseConfig",
    "DEFAULT_REGISTRY",
    "parse_pairs",
]

DEFAULT_REGISTRY = "https://registry.npmjs.org"
DEFAULT_FRESH_SOURCE = "./src/index"
DEFAULT_ARCHIVE_SOURCE = "*.tgz"
DEFAULT_LOG_LEVEL = 3
DEFAULT_TIMEOUT_SECONDS = 60.0


class AcquisitionMode(Enum):
    """How the configured sources turn into local archives."""

    FRESH = "fresh"
    LOCAL = "local"
    REMOTE = "remote"
    NPM = "npm"

    def __str__(self) -> str:
        return self.value


class AuthScheme(Enum):
    """Authorization scheme used for the feed service."""

    BASIC = "basic"
    BEARER = "bearer"
    DIGEST = "digest"
    NONE = "none"

    def __str__(self) -> str:
        return self.value

    @property
    def requires_key(self) -> bool:
        return self is not AuthScheme.NONE

    def header_value(self, key: str) -> str:
        """Value of the Authorization header carrying ``key``."""
        match self:
            case AuthScheme.BASIC:
                return f"Basic {key}"
            case AuthScheme.BEARER:
                return f"Bearer {key}"
            case AuthScheme.DIGEST:
                return f"Digest {key}"
            case AuthScheme.NONE:
                return key

    @classmethod
    def parse(cls, value: str) -> AuthScheme | None:
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Invalid option or environment value."""

    message: str
    hint: str | None = None


def _frozen(mapping: Mapping[str, str] | None) -> Mapping[str, str]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Immutable configuration of one publish run.

    Attributes:
        sources: Glob patterns, URLs, package specifiers or entry modules,
            depending on ``mode``.
        mode: Acquisition strategy.
        feed_url: Feed service endpoint. Checked before any upload.
        api_key: Statically configured credential, if any.
        auth_scheme: Scheme used for the Authorization header.
        cert_path: Optional custom CA file for TLS validation.
        extra_fields: Additional multipart form fields.
        extra_headers: Additional request headers.
        interactive: Allow prompting for a credential.
        base_dir: Base directory for globs and entry modules.
    """

    sources: tuple[str, ...]
    mode: AcquisitionMode
    feed_url: str
    api_key: str | None = None
    auth_scheme: AuthScheme = AuthScheme.BASIC
    cert_path: Path | None = None
    extra_fields: Mapping[str, str] = field(default_factory=lambda: _frozen(None))
    extra_headers: Mapping[str, str] = field(default_factory=lambda: _frozen(None))
    interactive: bool = False
    base_dir: Path = field(default_factory=Path.cwd)
    schema_version: str | None = None
    bundler: str | None = None
    bundler_args: tuple[str, ...] = ()
    registry_url: str = DEFAULT_REGISTRY
    log_level: int = DEFAULT_LOG_LEVEL
    timeout: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        # Callers may hand in plain dicts; keep the instance immutable.
        object.__setattr__(self, "extra_fields", _frozen(self.extra_fields))
        object.__setattr__(self, "extra_headers", _frozen(self.extra_headers))

    @classmethod
    def from_options(
        cls,
        *,
        sources: Sequence[str] = (),
        fresh: bool = False,
        from_: str = "local",
        url: str | None = None,
        api_key: str | None = None,
        mode: str = "basic",
        cert: Path | None = None,
        fields: Sequence[str] = (),
        headers: Sequence[str] = (),
        interactive: bool = False,
        base_dir: Path | None = None,
        schema_version: str | None = None,
        bundler: str | None = None,
        bundler_args: Sequence[str] = (),
        registry: str | None = None,
        log_level: int = DEFAULT_LOG_LEVEL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        env: Mapping[str, str] | None = None,
    ) -> Result[ReleaseConfig, ConfigError]:
        """Build a config from CLI-style options with environment fallbacks.

        ``fresh`` takes precedence over ``from_``. An unset feed URL is *not*
        rejected here: the pipeline reports it as a precondition failure
        before touching any artifact.
        """
        environ = os.environ if env is None else env

        if fresh:
            acquisition = AcquisitionMode.FRESH
        else:
            try:
                acquisition = AcquisitionMode(from_.strip().lower())
            except ValueError:
                return Err(
                    ConfigError(
                        f"Unknown publish source: {from_}",
                        hint="Use one of: local, remote, npm (or --fresh)",
                    )
                )
            if acquisition is AcquisitionMode.FRESH:
                return Err(ConfigError("Use --fresh to build before publishing"))

        scheme = AuthScheme.parse(mode)
        if scheme is None:
            return Err(
                ConfigError(
                    f"Unknown authorization scheme: {mode}",
                    hint="Use one of: basic, bearer, digest, none",
                )
            )

        if not 1 <= log_level <= 5:
            return Err(ConfigError(f"Log level must be between 1 and 5 (got {log_level})"))

        if timeout <= 0:
            return Err(ConfigError(f"Timeout must be positive (got {timeout})"))

        field_map = parse_pairs(fields, option="--field")
        if isinstance(field_map, Err):
            return field_map
        header_map = parse_pairs(headers, option="--header")
        if isinstance(header_map, Err):
            return header_map

        if sources:
            resolved_sources = tuple(sources)
        elif acquisition is AcquisitionMode.FRESH:
            resolved_sources = (DEFAULT_FRESH_SOURCE,)
        else:
            resolved_sources = (DEFAULT_ARCHIVE_SOURCE,)

        cert_env = environ.get("PILET_CERT")
        cert_path = cert if cert is not None else (Path(cert_env) if cert_env else None)

        return Ok(
            cls(
                sources=resolved_sources,
                mode=acquisition,
                feed_url=(url or environ.get("PILET_FEED_URL") or "").strip(),
                api_key=api_key or environ.get("PILET_API_KEY") or None,
                auth_scheme=scheme,
                cert_path=cert_path,
                extra_fields=field_map.value,
                extra_headers=header_map.value,
                interactive=interactive,
                base_dir=(base_dir or Path.cwd()).resolve(),
                schema_version=schema_version,
                bundler=bundler,
                bundler_args=tuple(bundler_args),
                registry_url=(
                    registry or environ.get("NPM_CONFIG_REGISTRY") or DEFAULT_REGISTRY
                ).rstrip("/"),
                log_level=log_level,
                timeout=timeout,
            )
        )


def parse_pairs(pairs: Sequence[str], *, option: str = "--field") -> Result[dict[str, str], ConfigError]:
    """Parse repeated ``key=value`` options into a mapping.

    Later keys override earlier ones. The value may itself contain ``=``.
    """
    out: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            return Err(
                ConfigError(
                    f"Invalid {option} value: {pair!r}",
                    hint=f"Expected {option} key=value",
                )
            )
        out[key] = value
    return Ok(out)
