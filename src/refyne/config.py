"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for the ``refyne`` CLI:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.refyne/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Settings file** -- A single :class:`~refyne.models.Settings` JSON file
  managed via :func:`load_settings` and :func:`save_settings`.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, and the settings file into the
  :class:`~refyne.models.ClientConfig` used to build a client.
* **Credential resolution** -- :func:`resolve_credential` reads the API
  key from an env var, a file, or a literal value.

The SDK itself never reads these files; only the CLI does.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from refyne.exceptions import ConfigError
from refyne.exit_codes import EXIT_INVALID_USAGE
from refyne.models import ClientConfig, Settings

_APP_NAME = "refyne"
_CONFIG_FILENAME = "config.json"

# Environment variable -> ClientConfig field
_ENV_OVERRIDES = {
    "REFYNE_API_KEY": "api_key",
    "REFYNE_BASE_URL": "base_url",
    "REFYNE_TIMEOUT": "timeout",
    "REFYNE_MAX_RETRIES": "max_retries",
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    return Path.home().joinpath(*default_segments)


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/refyne/`` (default ``~/.config/refyne/``).
    On macOS/Windows: ``~/.refyne/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Holds the on-disk response cache used with ``disk_cache = true``.
    Its contents can be deleted at any time.

    On Linux/BSD: ``$XDG_CACHE_HOME/refyne/`` (default ``~/.cache/refyne/``).
    On macOS/Windows: ``~/.refyne/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/refyne/`` (default ``~/.local/share/refyne/``).
    On macOS/Windows: ``~/.refyne/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created next to *path* so that ``os.replace`` is
    an atomic rename on POSIX systems. On any failure the temp file is
    removed and the original file is left untouched.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Settings file ---


def settings_path() -> Path:
    """Path to the settings file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_settings() -> Settings:
    """Load the CLI settings file.

    Returns:
        The deserialised :class:`~refyne.models.Settings`, or defaults if
        the file does not exist.

    Raises:
        ConfigError: If the file contains invalid JSON or fails validation.
    """
    path = settings_path()
    if not path.is_file():
        return Settings()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return Settings.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_settings(settings: Settings) -> None:
    """Persist *settings* atomically."""
    data = settings.model_dump(mode="json")
    _atomic_write(settings_path(), json.dumps(data, indent=2) + "\n")


def update_setting(key: str, value: str) -> Settings:
    """Set one field of the settings file from its string form.

    Pydantic coerces *value* to the field's type (``"5"`` -> ``5``,
    ``"false"`` -> ``False``).

    Raises:
        ConfigError: If *key* is not a setting or *value* is invalid for it.
    """
    if key not in Settings.model_fields:
        known = ", ".join(sorted(Settings.model_fields))
        raise ConfigError(
            f"Unknown config key '{key}'. Known keys: {known}",
            exit_code=EXIT_INVALID_USAGE,
        )
    data = load_settings().model_dump()
    data[key] = value
    try:
        settings = Settings.model_validate(data)
    except PydanticValidationError as exc:
        raise ConfigError(
            f"Invalid value for '{key}': {value!r}", exit_code=EXIT_INVALID_USAGE
        ) from exc
    save_settings(settings)
    return settings


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - anything else -- used verbatim as the key

    Raises:
        ConfigError: If the env var is unset or the file can't be read.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    return source


# --- Precedence resolution ---


def resolve_config(
    cli_api_key: Optional[str] = None,
    cli_base_url: Optional[str] = None,
    cli_no_cache: bool = False,
) -> tuple[ClientConfig, Settings]:
    """Resolve the effective client configuration.

    Precedence (high to low):
        1. CLI flags (``--api-key``, ``--base-url``, ``--no-cache``)
        2. Environment variables (``REFYNE_API_KEY``, ``REFYNE_BASE_URL``,
           ``REFYNE_TIMEOUT``, ``REFYNE_MAX_RETRIES``)
        3. Settings file (``~/.config/refyne/config.json``)
        4. Defaults

    A missing API key is not an error here: the request fails with an
    authentication error instead.

    Returns:
        A tuple of ``(client_config, settings)``.

    Raises:
        ConfigError: If the settings file or an override is invalid.
    """
    settings = load_settings()

    data: dict[str, Any] = {
        "base_url": settings.base_url,
        "timeout": settings.timeout,
        "max_retries": settings.max_retries,
        "cache_enabled": settings.cache_enabled,
        "cache_max_entries": settings.cache_max_entries,
    }
    try:
        data["api_key"] = resolve_credential(settings.api_key_source)
    except ConfigError:
        data["api_key"] = ""

    for var, field in _ENV_OVERRIDES.items():
        value = os.environ.get(var)
        if value:
            data[field] = value

    if cli_api_key is not None:
        data["api_key"] = cli_api_key
    if cli_base_url is not None:
        data["base_url"] = cli_base_url
    if cli_no_cache:
        data["cache_enabled"] = False

    try:
        config = ClientConfig.model_validate(data)
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    return config, settings
