"""Where ger keeps its files, and the global settings stored there.

Three locations matter:

* the **config directory** holding ``config.json`` and the shared cache
  database ``cache.db``;
* the **data directory** holding ``credentials.json`` and crash logs;
* the cache database path itself, which ``GER_CACHE_DB`` can move.

Linux and the BSDs follow the XDG Base Directory layout
(``~/.config/ger`` and ``~/.local/share/ger`` unless ``XDG_CONFIG_HOME`` /
``XDG_DATA_HOME`` say otherwise). Everywhere else both live under
``~/.ger``, with data in ``~/.ger/data``.

Files are replaced with :func:`atomic_write`, so a crash mid-write leaves
either the old file or the new one, never a torn mix.
"""

from __future__ import annotations

import contextlib
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from ger.exceptions import ConfigError
from ger.models import GlobalConfig

_APP_NAME = "ger"
_CONFIG_FILENAME = "config.json"
_CACHE_DB_FILENAME = "cache.db"
_CACHE_DB_ENV = "GER_CACHE_DB"

# kind -> (XDG variable, default under $HOME, subdirectory of ~/.ger elsewhere)
_LOCATIONS: dict[str, tuple[str, tuple[str, ...], Optional[str]]] = {
    "config": ("XDG_CONFIG_HOME", (".config",), None),
    "data": ("XDG_DATA_HOME", (".local", "share"), "data"),
}


def _is_xdg_platform() -> bool:
    """Return True on Linux and the BSDs."""
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _resolve(kind: str) -> Path:
    env_var, home_segments, fallback_subdir = _LOCATIONS[kind]
    if not _is_xdg_platform():
        root = Path.home() / f".{_APP_NAME}"
        return root / fallback_subdir if fallback_subdir else root
    base = os.environ.get(env_var) or Path.home().joinpath(*home_segments)
    return Path(base) / _APP_NAME


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if needed."""
    path = _resolve("config")
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (credentials, crash logs), creating it if needed."""
    path = _resolve("data")
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_db_path() -> Path:
    """Return the location of the SQLite cache file.

    Every ``ger`` invocation of one user shares this file. Nothing is
    created here; :meth:`~ger.cache.store.CacheStore.initialize` makes the
    directory when it opens the database.
    """
    override = os.environ.get(_CACHE_DB_ENV)
    if override:
        return Path(override).expanduser()
    return _resolve("config") / _CACHE_DB_FILENAME


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Replace *path* with *data* in one rename.

    The text goes to a temporary sibling file that is flushed to disk
    before ``os.replace`` swaps it in. *mode* is applied to the temporary
    file before anything is written to it, which keeps secrets private
    from the first byte. On any failure the temporary file is removed and
    the error propagates.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            if mode is not None:
                os.chmod(tmp_name, mode)
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Read ``config.json``, or return defaults when there is none.

    Raises:
        ConfigError: If the file is not valid JSON or does not match
            :class:`~ger.models.GlobalConfig`.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        return GlobalConfig.model_validate_json(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Write *config* to ``config.json``."""
    atomic_write(_global_config_path(), config.model_dump_json(indent=2) + "\n")
