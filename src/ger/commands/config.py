"""``ger config``: inspect and edit ``config.json``.

Settings are addressed as ``section.field`` (``output.format``,
``cache.enabled``, ``cache.sweep_on_startup``). The set of keys is read
from :class:`~ger.models.GlobalConfig`, so a new field is settable as soon
as it is added to the model.
"""

from __future__ import annotations

import typer
from pydantic import ValidationError

from ger.config import get_config_dir, load_global_config, save_global_config
from ger.exceptions import InvalidUsageError
from ger.models import GlobalConfig
from ger.output import format_response, info, success

config_app = typer.Typer(no_args_is_help=True)

_TRUE = frozenset({"true", "1", "yes", "on"})
_FALSE = frozenset({"false", "0", "no", "off"})


def _settable_keys(config: GlobalConfig) -> dict[str, tuple[str, str]]:
    """Map every ``section.field`` key to its section and field names."""
    keys: dict[str, tuple[str, str]] = {}
    for section in GlobalConfig.model_fields:
        for field in type(getattr(config, section)).model_fields:
            keys[f"{section}.{field}"] = (section, field)
    return keys


def _parse_bool(key: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise InvalidUsageError(f"{key} expects true or false, got {value!r}")


@config_app.command("show")
def config_show() -> None:
    """Print the effective settings.

    Example::

        ger --json config show
    """
    info(f"Config directory: {get_config_dir()}")
    format_response(load_global_config().model_dump(mode="json"), root="config")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Setting to change, e.g. 'cache.enabled'."),
    value: str = typer.Argument(help="New value."),
) -> None:
    """Change one setting and save it.

    Raises:
        InvalidUsageError: If *key* is unknown or *value* does not fit it.
    """
    config = load_global_config()
    keys = _settable_keys(config)
    if key not in keys:
        raise InvalidUsageError(
            f"Unknown config key: {key}. Known keys: {', '.join(sorted(keys))}"
        )

    section, field = keys[key]
    current = getattr(getattr(config, section), field)
    parsed = _parse_bool(key, value) if isinstance(current, bool) else value

    data = config.model_dump(mode="json")
    data[section][field] = parsed
    try:
        updated = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        reason = exc.errors()[0]["msg"]
        raise InvalidUsageError(f"Invalid value {value!r} for {key}: {reason}") from None

    save_global_config(updated)
    success(f"{key} = {parsed}")


@config_app.command("reset")
def config_reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Restore every setting to its default."""
    if not yes and not typer.confirm("Reset all settings to their defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Settings reset to defaults.")
