"""Config commands -- view and modify the CLI settings file.

Provides the ``refyne config`` group. Settings are stored as JSON in the
refyne config directory (see :func:`~refyne.config.get_config_dir`) and
supply defaults for every command; flags and ``REFYNE_*`` environment
variables still win.
"""

from __future__ import annotations

import typer

from refyne.output import format_response, info, success

config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the current settings.

    Example::

        refyne config show --json
    """
    from refyne.config import load_settings, settings_path

    settings = load_settings()
    info(f"Config file: {settings_path()}")
    format_response(settings.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Setting name, e.g. 'timeout'."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set one setting.

    The value is coerced to the setting's type and validated before the
    file is written.

    Example::

        refyne config set api_key_source file:~/.refyne-key
        refyne config set max_retries 5
    """
    from refyne.config import update_setting

    settings = update_setting(key, value)
    success(f"Set {key} = {getattr(settings, key)}")
