"""Settings loading with deterministic source precedence.

The cascade is always:
1) explicit ``cli_params``
2) environment variables (``MIRROR_`` prefix, ``__`` nesting)
3) the YAML config file
4) model defaults

Example: ``MIRROR_LOGGING__LEVEL=DEBUG`` sets ``logging.level``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from pydantic_settings import SettingsConfigDict

from .models import DEFAULT_CONFIG_PATH, MirrorSettings


def load_settings(
    *,
    cli_params: Mapping[str, Any] | None = None,
    config_path: str | Path | None = None,
) -> MirrorSettings:
    """Load ``MirrorSettings`` using the standard precedence cascade."""
    yaml_path = DEFAULT_CONFIG_PATH if config_path is None else Path(config_path)

    class _ScopedMirrorSettings(MirrorSettings):
        model_config = SettingsConfigDict(yaml_file=yaml_path)

    return _ScopedMirrorSettings(**dict(cli_params or {}))
