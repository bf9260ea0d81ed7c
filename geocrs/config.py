"""
Default settings for GeoCRS.

Values can be overridden with GEOCRS_* environment variables; command line
flags take precedence over both.
"""

import os
from typing import Dict, Mapping, Optional, Union

# GDA94
DEFAULT_EPSG = 4283
DEFAULT_DRIVER = "GeoJSON"
DEFAULT_TIMEOUT = 60
DOWNLOAD_CHUNK_SIZE = 64 * 1024
PATCH_STYLE = "epsg"

_ENV_PREFIX = "GEOCRS_"
_CASTS = {
    'epsg': int,
    'driver': str,
    'timeout': float,
    'chunk_size': int,
    'patch_style': str,
}


def load_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Union[str, int, float]]:
    """
    Read the settings that are explicitly set in the environment.

    Args:
        environ: Mapping to read overrides from (defaults to os.environ)

    Returns:
        Dictionary holding only the GEOCRS_* values that are set

    Raises:
        ValueError: If an override cannot be converted to the expected type
    """
    if environ is None:
        environ = os.environ

    overrides = {}
    for key, cast in _CASTS.items():
        raw = environ.get(_ENV_PREFIX + key.upper())
        if raw is None or raw == "":
            continue
        try:
            overrides[key] = cast(raw)
        except ValueError:
            raise ValueError(f"Invalid value for {_ENV_PREFIX}{key.upper()}: {raw!r}")

    return overrides


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Union[str, int, float]]:
    """
    Build the effective settings from defaults and environment variables.

    Args:
        environ: Mapping to read overrides from (defaults to os.environ)

    Returns:
        Dictionary of settings

    Raises:
        ValueError: If an override cannot be converted to the expected type
    """
    settings = {
        'epsg': DEFAULT_EPSG,
        'driver': DEFAULT_DRIVER,
        'timeout': DEFAULT_TIMEOUT,
        'chunk_size': DOWNLOAD_CHUNK_SIZE,
        'patch_style': PATCH_STYLE,
    }
    settings.update(load_overrides(environ))
    return settings
