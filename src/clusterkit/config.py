"""
Process-wide settings for ClusterKit.

Holds the verbosity flag that decides whether engine diagnostic output is
shown or suppressed. The environment is read once, on first access, after
loading a ``.env`` file from the project root if one exists.

Environment variables:
    CLUSTERKIT_VERBOSE=true   show engine output by default
    DEBUG=true                same effect

Usage:
    from clusterkit.config import get_settings, configure

    get_settings().verbose          # read (evaluated at call time)
    configure(verbose=True)         # override for the rest of the process
"""

import os
import threading
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

VERBOSE_ENV_VAR = "CLUSTERKIT_VERBOSE"
DEBUG_ENV_VAR = "DEBUG"

_ENV_PATH = Path(__file__).parent.parent.parent / ".env"


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() == "true"


class Settings:
    """
    Process-wide runtime settings.

    Created by ``get_settings()``; do not instantiate directly in
    application code. ``verbose`` is resolved from the environment when the
    instance is created and can be overridden at any time afterwards.
    """

    def __init__(self, verbose: Optional[bool] = None):
        if verbose is None:
            verbose = _env_flag(VERBOSE_ENV_VAR) or _env_flag(DEBUG_ENV_VAR)
        self._verbose = bool(verbose)

    @property
    def verbose(self) -> bool:
        """Whether engine diagnostic output is shown instead of suppressed."""
        return self._verbose

    @verbose.setter
    def verbose(self, value: bool) -> None:
        self._verbose = bool(value)

    def __repr__(self) -> str:
        return f"Settings(verbose={self._verbose})"


_settings: Optional[Settings] = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """
    Return the process-wide Settings, creating it on first use.

    The ``.env`` file and the environment are consulted only here, the
    first time; later environment changes are not observed.
    """
    global _settings
    if _settings is None:
        with _settings_lock:
            if _settings is None:
                if _ENV_PATH.exists():
                    load_dotenv(_ENV_PATH)
                _settings = Settings()
    return _settings


def configure(verbose: Optional[bool] = None) -> Settings:
    """
    Update process-wide settings.

    Args:
        verbose: New verbosity flag; ``None`` leaves it unchanged

    Returns:
        The updated Settings instance
    """
    settings = get_settings()
    if verbose is not None:
        settings.verbose = verbose
    return settings


def reset_settings() -> None:
    """Drop the singleton so the next access re-reads the environment."""
    global _settings
    with _settings_lock:
        _settings = None
