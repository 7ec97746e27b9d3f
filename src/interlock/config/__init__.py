"""Configuration for interlock.

Architecture::

    settings.py       InterlockSettings (Pydantic) + get_settings() cache
    components.py     LockVendor enum + validate_lock_settings()

Quick start::

    from interlock.config import get_settings

    settings = get_settings()
    print(settings.lock_vendor)   # None unless INTERLOCK_LOCK_VENDOR is set
"""

from .components import ComponentWarning, LockVendor, validate_lock_settings
from .settings import InterlockSettings, clear_settings_cache, get_settings

__all__ = [
    "ComponentWarning",
    "InterlockSettings",
    "LockVendor",
    "clear_settings_cache",
    "get_settings",
    "validate_lock_settings",
]
