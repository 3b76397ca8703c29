from .config import Settings, settings
from .errors import ConfigurationError, StoreError, UpdateNotFound

__all__ = ["Settings", "settings", "ConfigurationError", "StoreError", "UpdateNotFound"]
