from .config import ConfigurationError, Settings, get_settings
from .db import apply_query_timeout, build_sqlalchemy_url, get_engine

__all__ = [
    "ConfigurationError",
    "Settings",
    "get_settings",
    "build_sqlalchemy_url",
    "get_engine",
    "apply_query_timeout",
]
