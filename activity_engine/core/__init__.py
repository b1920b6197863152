"""Core application utilities."""

from .config import Settings, get_settings
from .database import (
    async_session_factory,
    build_engine,
    build_session_factory,
    close_db,
    engine,
    get_session_factory,
    init_db,
)
from .dependencies import (
    OrganizationIdDep,
    SessionFactoryDep,
    SettingsDep,
    UserIdDep,
    require_cron_secret,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "engine",
    "async_session_factory",
    "build_engine",
    "build_session_factory",
    "get_session_factory",
    "init_db",
    "close_db",
    # Dependencies
    "OrganizationIdDep",
    "UserIdDep",
    "SessionFactoryDep",
    "SettingsDep",
    "require_cron_secret",
]
