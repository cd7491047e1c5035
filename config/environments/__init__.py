"""
Deployment overrides for the chat app, selected by APP_ENV.
"""

import os
from config.app_config import AppConfig

ENVIRONMENT_VARIABLE = "APP_ENV"
DEFAULT_ENVIRONMENT = "development"


def get_environment_config() -> AppConfig:
    """
    Build the configuration for the current deployment

    Returns:
        Development or production overrides; any other APP_ENV value gets
        the base configuration from secrets and environment variables
    """
    env = os.getenv(ENVIRONMENT_VARIABLE, DEFAULT_ENVIRONMENT).strip().lower()

    if env == "development":
        from .development import get_development_config
        return get_development_config()
    if env == "production":
        from .production import get_production_config
        return get_production_config()

    return AppConfig.load()
