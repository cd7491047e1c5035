"""
Development environment configuration overrides
"""

from dataclasses import dataclass
from config.app_config import AppConfig, APIConfig


@dataclass
class DevelopmentConfig(AppConfig):
    """Development environment configuration"""

    def __post_init__(self):

        self.environment = "development"
        self.debug = True
        self.api = APIConfig.from_env()

        # More verbose logging in development
        self.logging.level = "DEBUG"
        self.logging.enable_file_logging = True
        self.logging.log_file = "logs/dev-app.log"
        self.logging.enable_langfuse_tracing = False

        self.ui.app_title = "AceAI (DEV)"

        # Keep development data apart from production data
        self.storage.local_db_path = "data/dev/local_chats.db"
        self.storage.remote_db_path = "data/dev/remote_chats.db"
        self.auth.user_db_path = "data/dev/users.db"

        # Render every fragment while debugging the stream parser
        self.streaming.update_every = 1


def get_development_config() -> DevelopmentConfig:
    """Get development-specific configuration"""
    return DevelopmentConfig()
