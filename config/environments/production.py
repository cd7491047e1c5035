"""
Production environment configuration overrides
"""

from dataclasses import dataclass
from config.app_config import AppConfig, APIConfig


@dataclass
class ProductionConfig(AppConfig):
    """Production environment configuration"""

    def __post_init__(self):

        self.environment = "production"
        self.debug = False
        self.api = APIConfig.from_secrets()

        # Production logging - less verbose, focus on errors
        self.logging.level = "INFO"
        self.logging.enable_file_logging = True
        self.logging.log_file = "logs/prod-app.log"

        self.ui.app_title = "AceAI"

        # Fewer UI redraws while streaming
        self.streaming.update_every = 3

        # Stricter account rules
        self.auth.password_min_length = 8

        # More consistent responses
        self.llm.temperature = 0.5


def get_production_config() -> ProductionConfig:
    """Get production-specific configuration"""
    return ProductionConfig()
