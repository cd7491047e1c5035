"""
Unified Configuration System for the reasoning chat

This module provides a centralized configuration system that consolidates all application settings,
supports environment-based overrides, and provides type-safe configuration access.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List
import streamlit as st
import os
from pathlib import Path


DEFAULT_SYSTEM_PROMPT = (
    "You are AceAI, a helpful assistant. Think the problem through before answering, "
    "then give a clear and direct answer. If asked about your architecture, respond "
    "that it is classified information."
)


@dataclass
class APIConfig:
    """API configuration settings"""
    llm_api_key: str = ""
    llm_api_url: str = "https://api.groq.com/openai/v1"
    langfuse_secret_key: str = ""
    langfuse_public_key: str = ""
    langfuse_host: str = "https://cloud.langfuse.com"

    @classmethod
    def from_env(cls) -> 'APIConfig':
        """Load API config from environment variables"""
        return cls(
            llm_api_key=os.getenv("LLM_API_KEY", ""),
            llm_api_url=os.getenv("LLM_API_URL", "https://api.groq.com/openai/v1"),
            langfuse_secret_key=os.getenv("LANGFUSE_SECRET_KEY", ""),
            langfuse_public_key=os.getenv("LANGFUSE_PUBLIC_KEY", ""),
            langfuse_host=os.getenv("LANGFUSE_HOST", "https://cloud.langfuse.com")
        )

    @classmethod
    def from_secrets(cls) -> 'APIConfig':
        """Load API config from Streamlit secrets"""
        # In test environment, prefer environment variables
        if os.getenv("PYTEST_CURRENT_TEST") is not None:
            return cls.from_env()

        try:
            env = cls.from_env()
            return cls(
                llm_api_key=st.secrets.get("LLM_API_KEY", env.llm_api_key),
                llm_api_url=st.secrets.get("LLM_API_URL", env.llm_api_url),
                langfuse_secret_key=st.secrets.get("LANGFUSE_SECRET_KEY", env.langfuse_secret_key),
                langfuse_public_key=st.secrets.get("LANGFUSE_PUBLIC_KEY", env.langfuse_public_key),
                langfuse_host=st.secrets.get("LANGFUSE_HOST", env.langfuse_host)
            )
        except Exception:
            # No secrets.toml outside of `streamlit run`
            return cls.from_env()


@dataclass
class LLMConfig:
    """Language model configuration"""
    model_name: str = "deepseek-r1-distill-llama-70b"
    temperature: float = 0.6
    max_tokens: Optional[int] = None
    streaming: bool = True
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    # Langfuse prompt name; the local system_prompt is used when unset or unavailable
    system_prompt_name: Optional[str] = None
    token_encoding: str = "cl100k_base"

    def to_dict(self) -> Dict[str, Any]:
        """Keyword arguments for the ChatOpenAI constructor"""
        return {
            "model": self.model_name,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "streaming": self.streaming
        }


@dataclass
class StreamingConfig:
    """Streaming response configuration"""
    reasoning_open_tag: str = "<think>"
    reasoning_close_tag: str = "</think>"
    update_every: int = 1
    error_message: str = (
        "I apologize, but I encountered an error while processing your request. "
        "Please try again."
    )


@dataclass
class StorageConfig:
    """Chat persistence configuration"""
    local_db_path: str = "data/local_chats.db"
    guest_storage_key: str = "guest_chats"
    remote_db_path: str = "data/remote_chats.db"


@dataclass
class UIConfig:
    """User interface configuration"""
    app_title: str = "AceAI"
    assistant_name: str = "AceAI"
    chat_input_placeholder: str = "Type your message..."
    empty_chat_message: str = "Start a conversation by typing a message below."
    sign_in_banner: str = "Sign in to save your chats across devices."


@dataclass
class AuthConfig:
    """Authentication and user management configuration"""
    enabled: bool = True
    allow_guest_mode: bool = True
    allow_self_registration: bool = True
    password_min_length: int = 6
    user_db_path: str = "data/users.db"


@dataclass
class LoggingConfig:
    """Logging and monitoring configuration"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    enable_file_logging: bool = True
    log_file: str = "logs/app.log"
    enable_langfuse_tracing: bool = True


@dataclass
class AppConfig:
    """Main application configuration"""
    api: APIConfig = field(default_factory=APIConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    streaming: StreamingConfig = field(default_factory=StreamingConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Environment settings
    environment: str = field(default_factory=lambda: os.getenv("APP_ENV", "development"))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")

    @classmethod
    def load(cls) -> 'AppConfig':
        """Load configuration with environment overrides"""
        config = cls()

        # Load API configuration from secrets/environment
        config.api = APIConfig.from_secrets()

        # Apply environment-specific overrides
        if config.environment == "production":
            config.debug = False
            config.logging.level = "WARNING"
        elif config.environment == "development":
            config.debug = True
            config.logging.level = "DEBUG"

        return config

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors"""
        errors = []

        # Check required API keys
        if not self.api.llm_api_key:
            errors.append("LLM API key is required")

        if not self.streaming.reasoning_open_tag or not self.streaming.reasoning_close_tag:
            errors.append("Reasoning sentinels must be non-empty")
        elif self.streaming.reasoning_open_tag == self.streaming.reasoning_close_tag:
            errors.append("Reasoning open and close sentinels must differ")

        # Make sure storage directories exist
        for db_path in (self.storage.local_db_path, self.storage.remote_db_path, self.auth.user_db_path):
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        if self.logging.enable_file_logging:
            log_dir = Path(self.logging.log_file).parent
            if not log_dir.exists():
                log_dir.mkdir(parents=True, exist_ok=True)

        return errors

    def get_langfuse_config(self) -> Dict[str, str]:
        """Get Langfuse configuration"""
        return {
            "secret_key": self.api.langfuse_secret_key,
            "public_key": self.api.langfuse_public_key,
            "host": self.api.langfuse_host
        }


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance"""
    global _config
    if _config is None:
        from config.environments import get_environment_config
        _config = get_environment_config()

        # Validate configuration
        errors = _config.validate()
        if errors:
            import warnings
            for error in errors:
                warnings.warn(f"Configuration error: {error}")

    return _config


def reload_config() -> AppConfig:
    """Reload configuration (useful for testing)"""
    global _config
    _config = None
    return get_config()


def get_llm_api_key() -> str:
    """Get the completion endpoint API key"""
    return get_config().api.llm_api_key


def get_langfuse_config() -> Dict[str, str]:
    """Get Langfuse configuration"""
    return get_config().get_langfuse_config()
