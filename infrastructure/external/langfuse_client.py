"""
Langfuse client adapter.
Tracing for completion calls and optional system prompt management.
"""

from langfuse import Langfuse
from langfuse.langchain import CallbackHandler
from typing import Optional

from config.app_config import get_config, get_langfuse_config
from utils.logging_config import get_logger


class LangfuseClient:
    """
    Adapter for Langfuse observability and prompt management.
    Every accessor returns None when Langfuse is not configured.
    """

    def __init__(self):
        self.logger = get_logger(__name__)
        self.config = get_config()
        self._client = None
        self._callback_handler = None

    def is_enabled(self) -> bool:
        """Check whether tracing is switched on and keys are present"""
        langfuse_config = get_langfuse_config()
        return bool(
            self.config.logging.enable_langfuse_tracing
            and langfuse_config["secret_key"]
            and langfuse_config["public_key"]
        )

    def get_client(self) -> Optional[Langfuse]:
        """
        Get configured Langfuse client

        Returns:
            Optional[Langfuse]: Configured client or None if not available
        """
        if self._client is None:
            if not self.is_enabled():
                self.logger.debug("Langfuse disabled or keys not configured, skipping initialization")
                return None

            try:
                langfuse_config = get_langfuse_config()
                self._client = Langfuse(
                    secret_key=langfuse_config["secret_key"],
                    public_key=langfuse_config["public_key"],
                    host=langfuse_config["host"]
                )
                self.logger.info("Langfuse client initialized successfully")

            except Exception as e:
                self.logger.warning(f"Failed to initialize Langfuse client: {e}")
                return None

        return self._client

    def get_callback_handler(self) -> Optional[CallbackHandler]:
        """
        Get Langfuse callback handler for LangChain integration

        Returns:
            Optional[CallbackHandler]: Callback handler or None if not available
        """
        if self._callback_handler is None:
            if self.get_client() is None:
                return None
            try:
                self._callback_handler = CallbackHandler()
                self.logger.debug("Langfuse callback handler created")
            except Exception as e:
                self.logger.warning(f"Failed to create Langfuse callback handler: {e}")
                return None

        return self._callback_handler

    def get_prompt(self, prompt_name: str) -> Optional[str]:
        """
        Get a text prompt from Langfuse prompt management

        Args:
            prompt_name: Name of the prompt

        Returns:
            Optional[str]: Prompt content or None if not available
        """
        client = self.get_client()
        if client is None:
            return None

        try:
            return client.get_prompt(prompt_name).prompt
        except Exception as e:
            self.logger.warning(f"Failed to get prompt '{prompt_name}': {e}")
            return None


# Global client instance
_langfuse_client: Optional[LangfuseClient] = None


def get_langfuse_client() -> LangfuseClient:
    """Get the global Langfuse client instance"""
    global _langfuse_client
    if _langfuse_client is None:
        _langfuse_client = LangfuseClient()
    return _langfuse_client
