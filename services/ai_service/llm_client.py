"""
Completion client - streams chat completions from an OpenAI-compatible endpoint.
"""

from langchain_openai import ChatOpenAI
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
import openai
import tiktoken
from typing import Iterator, List, Optional, Sequence

from config.app_config import get_config, get_llm_api_key
from infrastructure.external.langfuse_client import get_langfuse_client
from services.chat_service.models import Message, ROLE_ASSISTANT, ROLE_SYSTEM
from utils.logging_config import get_logger, get_error_tracker, log_model_usage


def classify_api_error(error: Exception) -> str:
    """Error tracking context for a completion endpoint failure"""
    # Subclasses before their bases
    if isinstance(error, openai.RateLimitError):
        return "rate_limit_error"
    if isinstance(error, openai.AuthenticationError):
        return "authentication_error"
    if isinstance(error, openai.BadRequestError):
        return "bad_request_error"
    if isinstance(error, openai.APITimeoutError):
        return "api_timeout_error"
    if isinstance(error, openai.APIConnectionError):
        return "api_connection_error"
    if isinstance(error, openai.InternalServerError):
        return "server_error"
    return "completion_stream_error"


class CompletionClient:
    """
    Client for streamed chat completions.
    Handles ChatOpenAI initialization, prompt assembly and token accounting.
    """

    def __init__(self):
        self.logger = get_logger(__name__)
        self.config = get_config()
        self.langfuse_client = get_langfuse_client()
        self._llm = None
        self._encoding = None
        self._system_prompt = None

    def get_llm(self) -> ChatOpenAI:
        """
        Get configured ChatOpenAI instance

        Returns:
            Configured ChatOpenAI instance
        """
        if self._llm is None:
            try:
                api_key = get_llm_api_key()
                if not api_key:
                    raise ValueError("LLM API key not configured")

                self._llm = ChatOpenAI(
                    **self.config.llm.to_dict(),
                    openai_api_key=api_key,
                    openai_api_base=self.config.api.llm_api_url
                )

                self.logger.info(f"LLM initialized: {self.config.llm.model_name}")

            except Exception as e:
                self.logger.error(f"Error initializing LLM: {e}")
                raise

        return self._llm

    def get_system_prompt(self) -> str:
        """Leading system instruction, from Langfuse when a prompt name is configured"""
        if self._system_prompt is None:
            prompt = None
            if self.config.llm.system_prompt_name:
                prompt = self.langfuse_client.get_prompt(self.config.llm.system_prompt_name)
            self._system_prompt = prompt or self.config.llm.system_prompt
        return self._system_prompt

    def build_messages(self, history: Sequence[Message]) -> List[BaseMessage]:
        """
        Build the completion request: system instruction, then every message
        of the turn's history (role and content only)

        Args:
            history: Prior messages ending with the new user message

        Returns:
            LangChain message list
        """
        messages: List[BaseMessage] = [SystemMessage(content=self.get_system_prompt())]
        for message in history:
            if message.role == ROLE_ASSISTANT:
                messages.append(AIMessage(content=message.content))
            elif message.role == ROLE_SYSTEM:
                messages.append(SystemMessage(content=message.content))
            else:
                messages.append(HumanMessage(content=message.content))
        return messages

    def count_tokens(self, messages: Sequence[BaseMessage]) -> int:
        """Approximate prompt size in tokens"""
        if self._encoding is None:
            try:
                self._encoding = tiktoken.encoding_for_model(self.config.llm.model_name)
            except KeyError:
                # Not an OpenAI model name
                self._encoding = tiktoken.get_encoding(self.config.llm.token_encoding)

        return sum(len(self._encoding.encode(str(message.content))) for message in messages)

    def stream_completion(self, history: Sequence[Message]) -> Iterator[str]:
        """
        Stream the completion for a turn

        Nothing is sent until the first fragment is requested. Errors from the
        endpoint propagate to the consumer.

        Args:
            history: Prior messages ending with the new user message

        Yields:
            Raw text fragments
        """
        messages = self.build_messages(history)
        llm = self.get_llm()

        try:
            tokens_used = self.count_tokens(messages)
        except Exception as e:
            self.logger.warning(f"Token counting failed: {e}")
            tokens_used = 0
        log_model_usage(self.logger, self.config.llm.model_name, tokens_used,
                        message_count=len(messages), streaming=True)

        callbacks = []
        langfuse_handler = self.langfuse_client.get_callback_handler()
        if langfuse_handler is not None:
            callbacks.append(langfuse_handler)

        try:
            for chunk in llm.stream(messages, config={"callbacks": callbacks}):
                content = chunk.content
                yield content if isinstance(content, str) else ""
        except openai.OpenAIError as e:
            get_error_tracker().track_error(e, classify_api_error(e), model=self.config.llm.model_name)
            raise


# Global client instance
_completion_client: Optional[CompletionClient] = None


def get_completion_client() -> CompletionClient:
    """Get the global completion client instance"""
    global _completion_client
    if _completion_client is None:
        _completion_client = CompletionClient()
    return _completion_client
