"""
AI service - completion streaming and response parsing.
"""

from .models import MessageSnapshot
from .reasoning_parser import TokenClassifier, SECTION_ANSWER, SECTION_REASONING
from .stream_accumulator import StreamingAccumulator
from .llm_client import CompletionClient, get_completion_client

__all__ = [
    'MessageSnapshot',
    'TokenClassifier',
    'SECTION_ANSWER',
    'SECTION_REASONING',
    'StreamingAccumulator',
    'CompletionClient',
    'get_completion_client'
]
