"""
AI service data models for streamed responses.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class MessageSnapshot:
    """Immutable view of an assistant message while it streams"""
    content: str
    reasoning: str
    reasoning_expanded: bool
    final: bool = False
    failed: bool = False
