"""
UI service - handles user interface components and interactions.
"""

from .stream_renderer import StreamRenderer
from .chat_interface import ChatInterface, get_chat_interface

__all__ = [
    'StreamRenderer',
    'ChatInterface',
    'get_chat_interface'
]
