"""
Token classifier - routes streamed text to the reasoning or answer section.

Sentinels are matched inside a single fragment only. A sentinel split across
two fragments is not recognised and its pieces end up in the buffer text.
"""

import re
from typing import List, Tuple

from config.app_config import get_config


SECTION_REASONING = "reasoning"
SECTION_ANSWER = "answer"


class TokenClassifier:
    """
    Stateful classifier for completion stream fragments.

    An open sentinel switches to the reasoning section, a close sentinel
    switches back to the answer section. Sentinels are dropped from the output.
    """

    def __init__(self, open_sentinel: str = None, close_sentinel: str = None):
        streaming_config = get_config().streaming
        self.open_sentinel = open_sentinel or streaming_config.reasoning_open_tag
        self.close_sentinel = close_sentinel or streaming_config.reasoning_close_tag
        if self.open_sentinel == self.close_sentinel:
            raise ValueError("Open and close sentinels must differ")

        self.in_reasoning_section = False

        # Longest first so neither sentinel shadows the other
        sentinels = sorted((self.open_sentinel, self.close_sentinel), key=len, reverse=True)
        self._pattern = re.compile("(" + "|".join(re.escape(s) for s in sentinels) + ")")

    @property
    def current_section(self) -> str:
        return SECTION_REASONING if self.in_reasoning_section else SECTION_ANSWER

    def classify(self, fragment: str) -> List[Tuple[str, str]]:
        """
        Split a fragment into (section, text) pieces

        Args:
            fragment: Raw text fragment from the completion stream

        Returns:
            Ordered pieces with sentinels removed; empty when the fragment
            held nothing but sentinels
        """
        pieces = []
        for part in self._pattern.split(fragment):
            if part == self.open_sentinel:
                self.in_reasoning_section = True
            elif part == self.close_sentinel:
                self.in_reasoning_section = False
            elif part:
                pieces.append((self.current_section, part))
        return pieces

    def reset(self):
        """Start over for a new response"""
        self.in_reasoning_section = False
