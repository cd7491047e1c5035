"""
Stream renderer - draws assistant snapshots into a Streamlit placeholder while they stream.
"""

import time
from typing import Optional

import streamlit as st

from services.ai_service.models import MessageSnapshot
from utils.logging_config import get_logger


CURSOR = "▌"


class StreamRenderer:
    """Renders MessageSnapshot updates and records streaming metrics"""

    def __init__(self, placeholder, update_every: int = 1):
        self.placeholder = placeholder
        self.update_every = max(1, update_every)
        self.counter = 0

        # Timing metrics
        self.start_time: Optional[float] = None
        self.first_answer_time: Optional[float] = None

        self.logger = get_logger("streaming_metrics")

    def start(self):
        """Record when the request goes out"""
        self.start_time = time.time()
        self.counter = 0
        self.first_answer_time = None
        self.placeholder.markdown(CURSOR)

    def mark_first_answer(self):
        """Record when the first answer text arrives"""
        if self.first_answer_time is not None:
            return
        self.first_answer_time = time.time()
        if self.start_time:
            ttft = (self.first_answer_time - self.start_time) * 1000
            self.logger.info(f"[TTFT] Time to first answer text: {ttft:.1f}ms")

    def render(self, snapshot: MessageSnapshot):
        """Draw a snapshot; intermediate ones are throttled by update_every"""
        self.counter += 1
        if not snapshot.final and self.counter % self.update_every != 0:
            return

        with self.placeholder.container():
            if snapshot.reasoning:
                with st.expander("Reasoning", expanded=snapshot.reasoning_expanded):
                    st.markdown(snapshot.reasoning)
            if snapshot.failed:
                st.error(snapshot.content)
            elif snapshot.final:
                st.markdown(snapshot.content)
            else:
                st.markdown(snapshot.content + CURSOR)

        if snapshot.final:
            self._log_summary(snapshot)

    def _log_summary(self, snapshot: MessageSnapshot):
        if not self.start_time:
            return
        total_time = (time.time() - self.start_time) * 1000
        self.logger.info(
            f"Response complete: {self.counter} snapshots in {total_time:.1f}ms "
            f"(failed: {snapshot.failed})"
        )
