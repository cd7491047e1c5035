"""
Streaming accumulator - turns completion fragments into message snapshots.
"""

from typing import Callable, Iterable, Iterator, Optional

from config.app_config import get_config
from services.ai_service.models import MessageSnapshot
from services.ai_service.reasoning_parser import TokenClassifier, SECTION_REASONING
from utils.logging_config import get_logger


class StreamingAccumulator:
    """
    Accumulates one assistant response.

    Keeps a reasoning buffer and an answer buffer, and emits a
    MessageSnapshot after every fragment, a final snapshot at the end of the
    stream, or a single failure snapshot if reading the stream raises.
    """

    def __init__(self, classifier: Optional[TokenClassifier] = None,
                 on_first_answer: Optional[Callable[[], None]] = None,
                 error_message: str = None):
        self.logger = get_logger(__name__)
        self.classifier = classifier or TokenClassifier()
        self.on_first_answer = on_first_answer
        self.error_message = error_message or get_config().streaming.error_message

        self.reasoning_buffer = ""
        self.answer_buffer = ""
        self.first_answer_seen = False
        self.fragment_count = 0

    def feed(self, fragment: str) -> MessageSnapshot:
        """
        Classify one fragment, grow the buffers and return the new snapshot

        Args:
            fragment: Raw text fragment

        Returns:
            Snapshot with trimmed buffers and reasoning expanded
        """
        self.fragment_count += 1

        for section, text in self.classifier.classify(fragment):
            if section == SECTION_REASONING:
                self.reasoning_buffer += text
                continue

            if not self.first_answer_seen and text.strip():
                self.first_answer_seen = True
                self._fire_first_answer()
            self.answer_buffer += text

        return self.snapshot(reasoning_expanded=True)

    def snapshot(self, reasoning_expanded: bool, final: bool = False) -> MessageSnapshot:
        return MessageSnapshot(
            content=self.answer_buffer.strip(),
            reasoning=self.reasoning_buffer.strip(),
            reasoning_expanded=reasoning_expanded,
            final=final,
        )

    def finish(self) -> MessageSnapshot:
        """Terminal snapshot: reasoning collapsed"""
        return self.snapshot(reasoning_expanded=False, final=True)

    def fail(self) -> MessageSnapshot:
        """Terminal snapshot replacing whatever was accumulated"""
        return MessageSnapshot(
            content=self.error_message,
            reasoning="",
            reasoning_expanded=False,
            final=True,
            failed=True,
        )

    def accumulate(self, fragments: Iterable[str]) -> Iterator[MessageSnapshot]:
        """
        Consume a fragment stream lazily

        Closing this generator closes the upstream iterator.

        Args:
            fragments: Lazy, finite, non-restartable fragment sequence

        Yields:
            One snapshot per fragment, then a final or failure snapshot
        """
        iterator = iter(fragments)
        try:
            while True:
                try:
                    fragment = next(iterator)
                except StopIteration:
                    break
                except Exception as e:
                    self.logger.error(
                        f"Completion stream failed after {self.fragment_count} fragments: {e}",
                        exc_info=True
                    )
                    yield self.fail()
                    return

                yield self.feed(fragment or "")
        finally:
            close = getattr(iterator, "close", None)
            if close is not None:
                close()

        self.logger.debug(
            f"Stream complete: {self.fragment_count} fragments, "
            f"{len(self.answer_buffer)} answer chars, {len(self.reasoning_buffer)} reasoning chars"
        )
        yield self.finish()

    def _fire_first_answer(self):
        if self.on_first_answer is None:
            return
        try:
            self.on_first_answer()
        except Exception as e:
            # Notification collaborators must not break the stream
            self.logger.warning(f"First-answer hook failed: {e}")
