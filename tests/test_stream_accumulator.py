"""
Tests for the streaming accumulator
"""

from unittest.mock import Mock

from services.ai_service.reasoning_parser import TokenClassifier
from services.ai_service.stream_accumulator import StreamingAccumulator


ERROR_TEXT = (
    "I apologize, but I encountered an error while processing your request. "
    "Please try again."
)


def failing_stream(fragments, error):
    """Fragment generator that raises after yielding the given fragments"""
    for fragment in fragments:
        yield fragment
    raise error


class TestStreamingAccumulator:
    """Test snapshot emission for streamed responses"""

    def setup_method(self):
        self.accumulator = StreamingAccumulator(classifier=TokenClassifier("<think>", "</think>"))

    def test_reasoning_and_answer_are_separated(self):
        snapshots = list(self.accumulator.accumulate(["<think>", "reasoning text", "</think>answer text"]))

        assert len(snapshots) == 4
        final = snapshots[-1]
        assert final.content == "answer text"
        assert final.reasoning == "reasoning text"
        assert final.reasoning_expanded is False
        assert final.final is True
        assert final.failed is False

    def test_intermediate_snapshots_keep_reasoning_expanded(self):
        snapshots = list(self.accumulator.accumulate(["<think>", "step one", "</think>", "Done"]))

        assert all(snapshot.reasoning_expanded for snapshot in snapshots[:-1])
        assert snapshots[1].reasoning == "step one"
        assert snapshots[1].content == ""
        assert snapshots[3].content == "Done"

    def test_buffers_are_trimmed_in_snapshots(self):
        snapshots = list(self.accumulator.accumulate(["<think>\n  why  \n</think>\n\nHello ", "world \n"]))

        assert snapshots[0].reasoning == "why"
        assert snapshots[0].content == "Hello"
        assert snapshots[-1].content == "Hello world"

    def test_answer_only_stream(self):
        snapshots = list(self.accumulator.accumulate(["Just ", "an answer"]))

        assert snapshots[-1].content == "Just an answer"
        assert snapshots[-1].reasoning == ""

    def test_unterminated_reasoning_ends_in_reasoning_buffer(self):
        snapshots = list(self.accumulator.accumulate(["<think>", "still thinking"]))

        assert snapshots[-1].reasoning == "still thinking"
        assert snapshots[-1].content == ""

    def test_failure_replaces_partial_content(self):
        fragments = failing_stream(["<think>", "partial", "</think>", "half an"], RuntimeError("connection reset"))

        snapshots = list(self.accumulator.accumulate(fragments))

        assert len(snapshots) == 5
        failure = snapshots[-1]
        assert failure.failed is True
        assert failure.final is True
        assert failure.content == ERROR_TEXT
        assert failure.reasoning == ""
        assert failure.reasoning_expanded is False

    def test_failure_before_first_fragment(self):
        snapshots = list(self.accumulator.accumulate(failing_stream([], ValueError("no key"))))

        assert len(snapshots) == 1
        assert snapshots[0].failed is True

    def test_custom_error_message(self):
        accumulator = StreamingAccumulator(error_message="Oops")

        snapshots = list(accumulator.accumulate(failing_stream([], RuntimeError())))

        assert snapshots[-1].content == "Oops"

    def test_first_answer_hook_fires_once_on_visible_answer(self):
        calls = []
        accumulator = StreamingAccumulator(on_first_answer=lambda: calls.append(accumulator.fragment_count))

        list(accumulator.accumulate(["<think>", "hmm", "</think>", "\n", "Hi", " there"]))

        assert calls == [5]

    def test_first_answer_hook_not_fired_for_reasoning_only(self):
        hook = Mock()
        accumulator = StreamingAccumulator(on_first_answer=hook)

        list(accumulator.accumulate(["<think>", "only reasoning", "</think>", "  "]))

        hook.assert_not_called()

    def test_first_answer_hook_errors_do_not_break_stream(self):
        accumulator = StreamingAccumulator(on_first_answer=Mock(side_effect=RuntimeError("ui gone")))

        snapshots = list(accumulator.accumulate(["answer"]))

        assert snapshots[-1].content == "answer"
        assert snapshots[-1].failed is False

    def test_closing_snapshots_closes_upstream(self):
        state = {"closed": False}

        def upstream():
            try:
                yield "a"
                yield "b"
                yield "c"
            finally:
                state["closed"] = True

        snapshots = self.accumulator.accumulate(upstream())
        next(snapshots)
        snapshots.close()

        assert state["closed"] is True

    def test_none_fragments_are_ignored(self):
        snapshots = list(self.accumulator.accumulate([None, "text"]))

        assert snapshots[-1].content == "text"
