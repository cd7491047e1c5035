"""
Tests for the reasoning section token classifier
"""

import pytest
from services.ai_service.reasoning_parser import TokenClassifier, SECTION_ANSWER, SECTION_REASONING


class TestTokenClassifier:
    """Test sentinel detection and section routing"""

    def setup_method(self):
        self.classifier = TokenClassifier("<think>", "</think>")

    def test_starts_in_answer_section(self):
        assert self.classifier.in_reasoning_section is False
        assert self.classifier.classify("Hello") == [(SECTION_ANSWER, "Hello")]

    def test_open_sentinel_alone_switches_section(self):
        assert self.classifier.classify("<think>") == []
        assert self.classifier.in_reasoning_section is True
        assert self.classifier.classify("pondering") == [(SECTION_REASONING, "pondering")]

    def test_text_around_sentinels_in_one_fragment(self):
        pieces = self.classifier.classify("intro<think>deliberation</think>answer")

        assert pieces == [
            (SECTION_ANSWER, "intro"),
            (SECTION_REASONING, "deliberation"),
            (SECTION_ANSWER, "answer"),
        ]
        assert self.classifier.in_reasoning_section is False

    def test_close_sentinel_switches_to_answer_from_any_state(self):
        assert self.classifier.classify("</think>plain") == [(SECTION_ANSWER, "plain")]
        assert self.classifier.in_reasoning_section is False

    def test_split_sentinel_is_not_detected(self):
        first = self.classifier.classify("<thi")
        second = self.classifier.classify("nk>rest")

        assert first == [(SECTION_ANSWER, "<thi")]
        assert second == [(SECTION_ANSWER, "nk>rest")]
        assert self.classifier.in_reasoning_section is False

    def test_matching_is_case_sensitive(self):
        assert self.classifier.classify("<THINK>x") == [(SECTION_ANSWER, "<THINK>x")]
        assert self.classifier.in_reasoning_section is False

    def test_whitespace_inside_sentinel_is_not_tolerated(self):
        assert self.classifier.classify("< think>") == [(SECTION_ANSWER, "< think>")]

    def test_unterminated_reasoning_stays_in_reasoning(self):
        self.classifier.classify("<think>")
        self.classifier.classify("first")
        assert self.classifier.classify("second") == [(SECTION_REASONING, "second")]
        assert self.classifier.current_section == SECTION_REASONING

    def test_reset(self):
        self.classifier.classify("<think>")
        self.classifier.reset()
        assert self.classifier.in_reasoning_section is False

    def test_equal_sentinels_rejected(self):
        with pytest.raises(ValueError):
            TokenClassifier("||", "||")

    def test_custom_sentinels_with_shared_prefix(self):
        classifier = TokenClassifier("[", "[/")

        pieces = classifier.classify("[why[/what")

        assert pieces == [(SECTION_REASONING, "why"), (SECTION_ANSWER, "what")]

    def test_defaults_from_configuration(self):
        classifier = TokenClassifier()

        assert classifier.open_sentinel == "<think>"
        assert classifier.close_sentinel == "</think>"
