"""Tests for memory-worthiness detection."""

import pytest

from vitalcoach.memory import MemoryCategory, detect_memory_worthy
from vitalcoach.memory.detection import classify_text, extract_keywords


class TestClassifyText:
    """Tests for ordered category matching."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("My goal is to run 5k", MemoryCategory.GOALS),
            ("I prefer morning workouts", MemoryCategory.PREFERENCES),
            ("I'm allergic to peanuts", MemoryCategory.CONSTRAINTS),
            ("My weight was 180 today", MemoryCategory.HEALTH),
        ],
    )
    def test_single_category(self, text: str, expected: MemoryCategory):
        assert classify_text(text) is expected

    def test_first_category_wins(self):
        """Goals beat health even when both match."""
        assert classify_text("I want to track my weight") is MemoryCategory.GOALS

    def test_preferences_before_constraints(self):
        assert classify_text("I love pasta but cannot eat gluten") is MemoryCategory.PREFERENCES

    def test_case_insensitive(self):
        assert classify_text("WANT TO SLEEP MORE") is MemoryCategory.GOALS

    def test_no_match(self):
        assert classify_text("Hello there") is None


class TestExtractKeywords:
    """Tests for keyword extraction."""

    def test_keeps_long_words_in_order(self):
        assert extract_keywords("I want to lose some weight") == ("want", "lose", "some", "weight")

    def test_strips_punctuation_and_dedups(self):
        assert extract_keywords("Pasta! pasta, PASTA.") == ("pasta",)

    def test_caps_at_five(self):
        keywords = extract_keywords("alpha bravo charlie delta echo foxtrot golf")
        assert keywords == ("alpha", "bravo", "charlie", "delta", "echo")


class TestDetectMemoryWorthy:
    """Tests for detect_memory_worthy."""

    def test_goal_is_remembered_with_high_importance(self):
        detection = detect_memory_worthy("  I want to lose 10 pounds  ")
        assert detection.should_remember is True
        assert detection.category is MemoryCategory.GOALS
        assert detection.importance == 0.9
        assert detection.extracted_info == "I want to lose 10 pounds"

    def test_constraint_importance(self):
        assert detect_memory_worthy("I can't eat dairy").importance == 0.8

    def test_health_importance(self):
        assert detect_memory_worthy("Did 8000 steps").importance == 0.6

    def test_small_talk_is_not_remembered(self):
        detection = detect_memory_worthy("Good morning!")
        assert detection.should_remember is False
        assert detection.category is MemoryCategory.CONTEXT
        assert detection.importance == 0.3
