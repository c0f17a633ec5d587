"""Heuristic pre-check that flags ideas which look like noise.

The verdict is advisory: the planner still decomposes invalid ideas.
"""

from __future__ import annotations

from shared.models import IdeaAssessment

MIN_IDEA_CHARS = 10
MIN_MEANINGFUL_WORDS = 2


def assess_idea(idea: str | None) -> IdeaAssessment:
    text = (idea or "").strip()
    if not text:
        return IdeaAssessment(is_valid=False, reason="Input is empty")
    if len(text) < MIN_IDEA_CHARS:
        return IdeaAssessment(is_valid=False, reason="Input is too short")

    words = [word for word in text.split() if len(word) > 2]
    if len(words) < MIN_MEANINGFUL_WORDS:
        return IdeaAssessment(is_valid=False, reason="Not enough meaningful words")

    unique_words = {word.lower() for word in words}
    if len(unique_words) < 2 and len(words) > 3:
        return IdeaAssessment(is_valid=False, reason="Too much repetition")

    return IdeaAssessment(is_valid=True, reason="Passed basic validation")
