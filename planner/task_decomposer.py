"""
Task Decomposer — splits a free-text idea into ordered step segments.

The decomposer is keyword-free and deterministic:
- Empty or segment-less input is replaced by a built-in fallback idea.
- Segments keep their original order; that order becomes the default chain.
"""

from __future__ import annotations

import re

FALLBACK_IDEA = (
    "Capture a user's idea, break it into ordered steps, validate dependencies, "
    "and surface a clear flow with execution notes."
)
UNTITLED_STEP = "Untitled step"
TITLE_MAX_WORDS = 6

_SEGMENT_SPLIT = re.compile(r"[\n.!?;]")
_TITLE_STRIP = re.compile(r"[^\w\s-]")


class TaskDecomposer:
    """Deterministic sentence-level decomposition of ideas."""

    def __init__(self, fallback_idea: str = FALLBACK_IDEA):
        self.fallback_idea = fallback_idea

    def resolve_idea(self, idea: str | None) -> str:
        """Return the idea to work from, substituting the fallback when unusable."""
        text = (idea or "").strip()
        if not text or not self.split(text):
            return self.fallback_idea
        return text

    def decompose(self, idea: str | None) -> list[str]:
        """Decompose an idea into 1..N ordered step segments."""
        return self.split(self.resolve_idea(idea))

    def split(self, text: str) -> list[str]:
        normalized = text.replace("\r", "\n")
        return [segment.strip() for segment in _SEGMENT_SPLIT.split(normalized) if segment.strip()]

    def title_for(self, segment: str) -> str:
        cleaned = _TITLE_STRIP.sub(" ", segment).strip()
        words = " ".join(cleaned.split()[:TITLE_MAX_WORDS])
        if not words:
            return UNTITLED_STEP
        return words[0].upper() + words[1:]
