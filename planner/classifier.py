"""
Step Classifier — assigns a category and tags to a step via keyword tables.

Category tables are checked in a fixed priority order and the first match
wins; the keyword sets overlap ("notify" also contains "if"), so the order
in CATEGORY_KEYWORDS is part of the contract.
"""

from __future__ import annotations

from shared.models import WorkflowCategory

DEFAULT_CATEGORY: WorkflowCategory = "collect"

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "collect": ("gather", "collect", "capture", "record", "listen", "transcribe"),
    "analyze": ("analyze", "inspect", "validate", "classify", "score", "check"),
    "execute": ("send", "trigger", "run", "execute", "sync", "call"),
    "notify": ("notify", "email", "alert", "message", "post", "share", "notion"),
    "decision": ("if", "when", "branch", "decide", "choose", "route"),
}

TAG_KEYWORDS: dict[str, tuple[str, ...]] = {
    "notion": ("notion",),
    "email": ("email", "inbox"),
    "voice": ("voice", "speech", "microphone"),
    "timeline": ("timeline", "schedule", "deadline"),
    "api": ("api", "endpoint", "webhook"),
    "debug": ("debug", "error", "failure", "retry"),
}


class StepClassifier:
    """Keyword-table classifier. Always produces a value, never raises."""

    def __init__(
        self,
        category_keywords: dict[str, tuple[str, ...]] | None = None,
        tag_keywords: dict[str, tuple[str, ...]] | None = None,
    ):
        self.category_keywords = category_keywords or CATEGORY_KEYWORDS
        self.tag_keywords = tag_keywords or TAG_KEYWORDS

    def infer_category(self, text: str) -> WorkflowCategory:
        lowered = (text or "").lower()
        for category, keywords in self.category_keywords.items():
            if any(keyword in lowered for keyword in keywords):
                return category  # type: ignore[return-value]
        return DEFAULT_CATEGORY

    def infer_tags(self, text: str) -> list[str]:
        lowered = (text or "").lower()
        return [
            tag.lower()
            for tag, keywords in self.tag_keywords.items()
            if any(keyword in lowered for keyword in keywords)
        ]
