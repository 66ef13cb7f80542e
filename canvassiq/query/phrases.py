"""Phrase lists used by the answer guard.

Kept as data so they can be tuned from a JSON file without touching the
guard's decision logic::

    {"blacklist": ["i don't have access", ...], "generic": [...]}

Missing keys fall back to the defaults below.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_BLACKLIST = [
    "i don't have access",
    "i don't have information",
    "beyond my knowledge cutoff",
    "after my last update",
    "not have specific",
    "can't access",
    "i'm unable to provide specific information",
    "i'm sorry, but i don't",
    "not privy to",
    "as an ai",
    "my training data",
    "my knowledge",
    "my last update",
    "knowledge cutoff",
    "training cutoff",
    "i don't have data",
    "i don't have specific data",
    "i can't provide details",
    "i cannot access",
    "i do not have access",
    "i do not have the data",
    "i do not have direct access",
    "i don't have the ability to access",
    "without access to",
    "i would need access to",
    "i'm not able to access",
    "i cannot provide specific",
    "i can't provide specific",
    "i apologize",
    "i need more context",
    "could you please clarify",
    "please provide more information",
    "i need more information",
    "i don't see",
    "i cannot see",
]

DEFAULT_NOT_FOUND = [
    "no records for",
    "no data for",
    "could not find",
    "couldn't find",
    "can't find",
    "cannot find",
    "unable to find",
    "no entries for",
    "no information about",
    "does not appear in",
    "doesn't appear in",
    "not found in",
    "don't have",
]

DEFAULT_GENERIC = [
    "here is the information",
    "here's the information",
    "based on the information",
    "i can help with that",
    "let me know if",
    "hope this helps",
    "great question",
    "the data shows various",
    "there are several",
    "it depends",
]

DEFAULT_SELF_REFERENCE = [
    "as a language model",
    "as an assistant",
    "i am an ai",
    "i'm an ai",
    "i am a language model",
    "i'm a language model",
    "i am sorry",
    "i'm sorry",
    "sorry, ",
    "my apologies",
    "unfortunately, i",
]


class GuardPhrases(BaseModel):
    """Lower-case substrings matched case-insensitively against answers."""

    blacklist: list[str] = Field(default_factory=lambda: list(DEFAULT_BLACKLIST))
    not_found: list[str] = Field(default_factory=lambda: list(DEFAULT_NOT_FOUND))
    generic: list[str] = Field(default_factory=lambda: list(DEFAULT_GENERIC))
    self_reference: list[str] = Field(default_factory=lambda: list(DEFAULT_SELF_REFERENCE))

    def first_hit(self, group: str, text: str) -> Optional[str]:
        """Return the first phrase from ``group`` found in ``text``."""
        lowered = text.lower()
        for phrase in getattr(self, group):
            if phrase.lower() in lowered:
                return phrase
        return None


def load_guard_phrases(path: Optional[Path | str] = None) -> GuardPhrases:
    """Load phrase lists from JSON; ``None`` returns the defaults."""
    if path is None:
        return GuardPhrases()
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Guard phrases file not found: {path}")
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object of phrase lists in {path.name}")
    return GuardPhrases.model_validate(data)
