"""Post-generation cleanup of model replies."""
import re
from dataclasses import dataclass, field
from typing import List, Sequence

from config import FORBIDDEN_WORDS

_MARKDOWN_LINK = re.compile(r"\[([^\]]+)\]\((?:https?://|www\.)[^)]*\)")
_URL = re.compile(r"(?:https?://|www\.)\S+", re.IGNORECASE)
_SPACES = re.compile(r"[ \t]{2,}")
_SPACE_BEFORE_PUNCT = re.compile(r"[ \t]+([.,!?؟،؛:])")


@dataclass
class GuardedReply:
    """Cleaned reply text plus the checks that fired."""
    text: str
    flags: List[str] = field(default_factory=list)


class ReplyGuard:
    """
    Strips what the assistant must never send.

    The model is told not to point users outside the platform or paste links;
    nothing verifies it obeyed, so forbidden words, URLs and markdown links
    are removed after the fact and the removals are reported as flags.
    """

    def __init__(self, forbidden_words: Sequence[str] = FORBIDDEN_WORDS):
        # Longest first so "عبر الإنترنت" is removed before "الإنترنت"
        self.forbidden_words = sorted(forbidden_words, key=len, reverse=True)
        self._forbidden = (
            re.compile("|".join(re.escape(w) for w in self.forbidden_words), re.IGNORECASE)
            if self.forbidden_words else None
        )

    def clean(self, text: str) -> GuardedReply:
        flags: List[str] = []
        text = text or ""

        if _MARKDOWN_LINK.search(text) or _URL.search(text):
            flags.append("url_stripped")
            text = _MARKDOWN_LINK.sub(r"\1", text)
            text = _URL.sub("", text)

        if self._forbidden is not None and self._forbidden.search(text):
            flags.append("external_advice")
            text = self._forbidden.sub("", text)

        text = _SPACES.sub(" ", text)
        text = _SPACE_BEFORE_PUNCT.sub(r"\1", text)
        text = "\n".join(line.strip() for line in text.splitlines()).strip()

        if not text:
            flags.append("empty_reply")

        return GuardedReply(text=text, flags=flags)
