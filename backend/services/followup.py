"""Static shortcuts answered without any embedding or completion call."""
import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from models.course import Course
from config import FOLLOW_UP_MAX_WORDS, PROMOTED_COURSES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FollowUpField:
    attribute: str
    keywords: tuple
    template: str
    missing: str


# keyword → course field lookup table
FOLLOW_UP_FIELDS = (
    FollowUpField(
        attribute="price",
        keywords=("السعر", "سعر", "سعرها", "بكام", "التكلفة", "تكلفة", "price", "cost"),
        template="سعر الدورة هو {value}.",
        missing="سعر هذه الدورة غير متوفر حاليًا.",
    ),
    FollowUpField(
        attribute="duration",
        keywords=("المدة", "مدة", "مدتها", "كم ساعة", "عدد الساعات", "duration", "hours"),
        template="مدة الدورة هي {value}.",
        missing="مدة هذه الدورة غير متوفرة حاليًا.",
    ),
    FollowUpField(
        attribute="url",
        keywords=("الرابط", "رابط", "اللينك", "لينك", "link", "url"),
        template="رابط الدورة: {value}",
        missing="رابط هذه الدورة غير متوفر حاليًا.",
    ),
)


def _keyword_pattern(keywords: Iterable[str]) -> re.Pattern:
    sorted_keywords = sorted(keywords, key=len, reverse=True)
    # Accepts an attached article or preposition, as in "بالسعر"
    return re.compile(r"\b(?:[وب]?ال)?(" + "|".join(re.escape(k) for k in sorted_keywords) + r")\b", re.IGNORECASE)


class FollowUpResolver:
    """
    Answers price/duration/link questions about the last course discussed.

    Only short messages qualify, so "what is the price of the Python course"
    still goes through classification and retrieval as a new topic.
    """

    def __init__(self, fields: Sequence[FollowUpField] = FOLLOW_UP_FIELDS, max_words: int = FOLLOW_UP_MAX_WORDS):
        self.fields = list(fields)
        self.max_words = max_words
        self._patterns = [(f, _keyword_pattern(f.keywords)) for f in self.fields]

    def match(self, message: str) -> Optional[FollowUpField]:
        if not message or len(message.split()) > self.max_words:
            return None
        for follow_up_field, pattern in self._patterns:
            if pattern.search(message):
                return follow_up_field
        return None

    def resolve(self, message: str, last_course: Optional[Course]) -> Optional[str]:
        """Templated answer, or None when the message is not a follow-up."""
        if last_course is None:
            return None

        follow_up_field = self.match(message)
        if follow_up_field is None:
            return None

        value = getattr(last_course, follow_up_field.attribute, None)
        logger.info(f"Follow-up on '{last_course.title}': {follow_up_field.attribute}")
        if not value:
            return follow_up_field.missing
        return follow_up_field.template.format(value=value)


@dataclass(frozen=True)
class PromotedCourse:
    keywords: tuple
    course: Course


class PromotionMatcher:
    """Hard-coded keyword courses that get a fixed promotional reply."""

    def __init__(self, promotions: Optional[List[Dict]] = None):
        entries = PROMOTED_COURSES if promotions is None else promotions
        self.promotions = [
            PromotedCourse(
                keywords=tuple(entry["keywords"]),
                course=Course(
                    title=entry["title"],
                    url=entry["url"],
                    description=entry.get("description", ""),
                    price=entry.get("price"),
                    duration=entry.get("duration"),
                    domain=entry.get("domain"),
                ),
            )
            for entry in entries
        ]
        self._patterns = [(p, _keyword_pattern(p.keywords)) for p in self.promotions]

    def match(self, message: str) -> Optional[Course]:
        if not message:
            return None
        for promotion, pattern in self._patterns:
            if pattern.search(message):
                logger.info(f"Promoted course matched: {promotion.course.title}")
                return promotion.course
        return None
