"""
Intent and domain classification for incoming chat messages.

Two interchangeable implementations share the ``IntentClassifier`` interface:
a deterministic keyword classifier and a hosted-LLM classifier. The pipeline
only sees ``classify(message, history) -> Classification``, so tests can swap
in either one (or a fake).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import json
import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence

from models.conversation import Turn
from services.llm_client import LLMClient
from config import CLASSIFIER_MODEL

logger = logging.getLogger(__name__)

# Intent labels
LEARNING_INTENT = "learning_intent"
SEARCH = "search"
ADVICE = "advice"
IDENTITY = "identity"
GREETING = "greeting"
OTHER = "other"

INTENTS = (LEARNING_INTENT, SEARCH, ADVICE, IDENTITY, GREETING, OTHER)

# Domain labels
DOMAINS = (
    "programming", "web", "mobile", "data", "design",
    "leadership", "language", "it", "general",
)
DEFAULT_DOMAIN = "general"


@dataclass
class Classification:
    """
    Result of message classification.

    Attributes:
        intent: One of INTENTS
        domain: One of DOMAINS
        rule_triggered: Which rule or backend produced the label
        reasoning: Short explanation for logs
    """
    intent: str
    domain: str = DEFAULT_DOMAIN
    rule_triggered: str = ""
    reasoning: str = ""


class IntentClassifier(ABC):
    """Labels a chat message so the pipeline can decide whether to retrieve."""

    @abstractmethod
    def classify(self, message: str, history: Optional[Sequence[Turn]] = None) -> Classification:
        """Return the intent and domain of ``message``."""


def _compile(patterns: Iterable[str]) -> re.Pattern:
    """
    Longest-first alternation with word boundaries (``\\b`` works for Arabic too).

    An attached Arabic article ("ال", "وال", "بال") is allowed in front of the
    keyword, so "التصميم" matches "تصميم".
    """
    sorted_patterns = sorted(patterns, key=len, reverse=True)
    patterns_regex = '|'.join(re.escape(p) for p in sorted_patterns)
    return re.compile(rf'\b(?:[وب]?ال)?({patterns_regex})\b', re.IGNORECASE)


class RuleBasedIntentClassifier(IntentClassifier):
    """
    Deterministic keyword classifier.

    Rules are applied in order:
    0. Greeting only (whole message is a greeting) → greeting
    1. Identity questions → identity
    2. Advice requests → advice
    3. Learning verbs → learning_intent
    4. Course/search words or a known domain keyword → search
    5. Default → other
    """

    GREETING_PATTERNS = {
        "مرحبا", "مرحبًا", "اهلا", "أهلا", "أهلًا", "السلام عليكم", "هاي",
        "صباح الخير", "مساء الخير", "شكرا", "شكرًا",
        "hi", "hello", "hey", "thanks", "thank you",
    }

    IDENTITY_PATTERNS = {
        "من أنت", "من انت", "مين انت", "مين أنت", "ما اسمك", "عرفني بنفسك",
        "who are you", "what are you", "your name",
    }

    ADVICE_PATTERNS = {
        "انصحني", "نصيحة", "تنصحني", "ماذا أتعلم", "ماذا اتعلم", "أبدأ بإيه", "ابدأ منين",
        "advice", "recommend", "suggest",
    }

    LEARNING_PATTERNS = {
        "أتعلم", "اتعلم", "تعلم", "أريد أن أتعلم", "عايز اتعلم", "أدرس", "ادرس",
        "learn", "study",
    }

    SEARCH_PATTERNS = {
        "دورة", "دورات", "كورس", "كورسات", "دبلومة", "برنامج تدريبي",
        "course", "courses", "diploma",
    }

    DOMAIN_PATTERNS: Dict[str, set] = {
        "programming": {"برمجة", "بايثون", "جافا", "سي شارب", "python", "java", "programming"},
        "web": {"مواقع", "ويب", "html", "css", "javascript", "react", "wordpress", "ووردبريس"},
        "mobile": {"تطبيقات", "موبايل", "أندرويد", "اندرويد", "flutter", "android", "ios"},
        "data": {"بيانات", "تحليل البيانات", "ذكاء اصطناعي", "اكسل", "إكسل", "excel", "data", "power bi"},
        "design": {"تصميم", "جرافيك", "فوتوشوب", "اليستريتور", "photoshop", "illustrator", "design"},
        "leadership": {"قيادة", "إدارة", "ادارة", "مهارات ناعمة", "leadership", "management"},
        "language": {"لغة", "انجليزي", "إنجليزي", "انجليزية", "english", "language"},
        "it": {"شبكات", "أمن معلومات", "امن معلومات", "سيرفر", "network", "security", "linux"},
    }

    def __init__(self):
        self._greeting_only = re.compile(
            r'^\s*(' + '|'.join(re.escape(p) for p in sorted(self.GREETING_PATTERNS, key=len, reverse=True))
            + r')\s*[.!?؟,،\s]*$',
            re.IGNORECASE
        )
        self._identity = _compile(self.IDENTITY_PATTERNS)
        self._advice = _compile(self.ADVICE_PATTERNS)
        self._learning = _compile(self.LEARNING_PATTERNS)
        self._search = _compile(self.SEARCH_PATTERNS)
        self._domains = {domain: _compile(words) for domain, words in self.DOMAIN_PATTERNS.items()}

    def classify(self, message: str, history: Optional[Sequence[Turn]] = None) -> Classification:
        if not message or not message.strip():
            return Classification(intent=OTHER, rule_triggered="empty", reasoning="Empty message")

        text = message.strip()
        domain = self.detect_domain(text)

        if self._greeting_only.match(text):
            return self._result(GREETING, DEFAULT_DOMAIN, "greeting", text)

        if self._identity.search(text):
            return self._result(IDENTITY, DEFAULT_DOMAIN, "identity", text)

        if self._advice.search(text):
            return self._result(ADVICE, domain, "advice_keyword", text)

        if self._learning.search(text):
            return self._result(LEARNING_INTENT, domain, "learning_keyword", text)

        if self._search.search(text) or domain != DEFAULT_DOMAIN:
            return self._result(SEARCH, domain, "search_keyword", text)

        return self._result(OTHER, domain, "default", text)

    def detect_domain(self, text: str) -> str:
        """First domain whose keyword list matches, else ``general``."""
        for domain, pattern in self._domains.items():
            if pattern.search(text):
                return domain
        return DEFAULT_DOMAIN

    @staticmethod
    def _result(intent: str, domain: str, rule: str, text: str) -> Classification:
        logger.info(f"Classification: {intent}/{domain} ({rule}) - {text[:50]}")
        return Classification(
            intent=intent,
            domain=domain,
            rule_triggered=rule,
            reasoning=f"Matched rule '{rule}'"
        )


CLASSIFIER_PROMPT = f"""
صنّف رسالة المستخدم الأخيرة على منصة Easy-T التعليمية.

النية (intent) واحدة فقط من:
{chr(10).join(INTENTS)}

المجال (domain) واحد فقط من:
{chr(10).join(DOMAINS)}

أعد JSON فقط بالشكل:
{{"intent": "...", "domain": "..."}}
"""


class LLMIntentClassifier(IntentClassifier):
    """One temperature-0 completion with a closed label set. No retry."""

    def __init__(self, llm_client: LLMClient, model: str = CLASSIFIER_MODEL, context_turns: int = 2):
        self.llm_client = llm_client
        self.model = model
        self.context_turns = context_turns

    def classify(self, message: str, history: Optional[Sequence[Turn]] = None) -> Classification:
        if not message or not message.strip():
            return Classification(intent=OTHER, rule_triggered="empty", reasoning="Empty message")

        messages: List[Dict[str, str]] = [{"role": "system", "content": CLASSIFIER_PROMPT}]
        if history and self.context_turns > 0:
            messages.extend(turn.as_message() for turn in list(history)[-self.context_turns:])
        messages.append({"role": "user", "content": message})

        response = self.llm_client.generate(
            model=self.model,
            messages=messages,
            max_tokens=40,
            temperature=0
        )

        classification = self.parse_label(response.text)
        logger.info(
            f"Classification: {classification.intent}/{classification.domain} "
            f"({classification.rule_triggered}) - {message[:50]}"
        )
        return classification

    @staticmethod
    def parse_label(raw: str) -> Classification:
        """
        Parse the model output.

        Accepts JSON ``{"intent": ..., "domain": ...}`` (optionally inside a
        code fence) or a bare label. Anything else falls back to
        ``other``/``general``.
        """
        text = (raw or "").strip()
        text = re.sub(r"^```(?:json)?\s*|\s*```$", "", text).strip()

        intent: Optional[str] = None
        domain: Optional[str] = None

        if text.startswith("{"):
            try:
                payload = json.loads(text)
            except json.JSONDecodeError:
                payload = None
            if isinstance(payload, dict):
                intent = str(payload.get("intent", "")).strip().lower()
                domain = str(payload.get("domain", "")).strip().lower()
        else:
            label = text.strip(" .\"'").lower()
            if label in INTENTS:
                intent = label
            elif label in DOMAINS:
                intent, domain = SEARCH, label

        if intent not in INTENTS:
            return Classification(
                intent=OTHER,
                domain=domain if domain in DOMAINS else DEFAULT_DOMAIN,
                rule_triggered="llm_fallback",
                reasoning=f"Unparsable classifier output: {(raw or '')[:80]!r}"
            )

        return Classification(
            intent=intent,
            domain=domain if domain in DOMAINS else DEFAULT_DOMAIN,
            rule_triggered="llm",
            reasoning="Labelled by classifier model"
        )


def build_classifier(kind: str, llm_client: Optional[LLMClient] = None) -> IntentClassifier:
    """Select the classifier implementation by configuration value."""
    if kind == "rules":
        return RuleBasedIntentClassifier()
    if kind == "llm":
        if llm_client is None:
            raise ValueError("LLM intent classifier requires an LLMClient")
        return LLMIntentClassifier(llm_client)
    raise ValueError(f"Unknown intent classifier: {kind}")
