"""Per-request chat flow: shortcuts, classification, retrieval, answer, formatting."""
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from models.conversation import Turn, USER, ASSISTANT
from models.course import Course
from services.session_store import SessionStore
from services.intent_classifier import IntentClassifier, Classification
from services.retrieval_engine import RetrievalEngine
from services.responder import Responder
from services.followup import FollowUpResolver, PromotionMatcher
from services.formatter import format_reply
from services.interaction_logger import InteractionLogger
from config import MAX_HISTORY_TURNS, RETRIEVAL_INTENTS, REPLY_NOT_AVAILABLE, REPLY_TEMPORARY_ERROR

logger = logging.getLogger(__name__)

# Shortcut names reported in ChatResult / interaction log
PROMOTION = "promotion"
FOLLOW_UP = "follow_up"
NOT_AVAILABLE = "not_available"


@dataclass
class ChatResult:
    """Outcome of one chat request."""
    reply: str  # what the widget renders
    session_id: str
    text: str = ""  # plain reply stored in the session
    classification: Optional[Classification] = None
    courses: List[Course] = field(default_factory=list)
    shortcut: Optional[str] = None
    flags: List[str] = field(default_factory=list)


class ChatPipeline:
    """
    Runs one chat request against the session it belongs to.

    Each request is either a follow-up (answered from the session's last
    course) or a new topic (classified, optionally retrieved, then answered
    by the model). The whole request runs inside the session's serialized
    section, so concurrent requests on one session keep arrival order.
    """

    def __init__(
        self,
        session_store: SessionStore,
        classifier: IntentClassifier,
        retrieval_engine: RetrievalEngine,
        responder: Responder,
        follow_ups: Optional[FollowUpResolver] = None,
        promotions: Optional[PromotionMatcher] = None,
        interaction_logger: Optional[InteractionLogger] = None,
        max_history_turns: int = MAX_HISTORY_TURNS
    ):
        self.session_store = session_store
        self.classifier = classifier
        self.retrieval_engine = retrieval_engine
        self.responder = responder
        self.follow_ups = follow_ups or FollowUpResolver()
        self.promotions = promotions or PromotionMatcher()
        self.interaction_logger = interaction_logger
        self.max_history_turns = max_history_turns

    def handle(self, message: str, session_id: str, user_id: Optional[str] = None) -> ChatResult:
        """
        Process one message.

        Raises:
            LLMClientError, EmbeddingError, CourseSearchError, SessionStoreError:
                upstream failures; nothing is appended for the assistant
        """
        start_time = time.time()

        with self.session_store.session(session_id):
            session = self.session_store.get_or_create(session_id)
            history = session.recent(self.max_history_turns)
            last_course = session.last_course

            self.session_store.append(session_id, Turn(role=USER, content=message))

            result = self._respond(message, session_id, history, last_course)

            self.session_store.append(
                session_id,
                Turn(
                    role=ASSISTANT,
                    content=result.text,
                    course=result.courses[0] if result.courses else None
                )
            )

        latency_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Chat handled in {latency_ms}ms: session={session_id}, "
            f"shortcut={result.shortcut}, courses={len(result.courses)}"
        )

        if self.interaction_logger is not None:
            classification = result.classification
            self.interaction_logger.log_chat(
                session_id=session_id,
                message=message,
                intent=classification.intent if classification else None,
                domain=classification.domain if classification else None,
                rule_triggered=classification.rule_triggered if classification else None,
                shortcut=result.shortcut,
                courses=[c.url for c in result.courses],
                reply_flags=result.flags,
                latency_ms=latency_ms,
                user_id=user_id
            )

        return result

    def _respond(
        self,
        message: str,
        session_id: str,
        history: List[Turn],
        last_course: Optional[Course]
    ) -> ChatResult:
        promoted = self.promotions.match(message)
        if promoted is not None:
            return ChatResult(
                reply=format_reply(promoted.description, [promoted]),
                session_id=session_id,
                text=promoted.description,
                courses=[promoted],
                shortcut=PROMOTION
            )

        follow_up = self.follow_ups.resolve(message, last_course)
        if follow_up is not None:
            return ChatResult(
                reply=follow_up,
                session_id=session_id,
                text=follow_up,
                # keep the course current for the next follow-up
                courses=[last_course],
                shortcut=FOLLOW_UP
            )

        classification = self.classifier.classify(message, history)

        scored = []
        if classification.intent in RETRIEVAL_INTENTS:
            scored = self.retrieval_engine.retrieve(message, classification.domain)
            if not scored:
                return ChatResult(
                    reply=REPLY_NOT_AVAILABLE,
                    session_id=session_id,
                    text=REPLY_NOT_AVAILABLE,
                    classification=classification,
                    shortcut=NOT_AVAILABLE
                )

        generated = self.responder.generate(message, history, scored)
        text = generated.text or REPLY_TEMPORARY_ERROR
        courses = [s.course for s in scored]

        return ChatResult(
            reply=format_reply(text, courses),
            session_id=session_id,
            text=text,
            classification=classification,
            courses=courses,
            flags=generated.flags
        )
