"""Tests for ChatPipeline: shortcuts, retrieval gating, memory and ordering."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import json
import threading
import time
import pytest
from unittest.mock import Mock

from models.course import Course, ScoredCourse
from models.conversation import USER, ASSISTANT
from services.chat_pipeline import ChatPipeline, PROMOTION, FOLLOW_UP, NOT_AVAILABLE
from services.session_store import InMemorySessionStore
from services.intent_classifier import Classification, RuleBasedIntentClassifier
from services.responder import GeneratedReply
from services.interaction_logger import InteractionLogger
from services.llm_client import LLMClientError, LLMError
from services.formatter import WRAPPER_OPEN
from config import REPLY_NOT_AVAILABLE, REPLY_TEMPORARY_ERROR

PYTHON_COURSE = Course(
    title="Python للمبتدئين",
    url="https://easyt.online/p/python",
    description="أساسيات البرمجة بلغة بايثون",
    price="9.99$",
    duration="12 ساعة",
    domain="programming",
)


@pytest.fixture
def store():
    return InMemorySessionStore(ttl_seconds=3600, max_turns=50)


@pytest.fixture
def classifier():
    mock = Mock()
    mock.classify.return_value = Classification(intent="learning_intent", domain="programming", rule_triggered="llm")
    return mock


@pytest.fixture
def retrieval():
    mock = Mock()
    mock.retrieve.return_value = [ScoredCourse(course=PYTHON_COURSE, similarity=0.82)]
    return mock


@pytest.fixture
def responder():
    mock = Mock()
    mock.generate.return_value = GeneratedReply(text="بايثون بداية ممتازة!")
    return mock


@pytest.fixture
def pipeline(store, classifier, retrieval, responder):
    return ChatPipeline(
        session_store=store,
        classifier=classifier,
        retrieval_engine=retrieval,
        responder=responder
    )


class TestChatPipeline:
    """Test suite for the per-request chat flow."""

    def test_new_session_starts_with_empty_history(self, pipeline, responder, store):
        """Test the first message of a session is answered without history."""
        result = pipeline.handle("عايز اتعلم بايثون", "s1")

        message, history, courses = responder.generate.call_args.args
        assert message == "عايز اتعلم بايثون"
        assert history == []
        assert courses[0].course == PYTHON_COURSE
        assert result.session_id == "s1"

        turns = store.get("s1").turns
        assert [t.role for t in turns] == [USER, ASSISTANT]
        assert turns[1].content == "بايثون بداية ممتازة!"
        assert turns[1].course == PYTHON_COURSE

    def test_reply_is_formatted_with_course_button(self, pipeline):
        """Test retrieved courses become link buttons in the HTML reply."""
        result = pipeline.handle("عايز اتعلم بايثون", "s1")

        assert WRAPPER_OPEN in result.reply
        assert 'href="https://easyt.online/p/python"' in result.reply
        assert result.text == "بايثون بداية ممتازة!"

    def test_second_message_sees_previous_turns(self, pipeline, responder):
        """Test history passed to the responder is what the session recorded."""
        pipeline.handle("عايز اتعلم بايثون", "s1")
        pipeline.handle("وهل فيه مستوى متقدم؟", "s1")

        history = responder.generate.call_args.args[1]
        assert [t.content for t in history] == ["عايز اتعلم بايثون", "بايثون بداية ممتازة!"]

    def test_zero_results_answers_not_available(self, pipeline, retrieval, responder):
        """Test an empty retrieval skips the completion and shows no links."""
        retrieval.retrieve.return_value = []

        result = pipeline.handle("عايز اتعلم طبخ", "s1")

        assert result.reply == REPLY_NOT_AVAILABLE
        assert result.shortcut == NOT_AVAILABLE
        assert "href" not in result.reply
        responder.generate.assert_not_called()

    def test_non_retrieval_intent_skips_search(self, pipeline, classifier, retrieval, responder):
        """Test greetings are answered by the model without touching the index."""
        classifier.classify.return_value = Classification(intent="greeting", rule_triggered="llm")

        result = pipeline.handle("مرحبا", "s1")

        retrieval.retrieve.assert_not_called()
        assert responder.generate.call_args.args[2] == []
        assert "course-btn" not in result.reply

    def test_retrieval_uses_classified_domain(self, pipeline, retrieval):
        """Test the classifier's domain label is passed to retrieval."""
        pipeline.handle("عايز اتعلم بايثون", "s1")
        retrieval.retrieve.assert_called_once_with("عايز اتعلم بايثون", "programming")

    def test_price_follow_up_uses_last_course(self, pipeline, classifier, retrieval, responder):
        """Test a short price question is answered from the session's last course."""
        pipeline.handle("عايز اتعلم بايثون", "s1")
        classifier.reset_mock()
        retrieval.reset_mock()
        responder.reset_mock()

        result = pipeline.handle("السعر", "s1")

        assert result.reply == "سعر الدورة هو 9.99$."
        assert result.shortcut == FOLLOW_UP
        classifier.classify.assert_not_called()
        retrieval.retrieve.assert_not_called()
        responder.generate.assert_not_called()

    def test_follow_up_chain_keeps_course(self, pipeline):
        """Test consecutive follow-ups all refer to the same course."""
        pipeline.handle("عايز اتعلم بايثون", "s1")
        pipeline.handle("السعر", "s1")

        result = pipeline.handle("المدة", "s1")

        assert result.reply == "مدة الدورة هي 12 ساعة."

    def test_follow_up_without_prior_course_is_a_new_topic(self, pipeline, classifier):
        """Test a price question in a fresh session goes through classification."""
        pipeline.handle("السعر", "fresh")
        classifier.classify.assert_called_once()

    def test_promoted_course_shortcut(self, pipeline, classifier, retrieval, responder):
        """Test the Photoshop keyword returns the promoted course without model calls."""
        result = pipeline.handle("عايز دورة فوتوشوب", "s1")

        assert result.shortcut == PROMOTION
        assert "https://easyt.online/p/photoshop-ai" in result.reply
        classifier.classify.assert_not_called()
        retrieval.retrieve.assert_not_called()
        responder.generate.assert_not_called()

    def test_empty_model_reply_falls_back(self, pipeline, responder):
        """Test a reply emptied by the guard becomes the temporary-error text."""
        responder.generate.return_value = GeneratedReply(text="", flags=["empty_reply"])

        result = pipeline.handle("عايز اتعلم بايثون", "s1")

        assert result.text == REPLY_TEMPORARY_ERROR
        assert result.flags == ["empty_reply"]

    def test_upstream_error_propagates_without_assistant_turn(self, pipeline, responder, store):
        """Test an LLM failure leaves only the user turn in the session."""
        responder.generate.side_effect = LLMClientError(LLMError(code="API_ERROR", message="down", details={}))

        with pytest.raises(LLMClientError):
            pipeline.handle("عايز اتعلم بايثون", "s1")

        assert [t.role for t in store.get("s1").turns] == [USER]

    def test_sessions_are_isolated(self, pipeline, responder):
        """Test turns in one session never show up in another."""
        pipeline.handle("عايز اتعلم بايثون", "a")
        pipeline.handle("مرحبا", "b")

        assert responder.generate.call_args.args[1] == []

    def test_interactions_are_logged(self, store, classifier, retrieval, responder, tmp_path):
        """Test every handled message writes one chat entry."""
        log_path = tmp_path / "interactions.jsonl"
        interaction_logger = InteractionLogger(str(log_path))
        pipeline = ChatPipeline(
            session_store=store,
            classifier=classifier,
            retrieval_engine=retrieval,
            responder=responder,
            interaction_logger=interaction_logger
        )

        pipeline.handle("عايز اتعلم بايثون", "s1", user_id="u7")
        interaction_logger.close()

        entries = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
        assert len(entries) == 1
        assert entries[0]["event"] == "chat"
        assert entries[0]["intent"] == "learning_intent"
        assert entries[0]["user_id"] == "u7"
        assert entries[0]["courses"] == ["https://easyt.online/p/python"]

    def test_works_with_rule_based_classifier(self, store, retrieval, responder):
        """Test the pipeline runs end to end with the deterministic classifier."""
        pipeline = ChatPipeline(
            session_store=store,
            classifier=RuleBasedIntentClassifier(),
            retrieval_engine=retrieval,
            responder=responder
        )

        result = pipeline.handle("عايز اتعلم بايثون", "s1")

        assert result.classification.intent == "learning_intent"
        retrieval.retrieve.assert_called_once_with("عايز اتعلم بايثون", "programming")


class TestChatPipelineConcurrency:
    """Concurrent requests on one session keep arrival order."""

    def test_same_session_requests_are_serialized(self, store, classifier, retrieval):
        responder = Mock()
        in_flight = []
        overlaps = []

        def slow_generate(message, history, courses):
            in_flight.append(message)
            if len(in_flight) > 1:
                overlaps.append(list(in_flight))
            time.sleep(0.02)
            in_flight.remove(message)
            return GeneratedReply(text=f"رد على {message}")

        responder.generate.side_effect = slow_generate
        pipeline = ChatPipeline(
            session_store=store,
            classifier=classifier,
            retrieval_engine=retrieval,
            responder=responder
        )

        threads = []
        for i in range(5):
            thread = threading.Thread(target=pipeline.handle, args=(f"رسالة {i}", "shared"))
            threads.append(thread)
            thread.start()
            # give each thread time to take its ticket before the next starts
            time.sleep(0.005)
        for thread in threads:
            thread.join(timeout=5)

        assert overlaps == []
        turns = store.get("shared").turns
        assert len(turns) == 10
        # user/assistant pairs never interleave
        for user_turn, assistant_turn in zip(turns[::2], turns[1::2]):
            assert user_turn.role == USER
            assert assistant_turn.role == ASSISTANT
            assert assistant_turn.content == f"رد على {user_turn.content}"
