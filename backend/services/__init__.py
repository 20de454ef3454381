"""Services for the Easy-T support assistant."""
from .embedding_model import EmbeddingModel, EmbeddingError
from .course_search import CourseSearch, CourseSearchError
from .retrieval_engine import RetrievalEngine, normalize_query
from .llm_client import LLMClient, LLMResponse, LLMError, LLMClientError
from .intent_classifier import (
    IntentClassifier,
    RuleBasedIntentClassifier,
    LLMIntentClassifier,
    Classification,
    build_classifier,
)
from .reply_guard import ReplyGuard
from .responder import Responder
from .followup import FollowUpResolver, PromotionMatcher
from .session_store import SessionStore, InMemorySessionStore, SupabaseSessionStore, SessionStoreError
from .activity_feed import ActivityFeed
from .interaction_logger import InteractionLogger
from .chat_pipeline import ChatPipeline, ChatResult

__all__ = [
    'EmbeddingModel', 'EmbeddingError', 'CourseSearch', 'CourseSearchError', 'RetrievalEngine',
    'normalize_query', 'LLMClient', 'LLMResponse', 'LLMError', 'LLMClientError', 'IntentClassifier',
    'RuleBasedIntentClassifier', 'LLMIntentClassifier', 'Classification', 'build_classifier',
    'ReplyGuard', 'Responder', 'FollowUpResolver', 'PromotionMatcher', 'SessionStore',
    'InMemorySessionStore', 'SupabaseSessionStore', 'SessionStoreError', 'ActivityFeed',
    'InteractionLogger', 'ChatPipeline', 'ChatResult'
]
