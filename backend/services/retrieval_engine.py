"""Retrieval engine for orchestrating query embedding and course search."""
import logging
import re
from typing import List, Optional, Sequence
from models.course import ScoredCourse
from services.course_search import CourseSearch
from services.embedding_model import EmbeddingModel
from config import (
    MATCH_COUNT,
    SIMILARITY_THRESHOLDS,
    MIN_SIMILARITY,
    ENABLE_FALLBACK_SCAN,
)

logger = logging.getLogger(__name__)

# Harakat, superscript alef and quranic marks
_DIACRITICS = re.compile(r"[\u0610-\u061A\u064B-\u065F\u0670\u06D6-\u06ED]")
_TATWEEL = "\u0640"
_ALEF_FORMS = re.compile(r"[\u0622\u0623\u0625\u0671]")

GENERAL_DOMAIN = "general"


def normalize_query(text: str) -> str:
    """
    Normalize an Arabic/English chat message before embedding.

    Removes diacritics and tatweel, maps alef variants to a bare alef and
    alef maqsura to ya, lowercases Latin text and collapses whitespace.
    """
    if not text:
        return ""
    text = _DIACRITICS.sub("", text)
    text = text.replace(_TATWEEL, "")
    text = _ALEF_FORMS.sub("ا", text)
    text = text.replace("ى", "ي")
    text = re.sub(r"\s+", " ", text)
    return text.strip().lower()


class RetrievalEngine:
    """Embed the message once and walk a descending similarity-threshold ladder."""

    def __init__(
        self,
        course_search: CourseSearch,
        embedding_model: EmbeddingModel,
        thresholds: Sequence[float] = SIMILARITY_THRESHOLDS,
        min_similarity: float = MIN_SIMILARITY,
        match_count: int = MATCH_COUNT,
        fallback_scan: bool = ENABLE_FALLBACK_SCAN
    ):
        """
        Initialize the retrieval engine.

        Args:
            course_search: CourseSearch instance for the similarity RPC
            embedding_model: EmbeddingModel instance for query embedding
            thresholds: Similarity thresholds tried from strictest to loosest
            min_similarity: Rows below this score are dropped after the search
            match_count: Maximum number of courses per search call
            fallback_scan: Read the table un-ranked when every tier is empty
        """
        self.course_search = course_search
        self.embedding_model = embedding_model
        self.thresholds = sorted(thresholds, reverse=True)
        self.min_similarity = min_similarity
        self.match_count = match_count
        self.fallback_scan = fallback_scan
        logger.info(f"Initialized RetrievalEngine (thresholds={self.thresholds}, min={min_similarity})")

    def retrieve(self, message: str, domain: Optional[str] = None) -> List[ScoredCourse]:
        """
        Retrieve candidate courses for a chat message.

        1. Normalize and embed the message (one embedding call)
        2. Search at each threshold, stopping at the first non-empty tier
        3. Drop rows scoring below ``min_similarity``
        4. Optionally fall back to a plain table scan for the domain

        Returns:
            Scored courses sorted by similarity, empty when nothing matched

        Raises:
            EmbeddingError: If the embedding API fails after retries
            CourseSearchError: If the database call fails
        """
        query = normalize_query(message)
        if not query:
            logger.warning("Empty query string provided, returning empty results")
            return []

        domain_filter = domain if domain and domain != GENERAL_DOMAIN else None

        logger.debug(f"Embedding query: {query[:100]}...")
        query_embedding = self.embedding_model.embed_text(query)

        for threshold in self.thresholds:
            results = self.course_search.search(
                query_embedding,
                domain=domain_filter,
                threshold=threshold,
                match_count=self.match_count
            )
            results = [r for r in results if r.similarity >= self.min_similarity]
            if results:
                results.sort(key=lambda r: r.similarity, reverse=True)
                logger.info(
                    f"Retrieved {len(results)} courses at threshold {threshold} "
                    f"(top score: {results[0].similarity:.3f}, domain: {domain_filter})"
                )
                return results
            logger.debug(f"No courses at threshold {threshold}")

        if self.fallback_scan and domain_filter:
            courses = self.course_search.scan(domain=domain_filter, limit=self.match_count)
            logger.info(f"Vector search empty, fallback scan returned {len(courses)} courses")
            return [ScoredCourse(course=c, similarity=0.0) for c in courses]

        logger.info("No courses found for query")
        return []
