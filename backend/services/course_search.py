"""Course similarity search backed by Supabase pgvector."""
import logging
from typing import Any, Dict, List, Optional
from supabase import create_client, Client
from models.course import Course, ScoredCourse
from config import SUPABASE_URL, SUPABASE_SERVICE_KEY, COURSES_TABLE, COURSE_SEARCH_RPC

logger = logging.getLogger(__name__)

COURSE_COLUMNS = "id, title, url, description, price, duration, domain"


class CourseSearchError(RuntimeError):
    """Raised when the course database cannot be queried."""


class CourseSearch:
    """Query the courses table and its similarity-search remote procedure."""

    def __init__(
        self,
        supabase_url: str = SUPABASE_URL,
        supabase_key: str = SUPABASE_SERVICE_KEY,
        table_name: str = COURSES_TABLE,
        rpc_name: str = COURSE_SEARCH_RPC,
        client: Optional[Client] = None
    ):
        """
        Initialize the course search with a Supabase client.

        Raises:
            ValueError: If Supabase credentials are missing
        """
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY environment variables are required")
            client = create_client(supabase_url, supabase_key)

        self.client: Client = client
        self.table_name = table_name
        self.rpc_name = rpc_name

        logger.info(f"Initialized CourseSearch with table: {table_name}, rpc: {rpc_name}")

    def search(
        self,
        query_embedding: List[float],
        domain: Optional[str] = None,
        threshold: float = 0.0,
        match_count: int = 5
    ) -> List[ScoredCourse]:
        """
        Find courses similar to the query embedding.

        The remote procedure is expected to look like:
            smart_course_search(query_embedding vector, filter_domain text,
                                match_count int, similarity_threshold float)
            RETURNS TABLE (id, title, url, description, price, duration,
                           domain, similarity)
        with ``filter_domain`` NULL meaning every domain.

        Returns:
            Scored courses in the order returned by the database

        Raises:
            ValueError: If query_embedding is empty or match_count is invalid
            CourseSearchError: If the RPC call fails
        """
        if not query_embedding:
            raise ValueError("Query embedding cannot be empty")

        if match_count <= 0:
            raise ValueError("match_count must be positive")

        try:
            response = self.client.rpc(
                self.rpc_name,
                {
                    "query_embedding": query_embedding,
                    "filter_domain": domain,
                    "match_count": match_count,
                    "similarity_threshold": threshold
                }
            ).execute()
        except Exception as e:
            error_msg = f"Failed to search courses via {self.rpc_name}: {str(e)}"
            logger.error(error_msg)
            raise CourseSearchError(error_msg) from e

        scored = []
        for row in response.data or []:
            course = Course.from_row(row)
            if not course.url or not course.title:
                continue
            similarity = max(0.0, min(1.0, float(row.get("similarity") or 0.0)))
            scored.append(ScoredCourse(course=course, similarity=similarity))

        logger.debug(f"{self.rpc_name} returned {len(scored)} courses (threshold={threshold}, domain={domain})")
        return scored

    def scan(self, domain: Optional[str] = None, limit: int = 5) -> List[Course]:
        """
        Plain, un-ranked read of the courses table.

        Raises:
            CourseSearchError: If the table read fails
        """
        try:
            query = self.client.table(self.table_name).select(COURSE_COLUMNS)
            if domain:
                query = query.eq("domain", domain)
            response = query.limit(limit).execute()
        except Exception as e:
            error_msg = f"Failed to scan courses table: {str(e)}"
            logger.error(error_msg)
            raise CourseSearchError(error_msg) from e

        courses = [Course.from_row(row) for row in response.data or []]
        return [c for c in courses if c.url and c.title]

    def courses_missing_embeddings(self, limit: int = 100, after_id: Optional[Any] = None) -> List[Dict[str, Any]]:
        """
        Rows of the courses table that have no embedding yet, ordered by id.

        Args:
            limit: Page size
            after_id: Only return rows with an id greater than this cursor
        """
        try:
            query = (
                self.client.table(self.table_name)
                .select("id, title, description")
                .is_("embedding", "null")
            )
            if after_id is not None:
                query = query.gt("id", after_id)
            response = query.order("id").limit(limit).execute()
        except Exception as e:
            error_msg = f"Failed to list courses without embeddings: {str(e)}"
            logger.error(error_msg)
            raise CourseSearchError(error_msg) from e

        return response.data or []

    def upsert_embeddings(self, rows: List[Dict[str, Any]]) -> None:
        """
        Write embeddings back to the courses table.

        Args:
            rows: Dicts with ``id`` and ``embedding`` keys

        Raises:
            ValueError: If rows is empty
            CourseSearchError: If the database write fails
        """
        if not rows:
            raise ValueError("Rows list cannot be empty")

        try:
            for row in rows:
                (
                    self.client.table(self.table_name)
                    .update({"embedding": row["embedding"]})
                    .eq("id", row["id"])
                    .execute()
                )
        except Exception as e:
            error_msg = f"Failed to store course embeddings: {str(e)}"
            logger.error(error_msg)
            raise CourseSearchError(error_msg) from e

        logger.info(f"Stored embeddings for {len(rows)} courses")
