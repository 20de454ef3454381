"""Unit tests for CourseSearch class."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import patch, MagicMock
from services.course_search import CourseSearch, CourseSearchError


def rpc_rows():
    return [
        {"id": 7, "title": "Python للمبتدئين", "url": "https://easyt.online/p/python",
         "description": "أساسيات", "price": 9.99, "duration": "12 ساعة", "domain": "programming",
         "similarity": 0.83},
        {"id": 8, "title": "بدون رابط", "url": None, "similarity": 0.9},
        {"id": 9, "title": "Excel", "url": "https://easyt.online/p/excel", "similarity": 1.2},
    ]


class TestCourseSearch:
    """Test suite for CourseSearch."""

    @patch('services.course_search.create_client')
    def test_initialization_success(self, mock_create_client):
        """Test successful initialization with credentials."""
        mock_client = MagicMock()
        mock_create_client.return_value = mock_client

        search = CourseSearch(supabase_url="https://test.supabase.co", supabase_key="test_key")

        assert search.client == mock_client
        assert search.table_name == "courses"
        assert search.rpc_name == "smart_course_search"
        mock_create_client.assert_called_once_with("https://test.supabase.co", "test_key")

    def test_initialization_without_credentials(self):
        """Test initialization fails without Supabase credentials."""
        with pytest.raises(ValueError, match="SUPABASE_URL and SUPABASE_SERVICE_KEY"):
            CourseSearch(supabase_url=None, supabase_key="test_key")

        with pytest.raises(ValueError, match="SUPABASE_URL and SUPABASE_SERVICE_KEY"):
            CourseSearch(supabase_url="https://test.supabase.co", supabase_key=None)

    def test_search_calls_rpc(self):
        """Test the RPC gets the embedding, domain, count and threshold."""
        mock_client = MagicMock()
        mock_client.rpc.return_value.execute.return_value = MagicMock(data=rpc_rows())
        search = CourseSearch(client=mock_client)

        results = search.search([0.1, 0.2], domain="programming", threshold=0.65, match_count=5)

        mock_client.rpc.assert_called_once_with("smart_course_search", {
            "query_embedding": [0.1, 0.2],
            "filter_domain": "programming",
            "match_count": 5,
            "similarity_threshold": 0.65
        })
        assert [r.course.title for r in results] == ["Python للمبتدئين", "Excel"]
        assert results[0].course.course_id == "7"
        assert results[0].course.price == "9.99"
        assert results[0].similarity == 0.83

    def test_search_clamps_similarity(self):
        mock_client = MagicMock()
        mock_client.rpc.return_value.execute.return_value = MagicMock(data=rpc_rows())

        results = CourseSearch(client=mock_client).search([0.1])

        assert results[-1].similarity == 1.0

    def test_search_empty_embedding(self):
        with pytest.raises(ValueError, match="Query embedding cannot be empty"):
            CourseSearch(client=MagicMock()).search([])

    def test_search_invalid_match_count(self):
        with pytest.raises(ValueError, match="match_count must be positive"):
            CourseSearch(client=MagicMock()).search([0.1], match_count=0)

    def test_search_no_data(self):
        mock_client = MagicMock()
        mock_client.rpc.return_value.execute.return_value = MagicMock(data=None)

        assert CourseSearch(client=mock_client).search([0.1]) == []

    def test_search_failure_raises_course_search_error(self):
        mock_client = MagicMock()
        mock_client.rpc.return_value.execute.side_effect = Exception("connection refused")

        with pytest.raises(CourseSearchError, match="smart_course_search"):
            CourseSearch(client=mock_client).search([0.1])

    def test_scan_filters_by_domain(self):
        mock_client = MagicMock()
        select = mock_client.table.return_value.select.return_value
        select.eq.return_value.limit.return_value.execute.return_value = MagicMock(data=rpc_rows())

        courses = CourseSearch(client=mock_client).scan(domain="programming", limit=3)

        select.eq.assert_called_once_with("domain", "programming")
        select.eq.return_value.limit.assert_called_once_with(3)
        assert [c.title for c in courses] == ["Python للمبتدئين", "Excel"]

    def test_courses_missing_embeddings(self):
        mock_client = MagicMock()
        select = mock_client.table.return_value.select.return_value
        select.is_.return_value.order.return_value.limit.return_value.execute.return_value = MagicMock(
            data=[{"id": 1, "title": "Python", "description": "x"}]
        )

        rows = CourseSearch(client=mock_client).courses_missing_embeddings(limit=10)

        select.is_.assert_called_once_with("embedding", "null")
        select.is_.return_value.order.assert_called_once_with("id")
        select.is_.return_value.gt.assert_not_called()
        assert rows == [{"id": 1, "title": "Python", "description": "x"}]

    def test_courses_missing_embeddings_after_cursor(self):
        mock_client = MagicMock()
        filtered = mock_client.table.return_value.select.return_value.is_.return_value
        filtered.gt.return_value.order.return_value.limit.return_value.execute.return_value = MagicMock(
            data=[{"id": 11, "title": "Excel", "description": ""}]
        )

        rows = CourseSearch(client=mock_client).courses_missing_embeddings(limit=10, after_id=10)

        filtered.gt.assert_called_once_with("id", 10)
        assert rows == [{"id": 11, "title": "Excel", "description": ""}]

    def test_upsert_embeddings(self):
        mock_client = MagicMock()
        search = CourseSearch(client=mock_client)

        search.upsert_embeddings([{"id": 1, "embedding": [0.1]}, {"id": 2, "embedding": [0.2]}])

        update = mock_client.table.return_value.update
        assert update.call_count == 2
        update.assert_any_call({"embedding": [0.2]})
        update.return_value.eq.assert_any_call("id", 1)

    def test_upsert_embeddings_empty(self):
        with pytest.raises(ValueError, match="Rows list cannot be empty"):
            CourseSearch(client=MagicMock()).upsert_embeddings([])
