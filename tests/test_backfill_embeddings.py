"""Tests for the course embedding backfill script."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import patch
import backfill_embeddings
from backfill_embeddings import course_text


def paged_table(rows):
    """Fake ``courses_missing_embeddings`` over rows still missing an embedding."""
    embedded = set()

    def fetch(limit, after_id=None):
        pending = [r for r in rows if r["id"] not in embedded and (after_id is None or r["id"] > after_id)]
        return pending[:limit]

    def upsert(updates):
        embedded.update(u["id"] for u in updates)

    return fetch, upsert


def test_course_text_is_normalized():
    assert course_text({"title": "أساسيات Python", "description": "للمبتدئين"}) == "اساسيات python للمبتدئين"
    assert course_text({"title": None, "description": None}) == ""


@patch('backfill_embeddings.CourseSearch')
@patch('backfill_embeddings.EmbeddingModel')
def test_backfill_embeds_until_nothing_is_missing(mock_model_class, mock_search_class):
    model = mock_model_class.return_value
    search = mock_search_class.return_value
    model.warmup.return_value = True
    model.embed_batch.return_value = [[0.1], [0.2]]
    search.courses_missing_embeddings.side_effect = [
        [{"id": 1, "title": "Python"}, {"id": 2, "title": "Excel"}],
        [],
    ]

    backfill_embeddings.main()

    model.embed_batch.assert_called_once_with(["python", "excel"])
    search.upsert_embeddings.assert_called_once_with([
        {"id": 1, "embedding": [0.1]},
        {"id": 2, "embedding": [0.2]},
    ])
    assert search.courses_missing_embeddings.call_args_list[1].kwargs["after_id"] == 2


@patch('backfill_embeddings.CourseSearch')
@patch('backfill_embeddings.EmbeddingModel')
def test_backfill_moves_past_a_full_page_of_empty_courses(mock_model_class, mock_search_class):
    """Test courses without text never hide the valid courses behind them."""
    rows = [{"id": i, "title": "", "description": None} for i in range(1, backfill_embeddings.BATCH_SIZE + 3)]
    rows.append({"id": 100, "title": "Python"})
    fetch, upsert = paged_table(rows)

    model = mock_model_class.return_value
    search = mock_search_class.return_value
    model.warmup.return_value = True
    model.embed_batch.return_value = [[0.5]]
    search.courses_missing_embeddings.side_effect = fetch
    search.upsert_embeddings.side_effect = upsert

    backfill_embeddings.main()

    model.embed_batch.assert_called_once_with(["python"])
    search.upsert_embeddings.assert_called_once_with([{"id": 100, "embedding": [0.5]}])


@patch('backfill_embeddings.CourseSearch')
@patch('backfill_embeddings.EmbeddingModel')
def test_backfill_aborts_when_model_unreachable(mock_model_class, mock_search_class):
    mock_model_class.return_value.warmup.return_value = False

    with pytest.raises(SystemExit):
        backfill_embeddings.main()

    mock_search_class.return_value.courses_missing_embeddings.assert_not_called()
