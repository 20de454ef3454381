"""
Course Embedding Backfill Script for the Easy-T assistant.

This script:
1. Warms up the Hugging Face embedding model
2. Finds courses in Supabase that have no embedding yet
3. Embeds "title + description" for each course in batches
4. Writes the vectors back to the courses table

Usage:
    python backfill_embeddings.py
"""
import sys
import logging
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from services.embedding_model import EmbeddingModel
from services.course_search import CourseSearch
from services.retrieval_engine import normalize_query

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

BATCH_SIZE = 10


def course_text(row: dict) -> str:
    """Text embedded for one course row, normalized like chat queries."""
    title = row.get("title") or ""
    description = row.get("description") or ""
    return normalize_query(f"{title}\n{description}")


def main():
    """Main backfill process."""
    try:
        logger.info("=" * 60)
        logger.info("Starting course embedding backfill")
        logger.info("=" * 60)

        embedding_model = EmbeddingModel()
        course_search = CourseSearch()

        logger.info("Warming up embedding model...")
        if not embedding_model.warmup():
            logger.error("Embedding model is not reachable, aborting")
            sys.exit(1)

        total = 0
        skipped = 0
        last_id = None
        while True:
            page = course_search.courses_missing_embeddings(limit=BATCH_SIZE, after_id=last_id)
            if not page:
                break
            # Rows without text keep a NULL embedding; the id cursor moves past them
            last_id = page[-1]["id"]

            rows = [row for row in page if course_text(row)]
            skipped += len(page) - len(rows)
            if not rows:
                continue

            embeddings = embedding_model.embed_batch([course_text(row) for row in rows])
            course_search.upsert_embeddings([
                {"id": row["id"], "embedding": embedding}
                for row, embedding in zip(rows, embeddings)
            ])

            total += len(rows)
            logger.info(f"  ✓ Embedded {total} courses so far")

        logger.info("=" * 60)
        logger.info(f"BACKFILL COMPLETE: {total} courses embedded, {skipped} skipped without text")
        logger.info("=" * 60)

    except KeyboardInterrupt:
        logger.warning("Backfill interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Backfill failed: {str(e)}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
