"""Purchase activity feed fed by Teachable webhooks."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from supabase import create_client, Client

from models.activity import ActivityRecord
from config import (
    SUPABASE_URL,
    SUPABASE_SERVICE_KEY,
    ACTIVITY_TABLE,
    ACTIVITY_EVENTS,
    RECENT_ACTIVITY_LIMIT,
)

logger = logging.getLogger(__name__)

DEFAULT_NAME = "مشترك جديد"


class ActivityFeed:
    """Append-only activity rows plus a recent-activity query."""

    def __init__(
        self,
        supabase_url: str = SUPABASE_URL,
        supabase_key: str = SUPABASE_SERVICE_KEY,
        table_name: str = ACTIVITY_TABLE,
        allowed_events: Sequence[str] = ACTIVITY_EVENTS,
        client: Optional[Client] = None
    ):
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set in environment variables")
            client = create_client(supabase_url, supabase_key)

        self.client: Client = client
        self.table_name = table_name
        self.allowed_events = set(allowed_events)
        logger.info(f"ActivityFeed initialized (events={sorted(self.allowed_events)})")

    @staticmethod
    def parse_webhook(payload: Dict[str, Any]) -> Optional[ActivityRecord]:
        """
        Extract an activity record from a Teachable webhook payload.

        Teachable sends ``{"id", "type", "created", "object": {...}}`` where the
        object carries ``user`` and ``course`` (or ``product``) sub-objects.
        Only the buyer's first name is kept.
        """
        event_type = payload.get("type")
        obj = payload.get("object")
        if not event_type or not isinstance(obj, dict):
            return None

        user = obj.get("user") or {}
        product = obj.get("course") or obj.get("product") or {}
        if not isinstance(user, dict) or not isinstance(product, dict):
            return None

        full_name = (user.get("name") or "").strip()
        name = full_name.split()[0] if full_name else DEFAULT_NAME
        product_name = (product.get("name") or obj.get("product_name") or "").strip()
        if not product_name:
            return None

        if payload.get("id") is not None:
            dedup_key = f"{event_type}:{payload['id']}"
        else:
            dedup_key = f"{event_type}:{user.get('email', '')}:{product.get('id', product_name)}"

        return ActivityRecord(
            name=name,
            product=product_name,
            event_type=event_type,
            occurred_at=datetime.now(timezone.utc),
            dedup_key=dedup_key
        )

    def record_webhook(self, payload: Dict[str, Any]) -> str:
        """
        Store one webhook event.

        Returns:
            "ignored" (event not allow-listed or unusable), "duplicate" or "stored"
        """
        event_type = payload.get("type")
        if event_type not in self.allowed_events:
            logger.info(f"Ignoring webhook event: {event_type}")
            return "ignored"

        record = self.parse_webhook(payload)
        if record is None:
            logger.warning(f"Webhook {event_type} without usable user/product data")
            return "ignored"

        existing = (
            self.client.table(self.table_name)
            .select("id")
            .eq("dedup_key", record.dedup_key)
            .limit(1)
            .execute()
        )
        if existing.data:
            logger.info(f"Duplicate webhook skipped: {record.dedup_key}")
            return "duplicate"

        self.client.table(self.table_name).insert({
            "name": record.name,
            "product": record.product,
            "event_type": record.event_type,
            "created_at": record.occurred_at.isoformat(),
            "dedup_key": record.dedup_key
        }).execute()

        logger.info(f"Stored activity: {record.event_type} - {record.product}")
        return "stored"

    def recent(self, limit: int = RECENT_ACTIVITY_LIMIT, minutes: Optional[int] = None) -> List[Dict[str, Any]]:
        """Latest activity rows, newest first, optionally within the last ``minutes``."""
        query = (
            self.client.table(self.table_name)
            .select("name, product, event_type, created_at")
            .order("created_at", desc=True)
        )
        if minutes:
            since = datetime.now(timezone.utc) - timedelta(minutes=minutes)
            query = query.gte("created_at", since.isoformat())

        result = query.limit(limit).execute()
        return result.data or []
