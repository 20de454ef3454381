"""JSON Lines log of chat decisions and course-link clicks."""
import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from config import INTERACTION_LOG_PATH

logger = logging.getLogger(__name__)


class InteractionLogger:
    """Appends one JSON object per chat turn or click to a log file."""

    def __init__(self, log_file_path: str = INTERACTION_LOG_PATH):
        self.log_file_path = Path(log_file_path)
        self.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._file = open(self.log_file_path, "a", encoding="utf-8")
        logger.info(f"InteractionLogger writing to {self.log_file_path}")

    def log_chat(
        self,
        session_id: str,
        message: str,
        intent: Optional[str],
        domain: Optional[str],
        rule_triggered: Optional[str],
        shortcut: Optional[str],
        courses: Optional[List[str]] = None,
        reply_flags: Optional[List[str]] = None,
        latency_ms: int = 0,
        user_id: Optional[str] = None
    ) -> None:
        self._write({
            "event": "chat",
            "session_id": session_id,
            "user_id": user_id,
            "message": message,
            "intent": intent,
            "domain": domain,
            "rule_triggered": rule_triggered,
            "shortcut": shortcut,
            "courses": courses or [],
            "reply_flags": reply_flags or [],
            "latency_ms": latency_ms,
        })

    def log_click(self, url: str, title: Optional[str] = None, session_id: Optional[str] = None) -> None:
        self._write({
            "event": "click",
            "url": url,
            "title": title,
            "session_id": session_id,
        })

    def _write(self, entry: Dict[str, Any]) -> None:
        entry = {"timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"), **entry}
        line = json.dumps(entry, ensure_ascii=False)
        with self._lock:
            self._file.write(line + "\n")
            self._file.flush()

    def close(self) -> None:
        with self._lock:
            if not self._file.closed:
                self._file.close()
