"""
Request/response log for the Z.ai client.

When enabled, every API exchange is appended to a JSON Lines file so a
failed or surprising reply can be inspected afterwards. Headers (and so the
API key) are never written.
"""

import json
import logging
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .messages import Usage

logger = logging.getLogger(__name__)


class RequestLog:
    """Append-only JSONL log of API requests."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._started: Dict[str, float] = {}

    @property
    def enabled(self) -> bool:
        return self.path is not None

    def start(self, model: str, payload: Dict[str, Any]) -> str:
        """Record an outgoing request and return its id."""
        request_id = uuid.uuid4().hex[:12]
        self._started[request_id] = time.monotonic()
        self._write({
            "event": "request",
            "request_id": request_id,
            "model": model,
            "payload": payload,
        })
        return request_id

    def write(
        self,
        request_id: str,
        response: Any,
        usage: Optional[Usage] = None,
    ) -> None:
        """Record a successful response (or one streamed chunk)."""
        entry: Dict[str, Any] = {
            "event": "response",
            "request_id": request_id,
            "response": response,
            "duration_ms": self._elapsed_ms(request_id),
        }
        if usage is not None:
            entry["usage"] = usage.model_dump()
        self._write(entry)

    def error(self, request_id: str, error: Exception) -> None:
        self._write({
            "event": "error",
            "request_id": request_id,
            "error": str(error),
            "error_type": type(error).__name__,
            "duration_ms": self._elapsed_ms(request_id),
        })

    def _elapsed_ms(self, request_id: str) -> Optional[int]:
        started = self._started.get(request_id)
        if started is None:
            return None
        return int((time.monotonic() - started) * 1000)

    def _write(self, entry: Dict[str, Any]) -> None:
        if self.path is None:
            return

        entry["timestamp"] = datetime.now(timezone.utc).isoformat()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
        except OSError as e:
            # Log writes never fail the request
            logger.warning(f"Could not write request log {self.path}: {e}")
