"""
Usage recording.

The router reports each successful call to a usage recorder: any
callable taking the provider name and the caller id. This module
provides a recorder that appends one JSON line per call to a file.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


class JsonlUsageRecorder:
    """
    Append `{"timestamp", "provider", "caller_id"}` records to a JSONL file.

    Calls without a caller id are skipped. Write errors propagate; the
    router catches and logs them.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()

    def __call__(self, provider: str, caller_id: Optional[str]) -> None:
        if not caller_id:
            logger.debug("Skipping usage record: no caller id")
            return

        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "provider": provider,
            "caller_id": caller_id,
        }
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record) + "\n")
        logger.info("API usage logged: provider=%s caller_id=%s", provider, caller_id)
