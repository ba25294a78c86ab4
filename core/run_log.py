"""Structured JSONL log of finished tasks."""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime
from pathlib import Path

from core.state_manager import TaskResult


class RunLogger:
    """Appends one JSON line per task that reached a terminal state."""

    def __init__(self, log_path: Path) -> None:
        self.log_path = log_path
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger = logging.getLogger("tc.run_log")
        self._lock = threading.Lock()

    def log(self, run_id: str, result: TaskResult) -> None:
        """Append one JSONL event."""
        event = {
            "timestamp": datetime.now(UTC).isoformat(),
            "run_id": run_id,
            "task": result.name,
            "status": result.status.value,
            "return_code": result.return_code,
            "duration_s": round(result.duration_s, 3),
            "error": result.error,
        }
        line = json.dumps(event, ensure_ascii=True)
        with self._lock, self.log_path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")
        self.logger.debug(line)
