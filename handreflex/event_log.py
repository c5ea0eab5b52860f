"""
Append-only event log for classification and game events.

Each record is one JSON object per line, keyed by an opaque identifier
(the player or "architect" id). Failures to write are logged and
dropped; the log never retries and never raises into the detection loop.
The file stays open between records and is released by close().
"""

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol, Sequence, TextIO

from .config import EVENT_LOG_FILENAME
from .logger import get_log_directory, get_logger

logger = get_logger("EventLog")


class EventSink(Protocol):
    """Downstream sink for high-confidence classifications."""

    def record_gesture(
        self,
        event_id: str,
        gesture: str,
        confidence: float,
        vector: Sequence[float]
    ) -> None:
        ...


@dataclass
class GameResultPayload:
    """Outcome of one round."""
    user_move: str
    ai_move: str
    result: str


class JsonlEventLog:
    """
    Event sink writing JSON lines to a file.

    Attributes:
        path: Destination file. Parent directories are created on demand.
    """

    def __init__(self, path: Optional[str | Path] = None):
        self.path = Path(path) if path else get_log_directory() / EVENT_LOG_FILENAME
        self._written = 0
        self._dropped = 0
        self._file: Optional[TextIO] = None

    def record_gesture(
        self,
        event_id: str,
        gesture: str,
        confidence: float,
        vector: Sequence[float]
    ) -> None:
        """Append a classification record."""
        self._append({
            "architect_id": event_id,
            "kind": "gesture",
            "payload": {
                "gesture": gesture,
                "confidence": round(float(confidence), 4),
                "vector": [float(v) for v in vector],
            },
        })

    def log_game_result(self, event_id: str, payload: GameResultPayload) -> None:
        """Append a round result record."""
        self._append({
            "architect_id": event_id,
            "kind": "game_result",
            "payload": asdict(payload),
        })
        logger.info(f"Game result logged for {event_id}: {payload.result}")

    def read_all(self) -> list[dict[str, Any]]:
        """Read every record back, skipping unparsable lines."""
        if not self.path.exists():
            return []
        records = []
        with open(self.path, "r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(json.loads(line))
                except json.JSONDecodeError as e:
                    logger.warning(f"Skipping corrupt record at line {line_no}: {e}")
        return records

    def _append(self, record: dict[str, Any]) -> None:
        record["timestamp"] = datetime.now(timezone.utc).isoformat()
        try:
            line = json.dumps(record) + "\n"
            self._stream().write(line)
            self._written += 1
        except (OSError, TypeError, ValueError) as e:
            self._dropped += 1
            logger.error(f"Failed to log event: {e}")
            if isinstance(e, OSError):
                # Reopen on the next record
                self.close()

    def _stream(self) -> TextIO:
        if self._file is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Line buffered: each record reaches the file as soon as it is written
            self._file = open(self.path, "a", encoding="utf-8", buffering=1)
        return self._file

    def close(self) -> None:
        """Close the file. A later record reopens it."""
        if self._file is not None:
            try:
                self._file.close()
            except OSError as e:
                logger.warning(f"Error closing event log: {e}")
            self._file = None

    def __enter__(self) -> "JsonlEventLog":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def written_count(self) -> int:
        return self._written

    @property
    def dropped_count(self) -> int:
        return self._dropped
