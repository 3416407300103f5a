from __future__ import annotations

import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..utils.logging import get_logger

logger = get_logger("cr.output.bus")


class MessageBus(ABC):
    """Minimal publish interface: one keyed JSON-compatible payload per topic."""

    @abstractmethod
    def send(self, topic: str, key: str, payload: Mapping[str, Any]) -> None:
        """Deliver one message; raise on failure."""

    def is_healthy(self) -> bool:
        return True

    def close(self) -> None:
        """Release resources held by the bus."""


@dataclass(frozen=True, slots=True)
class Message:
    topic: str
    key: str
    payload: Dict[str, Any]
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryMessageBus(MessageBus):
    """Keeps every message in memory; useful for tests and one-shot runs."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._messages: List[Message] = []

    def send(self, topic: str, key: str, payload: Mapping[str, Any]) -> None:
        with self._lock:
            self._messages.append(Message(topic=topic, key=key, payload=dict(payload)))

    @property
    def messages(self) -> List[Message]:
        with self._lock:
            return list(self._messages)

    def on_topic(self, topic: str) -> List[Message]:
        return [m for m in self.messages if m.topic == topic]

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()


class LoggingMessageBus(MessageBus):
    """Dry-run bus: logs what would be published and delivers nothing."""

    def send(self, topic: str, key: str, payload: Mapping[str, Any]) -> None:
        logger.info("[DRY-RUN] Would publish to %s key=%s: %s", topic, key, json.dumps(payload, ensure_ascii=False))


class JsonLinesMessageBus(MessageBus):
    """Appends messages to ``<directory>/<topic>.jsonl``, one JSON object per line."""

    def __init__(self, directory: Path | str = "events") -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def path_for(self, topic: str) -> Path:
        safe = "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in topic)
        return self.directory / f"{safe}.jsonl"

    def send(self, topic: str, key: str, payload: Mapping[str, Any]) -> None:
        line = json.dumps(
            {
                "topic": topic,
                "key": key,
                "payload": dict(payload),
                "sentAt": datetime.now(timezone.utc).isoformat(),
            },
            ensure_ascii=False,
        )
        with self._lock:
            with self.path_for(topic).open("a", encoding="utf-8") as f:
                f.write(line + "\n")

    def is_healthy(self) -> bool:
        return self.directory.is_dir()


def create_bus(kind: str, *, directory: Optional[Path | str] = None) -> MessageBus:
    """Create a bus by name: ``log`` (default), ``memory`` or ``jsonl``."""
    selected = (kind or "log").lower()
    if selected == "log":
        return LoggingMessageBus()
    if selected == "memory":
        return InMemoryMessageBus()
    if selected == "jsonl":
        return JsonLinesMessageBus(directory or "events")
    raise ValueError(f"Unsupported message bus '{kind}'. Use 'log', 'memory' or 'jsonl'.")
