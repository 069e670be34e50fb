"""
Orchestrator-to-presentation events.

The orchestrator appends tagged log entries (game text, sent commands,
thinking/advisory notes, errors) and forwards streaming text from the
decision call. Presentation layers subscribe with listeners; nothing here
renders anything.
"""

import itertools
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List


class LogEntryType(str, Enum):
    GAME_TEXT = "game-text"
    COMMAND_SENT = "command-sent"
    THINKING = "thinking"
    ERROR = "error"


@dataclass(frozen=True)
class GameLogEntry:
    id: str
    type: LogEntryType
    content: str
    turn: int
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())


EntryListener = Callable[[GameLogEntry], None]
ChunkListener = Callable[[str], None]


class EventSink:
    """
    In-memory event log with listener fan-out.

    Streaming text accumulates in `streaming_text` until the stream is ended
    (kept) or discarded (cancelled decision).
    """

    def __init__(self):
        self.entries: List[GameLogEntry] = []
        self.streaming_text = ""
        self._entry_listeners: List[EntryListener] = []
        self._chunk_listeners: List[ChunkListener] = []
        self._ids = itertools.count(1)

    def subscribe(self, on_entry: EntryListener = None, on_chunk: ChunkListener = None) -> None:
        if on_entry is not None:
            self._entry_listeners.append(on_entry)
        if on_chunk is not None:
            self._chunk_listeners.append(on_chunk)

    def emit(self, entry_type: LogEntryType, content: str, turn: int) -> GameLogEntry:
        entry = GameLogEntry(
            id=f"log-{next(self._ids)}",
            type=entry_type,
            content=content,
            turn=turn,
        )
        self.entries.append(entry)
        for listener in self._entry_listeners:
            listener(entry)
        return entry

    def stream_chunk(self, chunk: str) -> None:
        self.streaming_text += chunk
        for listener in self._chunk_listeners:
            listener(chunk)

    def end_stream(self) -> str:
        text, self.streaming_text = self.streaming_text, ""
        return text

    def discard_stream(self) -> None:
        self.streaming_text = ""

    def entries_of(self, entry_type: LogEntryType) -> List[GameLogEntry]:
        return [entry for entry in self.entries if entry.type is entry_type]

    def clear(self) -> None:
        self.entries.clear()
        self.streaming_text = ""
