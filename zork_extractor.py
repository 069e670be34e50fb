"""
ZorkExtractor module for extracting structured information from Zork game text.

The game engine only emits prose, so extraction is a best-effort heuristic:
it is expected to misclassify occasionally and never raises. Strategies are
pluggable through the ExtractionStrategy protocol so WorldMemory does not
depend on any particular parser.
"""

import re
from typing import List, Optional, Protocol, runtime_checkable

from managers.memory.commands import DEFAULT_EXITS
from managers.memory.models import GameSnapshot
from managers.memory.triggers import NOT_A_ROOM_PATTERN

UNKNOWN_ROOM = "Unknown"

MAX_ROOM_NAME_LENGTH = 50

EXIT_PATTERNS = [
    # No word boundary: "cupboard" yields U and "feast" yields E. Tolerated like the cardinal default
    re.compile(r"(?:to the |)(north|south|east|west|northeast|northwest|southeast|southwest|up|down)"),
    re.compile(r"path leads (north|south|east|west)"),
    re.compile(r"door to the (north|south|east|west)"),
    re.compile(r"exit (?:to the )?(north|south|east|west|up|down)"),
]

# Nouns that are almost always interactable when preceded by an article
OBJECT_VOCABULARY = (
    "mailbox|door|house|window|mat|lamp|sword|knife|bag|bottle|key|rope|lantern|egg|nest|"
    "painting|trophy|chalice|bar|torch|candle|coffin|book|scroll|leaflet|sack|jewels|"
    "treasure|coin|diamond|emerald|ruby|sapphire|pearl|figurine|trident|crystal|jade|ivory|"
    "gold|silver|brass|bronze|platinum|scarab|bauble|pot|vase|chest|box|case|pile|stack|"
    "bundle|heap|crown|scepter|ring|bracelet|necklace|pendant|amulet|talisman"
)

OBJECT_PATTERNS = [
    re.compile(r"(?:there is |you see |here is )(?:a |an |the |some )?([a-z]+(?: [a-z]+)?)"),
    re.compile(rf"(?:a |an |the )([a-z]+ (?:{OBJECT_VOCABULARY}))"),
]

# (pattern, clue) pairs; each matching pattern contributes its clue once
CLUE_PATTERNS = [
    (re.compile(r"locked"), "locked door or container"),
    (re.compile(r"closed"), "closed container"),
    (re.compile(r"dark|darkness"), "area is dark - need light"),
    (re.compile(r"dangerous|grue|eaten"), "danger nearby"),
    (re.compile(r"treasure|valuable|precious|jewel"), "treasure nearby"),
    (re.compile(r"inscription|writing|carved|engraved|written"), "something to read"),
]

SCORE_PATTERNS = [re.compile(r"score:\s*(\d+)"), re.compile(r"(\d+)\s*(?:points|score)")]
MOVES_PATTERNS = [re.compile(r"moves?:\s*(\d+)"), re.compile(r"(\d+)\s*moves?")]


@runtime_checkable
class ExtractionStrategy(Protocol):
    """Raw game text in, structured snapshot out."""

    def extract(
        self, raw_text: str, previous_snapshot: Optional[GameSnapshot] = None
    ) -> GameSnapshot:
        ...


class HeuristicZorkExtractor:
    """
    Regex-driven extractor for Infocom-style room descriptions.

    Room identity is name-based: the first line is the room name when it
    looks like a title, otherwise the previous room carries over.
    """

    def __init__(self, logger=None):
        self.logger = logger

    def extract(
        self, raw_text: str, previous_snapshot: Optional[GameSnapshot] = None
    ) -> GameSnapshot:
        """
        Parse game output into a GameSnapshot.

        Args:
            raw_text: Text produced by the game engine for one turn
            previous_snapshot: Last snapshot, used for room and inventory carry-over

        Returns:
            A fresh GameSnapshot
        """
        lines = [line.strip() for line in (raw_text or "").strip().splitlines() if line.strip()]

        current_room = previous_snapshot.current_room if previous_snapshot else UNKNOWN_ROOM
        start_idx = 0
        if lines and self._looks_like_room_name(lines[0]):
            current_room = lines[0]
            start_idx = 1

        body = " ".join(lines[start_idx:]).lower()

        exits = self._extract_exits(body)
        if not exits:
            exits = list(DEFAULT_EXITS)
            if self.logger:
                self.logger.debug(
                    f"No exits detected in text for '{current_room}', assuming cardinal directions",
                    extra={"event_type": "extraction_default_exits", "room": current_room},
                )

        return GameSnapshot(
            current_room=current_room,
            exits=exits,
            visible_objects=self._extract_objects(body),
            inventory=list(previous_snapshot.inventory) if previous_snapshot else [],
            score=self._first_int(SCORE_PATTERNS, body),
            moves=self._first_int(MOVES_PATTERNS, body),
            notable_clues=[clue for pattern, clue in CLUE_PATTERNS if pattern.search(body)],
        )

    @staticmethod
    def _looks_like_room_name(line: str) -> bool:
        return (
            len(line) < MAX_ROOM_NAME_LENGTH
            and not NOT_A_ROOM_PATTERN.search(line)
            and not line.startswith(">")
            and line[0].isupper()
        )

    @staticmethod
    def _extract_exits(text: str) -> List[str]:
        exits: List[str] = []
        for pattern in EXIT_PATTERNS:
            for match in pattern.finditer(text):
                code = match.group(1)[0].upper()
                if code not in exits:
                    exits.append(code)
        return exits

    @staticmethod
    def _extract_objects(text: str) -> List[str]:
        objects: List[str] = []
        for pattern in OBJECT_PATTERNS:
            for match in pattern.finditer(text):
                obj = match.group(1).upper().strip()
                if len(obj) > 2 and obj not in objects:
                    objects.append(obj)
        return objects

    @staticmethod
    def _first_int(patterns, text: str) -> Optional[int]:
        for pattern in patterns:
            match = pattern.search(text)
            if match:
                return int(match.group(1))
        return None
