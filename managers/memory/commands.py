"""
ABOUTME: Typed command vocabulary for the Zork scaffold - directions, verbs and parsed commands.
ABOUTME: Free-form verbs keep their noun as an open string payload on a typed verb tag.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Direction(str, Enum):
    """Movement directions, valued by the command the game parser accepts."""

    NORTH = "N"
    SOUTH = "S"
    EAST = "E"
    WEST = "W"
    NORTHEAST = "NE"
    NORTHWEST = "NW"
    SOUTHEAST = "SE"
    SOUTHWEST = "SW"
    UP = "UP"
    DOWN = "DOWN"
    ENTER = "ENTER"
    EXIT = "EXIT"

    @property
    def code(self) -> str:
        """Single-letter code used in the room graph (first letter of the command)."""
        return self.value[0]

    @classmethod
    def from_word(cls, word: str) -> Optional["Direction"]:
        """Resolve a direction word or abbreviation ("north", "n", "U", "in")."""
        return _DIRECTION_WORDS.get(word.strip().upper())


_DIRECTION_WORDS = {
    "N": Direction.NORTH, "NORTH": Direction.NORTH,
    "S": Direction.SOUTH, "SOUTH": Direction.SOUTH,
    "E": Direction.EAST, "EAST": Direction.EAST,
    "W": Direction.WEST, "WEST": Direction.WEST,
    "NE": Direction.NORTHEAST, "NORTHEAST": Direction.NORTHEAST,
    "NW": Direction.NORTHWEST, "NORTHWEST": Direction.NORTHWEST,
    "SE": Direction.SOUTHEAST, "SOUTHEAST": Direction.SOUTHEAST,
    "SW": Direction.SOUTHWEST, "SOUTHWEST": Direction.SOUTHWEST,
    "U": Direction.UP, "UP": Direction.UP,
    "D": Direction.DOWN, "DOWN": Direction.DOWN,
    "IN": Direction.ENTER, "ENTER": Direction.ENTER,
    "OUT": Direction.EXIT, "EXIT": Direction.EXIT,
}

# Commands that move the player, including CLIMB which the game treats as movement
MOVEMENT_COMMANDS = frozenset(_DIRECTION_WORDS) | {"CLIMB"}

# Directions offered as fallback movement candidates, in generation order
FALLBACK_MOVEMENT = ("N", "S", "E", "W", "NE", "NW", "SE", "SW", "UP", "DOWN")

# Directions assumed when a room description names none
DEFAULT_EXITS = ("N", "S", "E", "W")


class Verb(str, Enum):
    """Verbs the scaffold reasons about; anything else parses as OTHER."""

    MOVE_DIRECTION = "GO"
    LOOK = "LOOK"
    INVENTORY = "INVENTORY"
    EXAMINE = "EXAMINE"
    TAKE = "TAKE"
    DROP = "DROP"
    OPEN = "OPEN"
    CLOSE = "CLOSE"
    READ = "READ"
    UNLOCK = "UNLOCK"
    PUSH = "PUSH"
    PULL = "PULL"
    MOVE = "MOVE"
    TURN_ON = "TURN ON"
    OTHER = "OTHER"


_VERB_ALIASES = {
    "L": Verb.LOOK,
    "I": Verb.INVENTORY,
    "INV": Verb.INVENTORY,
    "X": Verb.EXAMINE,
    "GET": Verb.TAKE,
}

_INFO_VERBS = frozenset({Verb.LOOK, Verb.INVENTORY, Verb.EXAMINE})


@dataclass(frozen=True)
class GameCommand:
    """
    A command split into a typed verb and its free-form object.

    Attributes:
        verb: Verb tag
        obj: Noun phrase the verb applies to ("" when absent)
        raw: Normalized (uppercased, whitespace-collapsed) command text
        direction: Set only for movement commands
    """

    verb: Verb
    obj: str
    raw: str
    direction: Optional[Direction] = None

    @classmethod
    def parse(cls, text: str) -> "GameCommand":
        raw = normalize_command(text)
        if not raw:
            return cls(verb=Verb.OTHER, obj="", raw="")

        if raw in MOVEMENT_COMMANDS:
            return cls(
                verb=Verb.MOVE_DIRECTION,
                obj="",
                raw=raw,
                direction=Direction.from_word(raw),
            )

        if raw.startswith("TURN ON "):
            return cls(verb=Verb.TURN_ON, obj=raw[len("TURN ON "):].strip(), raw=raw)

        head, _, rest = raw.partition(" ")
        verb = _VERB_ALIASES.get(head)
        if verb is None:
            try:
                verb = Verb(head)
            except ValueError:
                verb = Verb.OTHER
        if verb in (Verb.MOVE_DIRECTION, Verb.TURN_ON):
            verb = Verb.OTHER
        return cls(verb=verb, obj=rest.strip(), raw=raw)

    @property
    def is_movement(self) -> bool:
        return self.verb is Verb.MOVE_DIRECTION

    @property
    def is_information(self) -> bool:
        """LOOK, INVENTORY and EXAMINE gather information without changing the world."""
        return self.verb in _INFO_VERBS

    @property
    def exit_code(self) -> Optional[str]:
        """Single-letter code recorded as a tried exit (first letter of the command)."""
        if not self.is_movement:
            return None
        return self.raw[0]


def normalize_command(text: str) -> str:
    """Uppercase, trim and collapse internal whitespace."""
    return re.sub(r"\s+", " ", text or "").strip().upper()
