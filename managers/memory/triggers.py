"""
ABOUTME: Text-pattern triggers for the Zork scaffold - failure detection, outcome classification, lead detection.
ABOUTME: Pure functions over game text; no LLM calls and no memory mutation.
"""

import re
from typing import List, Optional, Tuple

from managers.memory.commands import GameCommand, Verb
from managers.memory.models import LeadType, OutcomeKind


# Parser responses that mean the command did nothing useful
FAILURE_PATTERN = re.compile(
    r"don't know|don't have|don't understand|don't see|can't|cannot|won't|isn't|aren't|"
    r"impossible|already|nothing|no verb|what do you want|which do you mean|"
    r"beg your pardon|not here|that's not",
    re.IGNORECASE,
)

# First lines that look like parser chatter rather than a room name
NOT_A_ROOM_PATTERN = re.compile(
    r"don't know|don't have|can't|cannot|won't|isn't|aren't|impossible|already|nothing|"
    r"no verb|what do you want|which|you see|you are|there is|beg your pardon",
    re.IGNORECASE,
)

TAKE_CONFIRMATION = re.compile(r"taken|you have", re.IGNORECASE)
OPEN_CONFIRMATION = re.compile(r"opens|opened|opening", re.IGNORECASE)
DROP_CONFIRMATION = re.compile(r"dropped", re.IGNORECASE)

CONTAINER_WORDS = r"mailbox|chest|box|door|case|container|trap door|bag|sack|bottle|coffin"
CONTAINER_OBJECT_PATTERN = re.compile(r"mailbox|chest|box|case|bag|sack", re.IGNORECASE)
LIGHT_SOURCE_PATTERN = re.compile(r"lamp|lantern|torch|light|candle", re.IGNORECASE)

# (lead type, pattern, description) in detection order
LEAD_TRIGGERS: Tuple[Tuple[LeadType, "re.Pattern", str], ...] = (
    (LeadType.LOCKED, re.compile(r"locked", re.IGNORECASE), "Locked door or container"),
    (
        LeadType.CONTAINER,
        re.compile(rf"closed (?:{CONTAINER_WORDS})", re.IGNORECASE),
        "Closed container to open",
    ),
    (
        LeadType.PUZZLE,
        re.compile(r"puzzle|mechanism|lever|button|switch", re.IGNORECASE),
        "Puzzle or mechanism to solve",
    ),
    (
        LeadType.HAZARD,
        re.compile(r"grue|dangerous|pitch black", re.IGNORECASE),
        "Danger here - find light or leave",
    ),
    (
        LeadType.NOTABLE,
        re.compile(r"inscription|engraved|carved|written", re.IGNORECASE),
        "Something here can be read",
    ),
)


def is_failure_text(text: str) -> bool:
    """True when the game text reads as a parser failure or refusal."""
    return bool(FAILURE_PATTERN.search(text or ""))


def classify_outcome(
    command: str,
    game_output: str,
    room_before: Optional[str],
    room_after: str,
) -> OutcomeKind:
    """
    Classify what a command achieved.

    Failure wins over everything; otherwise a room change, a confirmed
    TAKE/OPEN, or any information command counts as progress.
    """
    if is_failure_text(game_output):
        return OutcomeKind.FAILURE

    if room_before is not None and room_after != room_before:
        return OutcomeKind.PROGRESS

    parsed = GameCommand.parse(command)
    if parsed.verb is Verb.TAKE and TAKE_CONFIRMATION.search(game_output):
        return OutcomeKind.PROGRESS
    if parsed.verb is Verb.OPEN and OPEN_CONFIRMATION.search(game_output):
        return OutcomeKind.PROGRESS
    if parsed.is_information:
        return OutcomeKind.PROGRESS

    return OutcomeKind.NO_CHANGE


def detect_lead_types(game_output: str) -> List[Tuple[LeadType, str]]:
    """Return (type, description) for every lead signal present in the text."""
    text = (game_output or "").lower()
    return [
        (lead_type, description)
        for lead_type, pattern, description in LEAD_TRIGGERS
        if pattern.search(text)
    ]
