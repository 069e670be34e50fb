"""
ExplorationPolicy for ZorkScaffold.

Turns WorldMemory's view of the current room into a ranked list of candidate
commands, and validates (and repairs) commands proposed by the model.

Preference order, expressed as additive scores:
1. Unresolved leads in the current room (+3)
2. New objects to examine or take (+2)
3. Untried exits (+2)
4. Information gathering: LOOK, INVENTORY (+1)
5. Fallback movement (0)

Ties keep generation order, so leads beat objects beat exits at equal score.
"""

import re
from typing import List, Optional

from managers.base_manager import BaseManager
from managers.memory.commands import FALLBACK_MOVEMENT, normalize_command
from managers.memory.models import (
    ActionCandidate,
    GameSnapshot,
    LeadType,
    UnresolvedLead,
    ValidationResult,
)
from managers.memory.triggers import CONTAINER_OBJECT_PATTERN, LIGHT_SOURCE_PATTERN
from managers.world_memory import WorldMemory

LEAD_SCORE = 3
OBJECT_SCORE = 2
EXIT_SCORE = 2
INFO_SCORE = 1
FALLBACK_SCORE = 0
FORBIDDEN_PENALTY = -5
LOOP_INFO_BOOST = 2
LOOP_EXIT_BOOST = 1

INFO_COMMANDS = ("LOOK", "INVENTORY")

# Plausible-looking commands the game parser rejects
BAD_COMMAND_PATTERN = re.compile(
    r"^(LOOK\s+(UP|DOWN|NORTH|SOUTH|EAST|WEST|N|S|E|W)\b"
    r"|GO\s"
    r"|WEST OF|NORTH OF|SOUTH OF|EAST OF"
    r"|MOVE\s+(NORTH|SOUTH|EAST|WEST|N|S|E|W)\b)",
    re.IGNORECASE,
)

FALLBACK_COMMAND = "LOOK"


class ExplorationPolicy(BaseManager):
    """
    Deterministic candidate generator over WorldMemory.

    Holds a read-only reference to memory; it never mutates it.
    """

    def __init__(self, memory: WorldMemory, logger=None, game_state=None):
        super().__init__(logger, memory.config, game_state, "exploration_policy")
        self.memory = memory

    def reset_episode(self) -> None:
        """Policy is stateless; memory reset is owned by WorldMemory."""
        pass

    # ------------------------------------------------------------------
    # Candidate generation
    # ------------------------------------------------------------------

    def generate_candidates(self) -> List[ActionCandidate]:
        """Generate scored candidate actions for the current state, best first."""
        state = self.memory.get_state()
        if state is None:
            return []

        memory = self.memory
        leads = memory.get_current_room_leads()
        untried_exits = memory.get_untried_exits()
        unexamined = memory.get_unexamined_objects()
        loop = memory.detect_loops()

        candidates: List[ActionCandidate] = []
        seen = set()

        def offer(command: str, score: int, reason: str) -> None:
            if command in seen or memory.is_forbidden(command):
                return
            seen.add(command)
            candidates.append(ActionCandidate(command=command, score=score, reason=reason))

        # 1. Unresolved leads in current room
        for lead in leads:
            for action in self._actions_for_lead(lead, state):
                offer(action, LEAD_SCORE, f"Unresolved lead: {lead.description}")

        # 2. New objects to examine/take
        for obj in unexamined:
            offer(f"EXAMINE {obj}", OBJECT_SCORE, f"Unexamined object: {obj}")
            offer(f"TAKE {obj}", OBJECT_SCORE, f"Object to collect: {obj}")

        # 3. Untried exits
        for exit_code in untried_exits:
            offer(exit_code, EXIT_SCORE, f"Untried exit: {exit_code}")

        # 4. Info gathering
        offer("LOOK", INFO_SCORE, "Gather information about surroundings")
        offer("INVENTORY", INFO_SCORE, "Check what you are carrying")

        # 5. Fallback movement
        for direction in FALLBACK_MOVEMENT:
            if direction not in untried_exits:
                offer(direction, FALLBACK_SCORE, f"Previously tried exit: {direction}")

        for candidate in candidates:
            # Unreachable while offer() filters forbidden commands
            if memory.is_forbidden(candidate.command):
                candidate.score += FORBIDDEN_PENALTY

        if loop.is_looping:
            for candidate in candidates:
                if candidate.command in INFO_COMMANDS:
                    candidate.score += LOOP_INFO_BOOST
                if candidate.command in untried_exits:
                    candidate.score += LOOP_EXIT_BOOST

        # sorted() is stable: equal scores keep generation order
        return sorted(candidates, key=lambda c: c.score, reverse=True)

    def get_best_action(self) -> Optional[ActionCandidate]:
        candidates = self.generate_candidates()
        return candidates[0] if candidates else None

    def get_top_candidates(self, n: int = 5) -> List[ActionCandidate]:
        return self.generate_candidates()[:n]

    @staticmethod
    def _actions_for_lead(lead: UnresolvedLead, state: GameSnapshot) -> List[str]:
        actions: List[str] = []

        if lead.type is LeadType.LOCKED:
            for item in state.inventory:
                if "key" in item.lower():
                    actions.append(f"UNLOCK DOOR WITH {item}")
            actions.append("OPEN DOOR")

        elif lead.type is LeadType.CONTAINER:
            for obj in state.visible_objects:
                if CONTAINER_OBJECT_PATTERN.search(obj):
                    actions.append(f"OPEN {obj}")
                    actions.append(f"EXAMINE {obj}")

        elif lead.type is LeadType.PUZZLE:
            for obj in state.visible_objects:
                actions.extend([f"EXAMINE {obj}", f"PUSH {obj}", f"PULL {obj}", f"MOVE {obj}"])

        elif lead.type is LeadType.HAZARD:
            actions.append("LOOK")
            for item in state.inventory:
                if LIGHT_SOURCE_PATTERN.search(item):
                    actions.append(f"TURN ON {item}")

        elif lead.type is LeadType.NOTABLE:
            for obj in state.visible_objects:
                actions.extend([f"EXAMINE {obj}", f"READ {obj}"])

        return actions

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_command(self, command: str) -> ValidationResult:
        """
        Check a proposed command against policy rules.

        Forbidden commands, known-bad parser patterns, and run-on text are
        rejected with the best candidate as the substitute.
        """
        upper_cmd = normalize_command(command)

        if self.memory.is_forbidden(upper_cmd):
            return self._reject(upper_cmd, f'"{upper_cmd}" is forbidden')

        if BAD_COMMAND_PATTERN.search(upper_cmd):
            return self._reject(upper_cmd, f'"{upper_cmd}" is an invalid pattern')

        if (
            len(upper_cmd) > self.config.max_command_length
            or len(upper_cmd.split()) > self.config.max_command_words
        ):
            return self._reject(upper_cmd, "Command too long or complex")

        return ValidationResult(valid=True, adjusted=upper_cmd, reason="Valid command")

    def _reject(self, upper_cmd: str, why: str) -> ValidationResult:
        best = self.get_best_action()
        substitute = best.command if best else FALLBACK_COMMAND
        reason = f"{why}, using {substitute} instead"
        self.log_debug(
            reason,
            event_type="command_adjusted",
            proposed=upper_cmd,
            adjusted=substitute,
        )
        return ValidationResult(valid=False, adjusted=substitute, reason=reason)

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def get_exploration_summary(self) -> str:
        if self.memory.get_state() is None:
            return "No exploration data"

        leads = self.memory.get_current_room_leads()
        unexamined = self.memory.get_unexamined_objects()
        untried_exits = self.memory.get_untried_exits()

        parts: List[str] = []
        if leads:
            parts.append(f"{len(leads)} unresolved lead(s) here")
        if unexamined:
            parts.append(f"{len(unexamined)} object(s) to examine")
        if untried_exits:
            parts.append(f"{len(untried_exits)} untried exit(s): {', '.join(untried_exits)}")
        if not parts:
            summary = "Room fully explored - backtrack to find new areas"
            target = self.memory.get_nearest_room_with_untried_exits()
            if target:
                summary += f" (try {target})"
            parts.append(summary)

        return "; ".join(parts)
