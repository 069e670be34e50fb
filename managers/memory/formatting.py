"""
ABOUTME: Text rendering helpers for the Zork scaffold memory - prompt block, recent history, exploration stats.
ABOUTME: MemoryFormatter reads WorldMemory views and never mutates memory.
"""

from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from managers.world_memory import WorldMemory


class MemoryFormatter:
    """Formats WorldMemory state for decision, advisory and summary prompts."""

    def __init__(self, memory: "WorldMemory"):
        self.memory = memory

    def format_prompt_block(self) -> str:
        """
        Render the fixed-structure state block handed to the decision call.

        Example output:
            CURRENT STATE:
            Room: West of House
            Exits: N, S, W
            Untried exits: N, S
            Objects here: SMALL MAILBOX
            ...

            MEMORY:
            Recent commands: N(+), OPEN MAILBOX(X)
            Rooms explored: 2
        """
        memory = self.memory
        state = memory.last_snapshot
        if state is None:
            return "No state available"

        untried_exits = memory.get_untried_exits()
        unexamined = memory.get_unexamined_objects()
        leads = memory.get_current_room_leads()
        loop = memory.detect_loops()
        forbidden = list(memory.forbidden_commands)

        recent = ", ".join(
            f"{outcome.command}({outcome.result.marker})"
            for outcome in memory.recent_outcomes[-5:]
        )

        parts: List[str] = [
            "CURRENT STATE:",
            f"Room: {state.current_room}",
            f"Exits: {', '.join(state.exits)}",
        ]

        if untried_exits:
            parts.append(f"Untried exits: {', '.join(untried_exits)}")
        if state.visible_objects:
            parts.append(f"Objects here: {', '.join(state.visible_objects)}")
        if unexamined:
            parts.append(f"Not yet examined: {', '.join(unexamined)}")
        if memory.global_inventory:
            parts.append(f"Inventory: {', '.join(memory.global_inventory)}")
        if state.notable_clues:
            parts.append(f"Clues: {'; '.join(state.notable_clues)}")
        if memory.has_custom_plan:
            parts.append(f"Plan: {memory.current_plan}")

        parts.append("")
        parts.append("MEMORY:")
        if recent:
            parts.append(f"Recent commands: {recent}")
        if forbidden:
            parts.append(f"Forbidden (failed): {', '.join(forbidden)}")
        if loop.is_looping:
            parts.append(f"WARNING: {loop.suggestion}")
        if leads:
            parts.append(f"Unresolved leads: {'; '.join(lead.description for lead in leads)}")
        parts.append(f"Rooms explored: {len(memory.rooms)}")

        return "\n".join(parts)

    def format_recent_history(self, count: int = 10) -> str:
        """
        One line per recent outcome, oldest first.

        Example output:
            Turn 3: N ✓
            Turn 4: OPEN MAILBOX ✗
        """
        history = self.memory.recent_outcomes[-count:]
        return "\n".join(
            f"Turn {outcome.turn}: {outcome.command} {outcome.result.symbol}"
            for outcome in history
        )

    def format_exploration_stats(self) -> str:
        rooms = list(self.memory.rooms.values())
        inventory = self.memory.global_inventory
        leads = self.memory.unresolved_leads

        parts: List[str] = []
        if rooms:
            names = [room.name for room in rooms][-5:]
            parts.append(f"Rooms visited ({len(rooms)}): {', '.join(names)}")
        if inventory:
            parts.append(f"Collected: {', '.join(inventory)}")
        if leads:
            parts.append(
                "Unresolved: " + "; ".join(f"{lead.type.value} in {lead.room}" for lead in leads)
            )
        return "\n".join(parts)
