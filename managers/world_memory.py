"""
WorldMemory for ZorkScaffold.

Owns everything the scaffold remembers about a play session:
- Short-term: rolling window of recent command outcomes, no-change streak and
  stuck counter, forbidden-command countdowns, current plan, rolling summary
- Long-term: room graph keyed by room name, unresolved leads, objects of
  interest, global inventory

Memory is in-process and rebuilt every session. All countdowns are decayed
inside update_after_command, once per turn; nothing decays on a timer.
"""

from typing import Dict, List, Optional

from managers.base_manager import BaseManager
from managers.memory.commands import GameCommand, Verb, normalize_command
from managers.memory.formatting import MemoryFormatter
from managers.memory.models import (
    CommandOutcome,
    GameSnapshot,
    LeadType,
    LoopReport,
    OutcomeKind,
    RoomRecord,
    UnresolvedLead,
)
from managers.memory.triggers import (
    DROP_CONFIRMATION,
    classify_outcome,
    detect_lead_types,
    is_failure_text,
)
from session.game_configuration import GameConfiguration
from session.game_state import GameState
from zork_extractor import ExtractionStrategy, HeuristicZorkExtractor

DEFAULT_PLAN = "Explore the starting area"


class WorldMemory(BaseManager):
    """
    Structured memory for one play session.

    ExplorationPolicy and the orchestrator read through the public views;
    only update_after_command, forbid_command, resolve_lead, set_plan,
    set_game_summary and reset mutate state.
    """

    def __init__(
        self,
        logger=None,
        config: Optional[GameConfiguration] = None,
        game_state: Optional[GameState] = None,
        extractor: Optional[ExtractionStrategy] = None,
    ):
        super().__init__(logger, config or GameConfiguration(), game_state, "world_memory")
        self.extractor = extractor or HeuristicZorkExtractor(logger=logger)
        self.formatter = MemoryFormatter(self)
        self._init_state()

    def _init_state(self) -> None:
        self.turn = 0
        self.last_snapshot: Optional[GameSnapshot] = None
        self.last_game_output = ""

        # Short-term memory
        self.current_plan = DEFAULT_PLAN
        self.recent_outcomes: List[CommandOutcome] = []
        self.stuck_count = 0
        self.no_change_turns = 0
        self.forbidden_commands: Dict[str, int] = {}
        self.game_summary = ""
        self.last_summary_turn = 0

        # Long-term memory
        self.rooms: Dict[str, RoomRecord] = {}
        self.unresolved_leads: List[UnresolvedLead] = []
        self.objects_of_interest: Dict[str, str] = {}
        self.global_inventory: List[str] = []

    @property
    def current_turn(self) -> int:
        return self.turn

    @property
    def has_custom_plan(self) -> bool:
        return self.current_plan != DEFAULT_PLAN

    def reset_episode(self) -> None:
        self.reset()

    def reset(self) -> None:
        """Clear all short-term and long-term state and the turn counter."""
        self._init_state()
        self.log_debug("World memory reset")

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def extract_state(self, game_output: str) -> GameSnapshot:
        """
        Parse game output into a snapshot and make it current.

        Used directly for the very first turn, before any command exists.
        """
        snapshot = self.extractor.extract(game_output, self.last_snapshot)
        self.last_snapshot = snapshot
        self.last_game_output = game_output
        return snapshot

    def update_after_command(
        self,
        command: str,
        game_output: str,
        previous_snapshot: Optional[GameSnapshot] = None,
    ) -> OutcomeKind:
        """
        Record a command and the game text it produced.

        Called exactly once per turn. Classifies the outcome, maintains the
        rolling window, stuck counter and forbidden countdowns, merges the
        new snapshot into the room graph, tracks inventory and detects leads.

        Args:
            command: Command that was sent to the game
            game_output: Game text observed for that command
            previous_snapshot: Snapshot before the command, for room-change detection

        Returns:
            The outcome classification
        """
        command = normalize_command(command)
        parsed = GameCommand.parse(command)

        self.turn += 1
        new_state = self.extract_state(game_output)

        room_before = previous_snapshot.current_room if previous_snapshot else None
        result = classify_outcome(command, game_output, room_before, new_state.current_room)

        self.recent_outcomes.append(CommandOutcome(command=command, result=result, turn=self.turn))
        while len(self.recent_outcomes) > self.config.recent_outcome_window:
            self.recent_outcomes.pop(0)

        if result is OutcomeKind.PROGRESS:
            self.no_change_turns = 0
        else:
            self.no_change_turns += 1
            if self.no_change_turns >= self.config.stuck_threshold:
                self.stuck_count += 1

        self._decay_forbidden()
        if result is OutcomeKind.FAILURE:
            self.forbidden_commands[command] = self.config.failure_forbid_turns
            self.log_debug(
                f"Command '{command}' failed, forbidden for {self.config.failure_forbid_turns} turns",
                event_type="command_forbidden",
                command=command,
                forbid_turns=self.config.failure_forbid_turns,
            )

        self._update_room_info(new_state, parsed, game_output, previous_snapshot)
        self._update_inventory(new_state, parsed, result, game_output)
        self._detect_leads(new_state.current_room, game_output)

        self.log_debug(
            f"Turn {self.turn}: '{command}' -> {result.value} in {new_state.current_room}",
            event_type="memory_update",
            command=command,
            outcome=result.value,
            room=new_state.current_room,
            no_change_turns=self.no_change_turns,
        )
        return result

    def _decay_forbidden(self) -> None:
        for cmd in list(self.forbidden_commands):
            remaining = self.forbidden_commands[cmd] - 1
            if remaining <= 0:
                del self.forbidden_commands[cmd]
            else:
                self.forbidden_commands[cmd] = remaining

    def _room_record(self, snapshot: GameSnapshot) -> RoomRecord:
        room = self.rooms.get(snapshot.current_room)
        if room is None:
            room = RoomRecord(name=snapshot.current_room)
            self.rooms[snapshot.current_room] = room
        return room

    def _update_room_info(
        self,
        state: GameSnapshot,
        command: GameCommand,
        game_output: str,
        previous_snapshot: Optional[GameSnapshot],
    ) -> None:
        room = self._room_record(state)
        room.visit_count += 1

        for exit_code in state.exits:
            if exit_code not in room.exits:
                room.exits.append(exit_code)

        for obj in state.visible_objects:
            if obj not in room.objects:
                room.objects.append(obj)
            self.objects_of_interest[obj] = state.current_room

        first_line = game_output.strip().splitlines()[0].strip() if game_output.strip() else ""
        if first_line == state.current_room:
            description = game_output.strip()[len(first_line):].strip()
            if description:
                room.description = description

        # The tried exit belongs to the room the command was issued from
        if command.is_movement:
            origin = room
            if previous_snapshot is not None:
                origin = self._room_record(previous_snapshot)
                if origin.visit_count == 0:
                    origin.visit_count = 1
                for exit_code in previous_snapshot.exits:
                    if exit_code not in origin.exits:
                        origin.exits.append(exit_code)
            if command.exit_code not in origin.tried_exits:
                origin.tried_exits.append(command.exit_code)

        if command.verb is Verb.EXAMINE and command.obj:
            if command.obj not in room.examined_objects:
                room.examined_objects.append(command.obj)

        if command.verb is Verb.TAKE and command.obj:
            if command.obj not in room.taken_objects:
                room.taken_objects.append(command.obj)

    def _update_inventory(
        self,
        state: GameSnapshot,
        command: GameCommand,
        result: OutcomeKind,
        game_output: str,
    ) -> None:
        if command.verb is Verb.TAKE and command.obj and result is OutcomeKind.PROGRESS:
            if command.obj not in self.global_inventory:
                self.global_inventory.append(command.obj)
        elif (
            command.verb is Verb.DROP
            and command.obj in self.global_inventory
            and not is_failure_text(game_output)
            and DROP_CONFIRMATION.search(game_output)
        ):
            self.global_inventory.remove(command.obj)
        state.inventory = list(self.global_inventory)

    def _detect_leads(self, room: str, game_output: str) -> None:
        for lead_type, description in detect_lead_types(game_output):
            if self.has_lead(room, lead_type):
                continue
            self.unresolved_leads.append(
                UnresolvedLead(room=room, description=description, type=lead_type)
            )
            self.log_info(
                f"New {lead_type.value} lead in {room}: {description}",
                event_type="lead_detected",
                room=room,
                lead_type=lead_type.value,
            )

    # ------------------------------------------------------------------
    # Leads
    # ------------------------------------------------------------------

    def has_lead(self, room: str, lead_type: LeadType) -> bool:
        return any(lead.room == room and lead.type == lead_type for lead in self.unresolved_leads)

    def resolve_lead(self, room: str, lead_type: LeadType) -> None:
        """Mark the (room, type) lead resolved, if present."""
        lead_type = LeadType(lead_type)
        before = len(self.unresolved_leads)
        self.unresolved_leads = [
            lead
            for lead in self.unresolved_leads
            if not (lead.room == room and lead.type == lead_type)
        ]
        if len(self.unresolved_leads) < before:
            self.log_debug(
                f"Resolved {lead_type.value} lead in {room}",
                event_type="lead_resolved",
                room=room,
                lead_type=lead_type.value,
            )

    # ------------------------------------------------------------------
    # Loop detection
    # ------------------------------------------------------------------

    def detect_loops(self) -> LoopReport:
        """
        Check the recent outcome window for repetitive behaviour.

        Conditions are checked in priority order and the first match wins:
        exact consecutive repeat, A/B/A/B alternation, sustained no-change streak.
        """
        cmds = [outcome.command for outcome in self.recent_outcomes[-self.config.loop_window:]]

        for i in range(len(cmds) - 1, 0, -1):
            if cmds[i] == cmds[i - 1]:
                return LoopReport(
                    is_looping=True,
                    pattern="repeat",
                    suggestion=f'Command "{cmds[i]}" repeated - try something different',
                    commands=(cmds[i],),
                )

        if len(cmds) >= 4:
            a, b, c, d = cmds[-4:]
            if a == c and b == d and a != b:
                return LoopReport(
                    is_looping=True,
                    pattern="alternation",
                    suggestion=f"Alternating {a}/{b} - break the pattern",
                    commands=(a, b),
                )

        if self.no_change_turns >= self.config.stuck_threshold:
            return LoopReport(
                is_looping=True,
                pattern="stuck",
                suggestion="Multiple turns with no progress - try LOOK, INVENTORY, or explore new exit",
            )

        return LoopReport.none()

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def _current_room(self) -> Optional[RoomRecord]:
        if self.last_snapshot is None:
            return None
        return self.rooms.get(self.last_snapshot.current_room)

    def get_untried_exits(self) -> List[str]:
        if self.last_snapshot is None:
            return []
        room = self._current_room()
        if room is None:
            return list(self.last_snapshot.exits)
        return room.untried_exits()

    def get_unexamined_objects(self) -> List[str]:
        if self.last_snapshot is None:
            return []
        room = self._current_room()
        if room is None:
            return list(self.last_snapshot.visible_objects)
        return room.unexamined_objects()

    def get_current_room_leads(self) -> List[UnresolvedLead]:
        if self.last_snapshot is None:
            return []
        return [
            lead for lead in self.unresolved_leads if lead.room == self.last_snapshot.current_room
        ]

    def get_nearest_room_with_untried_exits(self) -> Optional[str]:
        """
        First room in discovery order, other than the current one, with an untried exit.

        This is an insertion-order scan, not a graph-distance search.
        """
        current = self.last_snapshot.current_room if self.last_snapshot else None
        for name, room in self.rooms.items():
            if name != current and room.untried_exits():
                return name
        return None

    def where_was(self, obj: str) -> Optional[str]:
        """Room where an object was last seen."""
        return self.objects_of_interest.get(obj.upper())

    # ------------------------------------------------------------------
    # Forbidden commands
    # ------------------------------------------------------------------

    def is_forbidden(self, command: str) -> bool:
        return normalize_command(command) in self.forbidden_commands

    def forbid_command(self, command: str, turns: Optional[int] = None) -> None:
        """Forbid a command for the given number of turns (default: loop_forbid_turns)."""
        turns = turns if turns is not None else self.config.loop_forbid_turns
        command = normalize_command(command)
        self.forbidden_commands[command] = turns
        self.log_debug(
            f"Command '{command}' forbidden for {turns} turns",
            event_type="command_forbidden",
            command=command,
            forbid_turns=turns,
        )

    # ------------------------------------------------------------------
    # Plan and summary
    # ------------------------------------------------------------------

    def set_plan(self, plan: str) -> None:
        self.current_plan = plan

    def set_game_summary(self, summary: str) -> None:
        self.game_summary = summary
        self.last_summary_turn = self.turn

    def needs_summary_refresh(self, interval: Optional[int] = None) -> bool:
        interval = interval if interval is not None else self.config.summary_interval
        return self.turn - self.last_summary_turn >= interval

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def to_prompt_format(self) -> str:
        return self.formatter.format_prompt_block()

    def get_recent_history(self, count: int = 10) -> str:
        return self.formatter.format_recent_history(count)

    def get_exploration_stats(self) -> str:
        return self.formatter.format_exploration_stats()

    def get_state(self) -> Optional[GameSnapshot]:
        return self.last_snapshot

    def get_status(self) -> dict:
        status = super().get_status()
        status.update(
            {
                "rooms_explored": len(self.rooms),
                "unresolved_leads": len(self.unresolved_leads),
                "forbidden_commands": dict(self.forbidden_commands),
                "no_change_turns": self.no_change_turns,
                "stuck_count": self.stuck_count,
                "inventory": list(self.global_inventory),
            }
        )
        return status
