# ABOUTME: Tests for WorldMemory loop detection
# ABOUTME: Repeat, alternation and stuck patterns, checked in priority order

from managers.memory.models import GameSnapshot

WEST = GameSnapshot(current_room="West of House", exits=["N", "S"], visible_objects=[])
NORTH = GameSnapshot(current_room="North of House", exits=["S"], visible_objects=[])


def play_all(memory, commands, output="It looks ordinary."):
    for command in commands:
        memory.update_after_command(command, output, memory.get_state())


class TestLoopPatterns:
    def test_no_history_is_not_looping(self, memory):
        report = memory.detect_loops()
        assert not report.is_looping
        assert report.pattern is None

    def test_alternating_moves(self, scripted_memory):
        memory = scripted_memory(WEST, NORTH, WEST, NORTH, WEST)
        memory.extract_state("intro")
        for command, text in (("N", "North of House"), ("S", "West of House")) * 2:
            memory.update_after_command(command, text, memory.get_state())

        report = memory.detect_loops()

        assert report.is_looping
        assert report.pattern == "alternation"
        assert report.commands == ("N", "S")

    def test_immediate_repeat(self, scripted_memory):
        memory = scripted_memory(WEST)
        memory.extract_state("intro")
        play_all(memory, ["LOOK", "LOOK"], "A quiet field.")

        report = memory.detect_loops()

        assert report.pattern == "repeat"
        assert report.commands == ("LOOK",)
        assert '"LOOK" repeated' in report.suggestion

    def test_repeat_wins_over_alternation(self, scripted_memory):
        memory = scripted_memory(WEST)
        memory.extract_state("intro")
        play_all(
            memory,
            ["EXAMINE RUG", "EXAMINE RUG", "EXAMINE A", "EXAMINE B", "EXAMINE A", "EXAMINE B"],
            "It looks ordinary.",
        )

        report = memory.detect_loops()

        assert report.pattern == "repeat"
        assert report.commands == ("EXAMINE RUG",)

    def test_alternation_wins_over_stuck(self, scripted_memory):
        memory = scripted_memory(WEST)
        memory.extract_state("intro")
        play_all(memory, ["WAIT", "JUMP", "WAIT", "JUMP"], "Time passes.")

        report = memory.detect_loops()

        assert memory.no_change_turns == 4
        assert report.pattern == "alternation"

    def test_stuck_after_no_change_streak(self, scripted_memory):
        memory = scripted_memory(WEST)
        memory.extract_state("intro")
        play_all(memory, ["WAIT", "JUMP", "SING"], "Time passes.")

        report = memory.detect_loops()

        assert report.pattern == "stuck"
        assert report.commands == ()
        assert "LOOK, INVENTORY" in report.suggestion

    def test_repeat_outside_window_is_ignored(self, scripted_memory):
        memory = scripted_memory(WEST)
        memory.extract_state("intro")
        play_all(
            memory,
            ["LOOK", "LOOK"] + [f"EXAMINE THING{i}" for i in range(6)],
            "A quiet field.",
        )

        assert not memory.detect_loops().is_looping

    def test_distinct_progress_is_not_looping(self, scripted_memory):
        memory = scripted_memory(WEST, NORTH)
        memory.extract_state("intro")
        memory.update_after_command("N", "North of House", memory.get_state())
        memory.update_after_command("EXAMINE HOUSE", "A white house.", memory.get_state())
        assert not memory.detect_loops().is_looping
