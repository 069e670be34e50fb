# ABOUTME: Tests for the heuristic game-text extractor
# ABOUTME: Room-name detection, exits, objects, clues and score parsing

from managers.memory.models import GameSnapshot
from zork_extractor import UNKNOWN_ROOM, ExtractionStrategy, HeuristicZorkExtractor


class TestRoomDetection:
    """First-line room-name heuristic."""

    def test_title_line_becomes_room(self, west_of_house):
        snapshot = HeuristicZorkExtractor().extract(west_of_house)
        assert snapshot.current_room == "West of House"

    def test_parser_failure_carries_previous_room(self):
        previous = GameSnapshot(current_room="Kitchen", exits=["E"], visible_objects=[])
        snapshot = HeuristicZorkExtractor().extract(
            'I don\'t know the word "xyzzy".', previous
        )
        assert snapshot.current_room == "Kitchen"

    def test_unknown_without_previous_snapshot(self):
        snapshot = HeuristicZorkExtractor().extract("You are in a dark place.")
        assert snapshot.current_room == UNKNOWN_ROOM

    def test_long_first_line_is_not_a_room(self):
        text = "Opening the small mailbox reveals a leaflet inside of it."
        previous = GameSnapshot(current_room="West of House", exits=[], visible_objects=[])
        snapshot = HeuristicZorkExtractor().extract(text, previous)
        assert snapshot.current_room == "West of House"

    def test_prompt_marker_is_not_a_room(self):
        snapshot = HeuristicZorkExtractor().extract(">North")
        assert snapshot.current_room == UNKNOWN_ROOM

    def test_lowercase_first_line_is_not_a_room(self):
        snapshot = HeuristicZorkExtractor().extract("forest path")
        assert snapshot.current_room == UNKNOWN_ROOM


class TestExitsAndObjects:
    """Exit codes, visible objects and clues from the description body."""

    def test_exits_from_description(self):
        text = "Forest Path\nA path leads north. To the east is a clearing."
        snapshot = HeuristicZorkExtractor().extract(text)
        assert snapshot.exits == ["N", "E"]

    def test_direction_inside_a_word_counts_as_an_exit(self):
        # Matching is substring based, so these are accepted false positives
        snapshot = HeuristicZorkExtractor().extract("Pantry\nA dusty cupboard stands by the feast table.")
        assert snapshot.exits == ["U", "E"]

    def test_default_cardinal_exits_when_none_found(self):
        snapshot = HeuristicZorkExtractor().extract("Closet\nIt is small.")
        assert snapshot.exits == ["N", "S", "E", "W"]

    def test_objects_are_uppercased_and_unique(self, west_of_house):
        snapshot = HeuristicZorkExtractor().extract(west_of_house)
        assert snapshot.visible_objects == ["SMALL MAILBOX", "WHITE HOUSE"]

    def test_clue_for_danger(self):
        text = "It is pitch black. You are likely to be eaten by a grue."
        snapshot = HeuristicZorkExtractor().extract(text)
        assert "danger nearby" in snapshot.notable_clues

    def test_score_and_moves(self):
        snapshot = HeuristicZorkExtractor().extract("Living Room\nScore: 35 Moves: 12")
        assert snapshot.score == 35
        assert snapshot.moves == 12

    def test_inventory_carries_over(self):
        previous = GameSnapshot(
            current_room="Kitchen", exits=[], visible_objects=[], inventory=["LAMP"]
        )
        snapshot = HeuristicZorkExtractor().extract("Time passes.", previous)
        assert snapshot.inventory == ["LAMP"]
        assert snapshot.inventory is not previous.inventory

    def test_empty_text_never_raises(self):
        snapshot = HeuristicZorkExtractor().extract("")
        assert snapshot.current_room == UNKNOWN_ROOM
        assert snapshot.visible_objects == []


def test_heuristic_extractor_satisfies_strategy_protocol():
    assert isinstance(HeuristicZorkExtractor(), ExtractionStrategy)
