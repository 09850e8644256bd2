"""
Tests for match lifecycle, turn order and rematch negotiation.

Run with: python3 tests/test_game_engine/test_match.py
"""

import sys
import threading
import unittest
from datetime import timedelta
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from server.game_engine import CellPosition, Match
from shared.constants import BOT_NAME
from shared.enums import ActionResult, Cell, GameMode, MatchStatus, RematchState


DRAW_GRID = [
    [1, 2, 1, 2, 1, 2, 1],
    [1, 2, 1, 2, 1, 2, 1],
    [2, 1, 2, 1, 2, 1, 2],
    [2, 1, 2, 1, 2, 1, 2],
    [1, 2, 1, 2, 1, 2, 1],
    [1, 2, 1, 2, 1, 2, 1],
]


def started_match() -> Match:
    match = Match.create_pvp("ABC234", "conn-1", "alice")
    match.join("conn-2", "bob")
    return match


def play(match: Match, *columns: int):
    """Alternate moves starting with the current player."""
    outcome = None
    for column in columns:
        outcome = match.submit_move(match.current_player, column)
        assert outcome.ok, outcome.message
    return outcome


class TestJoin(unittest.TestCase):

    def test_new_room_waits_for_opponent(self):
        match = Match.create_pvp("ABC234", "conn-1", "alice")

        self.assertEqual(match.status, MatchStatus.WAITING_FOR_OPPONENT)
        self.assertEqual(match.mode, GameMode.PVP)
        self.assertEqual(match.human_player_numbers(), [1])
        self.assertEqual(match.slots[1].connection_id, "conn-1")

    def test_join_starts_the_game(self):
        match = Match.create_pvp("ABC234", "conn-1", "alice")

        outcome = match.join("conn-2", "bob")

        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.player_number, 2)
        self.assertEqual(match.status, MatchStatus.PLAYING)
        self.assertEqual(match.current_player, 1)
        self.assertEqual(match.player_name(2), "bob")
        self.assertIsNotNone(match.started_at)

    def test_third_player_gets_room_full(self):
        match = started_match()

        outcome = match.join("conn-3")

        self.assertEqual(outcome.result, ActionResult.ROOM_FULL)
        self.assertEqual(match.slots[2].connection_id, "conn-2")

    def test_creator_cannot_join_own_room(self):
        match = Match.create_pvp("ABC234", "conn-1")
        self.assertEqual(match.join("conn-1").result, ActionResult.ROOM_FULL)

    def test_bot_match_is_never_joinable(self):
        match = Match.create_bot("BOT-1", "conn-1")
        self.assertEqual(match.join("conn-2").result, ActionResult.ROOM_FULL)

    def test_abandoned_room_cannot_be_joined(self):
        match = Match.create_pvp("ABC234", "conn-1")
        match.leave(1)
        self.assertEqual(match.join("conn-2").result, ActionResult.GAME_NOT_IN_PROGRESS)


class TestMoves(unittest.TestCase):

    def test_turns_alternate(self):
        match = started_match()

        first = match.submit_move(1, 3)
        second = match.submit_move(2, 3)

        self.assertEqual((first.row, first.column, first.player_number, first.next_player), (5, 3, 1, 2))
        self.assertEqual((second.row, second.next_player), (4, 1))
        self.assertEqual(match.move_count, 2)

    def test_move_out_of_turn_is_rejected(self):
        match = started_match()

        outcome = match.submit_move(2, 0)

        self.assertEqual(outcome.result, ActionResult.NOT_YOUR_TURN)
        self.assertEqual(match.board.piece_count(), 0)
        self.assertEqual(match.current_player, 1)

    def test_move_before_opponent_joins(self):
        match = Match.create_pvp("ABC234", "conn-1")
        self.assertEqual(match.submit_move(1, 0).result, ActionResult.GAME_NOT_IN_PROGRESS)

    def test_off_board_column_is_malformed(self):
        match = started_match()
        self.assertEqual(match.submit_move(1, 7).result, ActionResult.MALFORMED_MESSAGE)
        self.assertEqual(match.submit_move(1, -1).result, ActionResult.MALFORMED_MESSAGE)

    def test_full_column_changes_nothing(self):
        match = started_match()
        play(match, 3, 3, 3, 3, 3, 3)
        before = match.snapshot()

        outcome = match.submit_move(1, 3)

        self.assertEqual(outcome.result, ActionResult.COLUMN_FULL)
        self.assertEqual(match.snapshot(), before)

    def test_vertical_win(self):
        match = started_match()

        outcome = play(match, 3, 4, 3, 4, 3, 4, 3)

        self.assertTrue(outcome.game_over)
        self.assertFalse(outcome.is_draw)
        self.assertEqual(outcome.winner, 1)
        self.assertEqual(
            outcome.winning_cells,
            [CellPosition(5, 3), CellPosition(4, 3), CellPosition(3, 3), CellPosition(2, 3)],
        )
        self.assertEqual(match.status, MatchStatus.WON)
        self.assertEqual(match.winner, 1)
        # No turn advance after the game ends
        self.assertEqual(match.current_player, 1)
        self.assertEqual(outcome.next_player, 1)

    def test_no_moves_after_game_over(self):
        match = started_match()
        play(match, 3, 4, 3, 4, 3, 4, 3)

        outcome = match.submit_move(1, 0)

        self.assertEqual(outcome.result, ActionResult.GAME_NOT_IN_PROGRESS)

    def test_last_cell_without_line_is_draw(self):
        match = started_match()
        match.board.grid = [list(row) for row in DRAW_GRID]
        match.board.grid[0][6] = Cell.EMPTY
        match.current_player = 1

        outcome = match.submit_move(1, 6)

        self.assertTrue(outcome.ok)
        self.assertTrue(outcome.is_draw)
        self.assertEqual(outcome.winner, 0)
        self.assertEqual(outcome.winning_cells, [])
        self.assertEqual(match.status, MatchStatus.DRAW)
        self.assertIsNone(match.winner)

    def test_win_on_last_cell_is_a_win(self):
        match = started_match()
        grid = [list(row) for row in DRAW_GRID]
        # Column 6 bottom-up: 1 1 2 2 1 1; make the top four player 1
        grid[3][6] = 1
        grid[2][6] = 1
        grid[0][6] = Cell.EMPTY
        grid[4][6] = 2
        grid[5][6] = 2
        match.board.grid = grid
        match.current_player = 1

        outcome = match.submit_move(1, 6)

        self.assertTrue(outcome.game_over)
        self.assertFalse(outcome.is_draw)
        self.assertEqual(match.status, MatchStatus.WON)


class TestBotMatch(unittest.TestCase):

    def test_bot_match_starts_playing(self):
        match = Match.create_bot("BOT-1", "conn-1", "alice")

        self.assertTrue(match.is_bot_game)
        self.assertEqual(match.status, MatchStatus.PLAYING)
        self.assertEqual(match.human_player_numbers(), [1])
        self.assertEqual(match.player_name(2), BOT_NAME)

    def test_human_move_schedules_bot(self):
        match = Match.create_bot("BOT-1", "conn-1")

        outcome = match.submit_move(1, 0)

        self.assertTrue(outcome.bot_to_move)
        self.assertEqual(outcome.generation, 0)

    def test_bot_plays_its_turn(self):
        match = Match.create_bot("BOT-1", "conn-1")
        match.submit_move(1, 0)

        outcome = match.play_bot_move(0)

        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.player_number, 2)
        self.assertEqual(outcome.column, 3)
        self.assertFalse(outcome.bot_to_move)
        self.assertEqual(match.current_player, 1)

    def test_bot_move_is_noop_out_of_turn(self):
        match = Match.create_bot("BOT-1", "conn-1")
        self.assertIsNone(match.play_bot_move(0))
        self.assertEqual(match.board.piece_count(), 0)

    def test_bot_move_is_noop_after_abandon(self):
        match = Match.create_bot("BOT-1", "conn-1")
        match.submit_move(1, 0)
        match.leave(1)

        self.assertIsNone(match.play_bot_move(0))
        self.assertEqual(match.board.piece_count(), 1)

    def test_stale_generation_is_ignored(self):
        match = Match.create_bot("BOT-1", "conn-1")
        match.submit_move(1, 0)

        self.assertIsNone(match.play_bot_move(5))
        self.assertEqual(match.board.piece_count(), 1)

    def test_pvp_match_never_plays_bot(self):
        match = started_match()
        match.submit_move(1, 0)
        self.assertIsNone(match.play_bot_move(0))


class TestRematch(unittest.TestCase):

    def finished_match(self) -> Match:
        match = started_match()
        play(match, 3, 4, 3, 4, 3, 4, 3)
        return match

    def test_rematch_while_playing_is_rejected(self):
        match = started_match()
        outcome = match.request_rematch(1)
        self.assertEqual(outcome.result, ActionResult.GAME_STILL_IN_PROGRESS)

    def test_first_request_waits(self):
        match = self.finished_match()

        outcome = match.request_rematch(1)

        self.assertTrue(outcome.ok)
        self.assertFalse(outcome.accepted)
        self.assertEqual(outcome.waiting_for, 2)
        self.assertEqual(match.rematch_state, RematchState.PLAYER_ONE_REQUESTED)
        self.assertEqual(match.status, MatchStatus.WON)

    def test_repeated_request_is_idempotent(self):
        match = self.finished_match()
        match.request_rematch(1)

        outcome = match.request_rematch(1)

        self.assertFalse(outcome.accepted)
        self.assertEqual(match.rematch_state, RematchState.PLAYER_ONE_REQUESTED)

    def test_both_requests_reset_the_board(self):
        match = self.finished_match()
        match.request_rematch(2)

        outcome = match.request_rematch(1)

        self.assertTrue(outcome.accepted)
        self.assertEqual(outcome.generation, 1)
        self.assertEqual(match.status, MatchStatus.PLAYING)
        self.assertEqual(match.board.piece_count(), 0)
        self.assertEqual(match.current_player, 1)
        self.assertIsNone(match.winner)
        self.assertEqual(match.winning_cells, [])
        self.assertEqual(match.rematch_state, RematchState.NONE)
        self.assertEqual(match.match_id, "ABC234")
        self.assertEqual(match.slots[2].connection_id, "conn-2")

    def test_bot_rematch_needs_one_request(self):
        match = Match.create_bot("BOT-1", "conn-1")
        match.status = MatchStatus.DRAW

        outcome = match.request_rematch(1)

        self.assertTrue(outcome.accepted)
        self.assertEqual(match.status, MatchStatus.PLAYING)

    def test_rematch_after_leave_is_rejected(self):
        match = self.finished_match()
        match.leave(2)
        self.assertEqual(match.request_rematch(1).result, ActionResult.GAME_NOT_IN_PROGRESS)


class TestLeave(unittest.TestCase):

    def test_leave_notifies_remaining_human(self):
        match = started_match()

        outcome = match.leave(1)

        self.assertTrue(outcome.ok)
        self.assertEqual(outcome.notify_player, 2)
        self.assertTrue(match.is_abandoned)

    def test_leave_bot_match_notifies_nobody(self):
        match = Match.create_bot("BOT-1", "conn-1")
        self.assertIsNone(match.leave(1).notify_player)

    def test_second_leave_is_rejected(self):
        match = started_match()
        match.leave(1)
        self.assertEqual(match.leave(2).result, ActionResult.GAME_NOT_IN_PROGRESS)

    def test_abandon_returns_attached_humans(self):
        match = started_match()
        self.assertEqual(match.abandon(), [1, 2])
        self.assertEqual(match.abandon(), [])

    def test_idle_seconds(self):
        match = started_match()
        later = match.last_activity + timedelta(seconds=90)
        self.assertEqual(match.idle_seconds(later), 90)


class TestConcurrency(unittest.TestCase):

    def test_simultaneous_moves_apply_exactly_once(self):
        for _ in range(50):
            match = started_match()
            barrier = threading.Barrier(2)
            results = []

            def submit(column):
                barrier.wait()
                results.append(match.submit_move(1, column))

            threads = [threading.Thread(target=submit, args=(column,)) for column in (0, 6)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            accepted = [outcome for outcome in results if outcome.ok]
            rejected = [outcome for outcome in results if not outcome.ok]
            self.assertEqual(len(accepted), 1)
            self.assertEqual(rejected[0].result, ActionResult.NOT_YOUR_TURN)
            self.assertEqual(match.board.piece_count(), 1)
            self.assertEqual(match.current_player, 2)

    def test_both_sides_racing_to_move(self):
        for _ in range(50):
            match = started_match()
            barrier = threading.Barrier(2)
            results = {}

            def submit(player_number):
                barrier.wait()
                results[player_number] = match.submit_move(player_number, 3)

            threads = [threading.Thread(target=submit, args=(number,)) for number in (1, 2)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            # Player 2 may go second; it may never go first
            self.assertTrue(results[1].ok)
            if results[2].ok:
                self.assertEqual(results[2].row, 4)
                self.assertEqual(match.board.piece_count(), 2)
            else:
                self.assertEqual(results[2].result, ActionResult.NOT_YOUR_TURN)
                self.assertEqual(match.board.piece_count(), 1)


if __name__ == "__main__":
    unittest.main(verbosity=2)
