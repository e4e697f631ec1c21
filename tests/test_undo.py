"""
Undo: every counter a ball moves must move back, across over, innings and
match boundaries.
"""

from conftest import dot, runs, wicket
from cricsim.engine.match_engine import change_bowler, end_innings, process_ball, undo_last_ball
from cricsim.models import BallDetails, BallEventType, BattingStatus, Match, MatchStatus
from cricsim.storage.memory import InMemoryPlayerStore


def _play(match: Match, *balls: BallDetails) -> Match:
    for details in balls:
        match = process_ball(match, details)
        assert match is not None
    return match


def _state(match: Match) -> dict:
    return match.model_dump()


def test_undo_with_nothing_bowled_returns_none(new_match):
    assert undo_last_ball(new_match()) is None


def test_undo_boundary_restores_everything(new_match):
    before = _play(new_match(), runs(1), dot())
    after = _play(before, runs(4))

    restored = undo_last_ball(after)

    assert _state(restored) == _state(before)
    assert after.innings[0].score == 5


def test_undo_single_swaps_strike_back(new_match):
    before = new_match()
    after = _play(before, runs(1))
    assert after.innings[0].striker == 102

    restored = undo_last_ball(after)

    assert restored.innings[0].striker == 101
    assert _state(restored) == _state(before)


def test_undo_does_not_touch_input(new_match):
    after = _play(new_match(), runs(6))
    snapshot = _state(after)

    undo_last_ball(after)

    assert _state(after) == snapshot


def test_undo_extras(new_match):
    before = new_match()
    for extra in (
        BallDetails(event=BallEventType.WIDE, extras=1),
        BallDetails(event=BallEventType.BYE, extras=2),
        BallDetails(event=BallEventType.LEG_BYE, extras=1),
    ):
        assert _state(undo_last_ball(_play(before, extra))) == _state(before)


def test_undo_restores_pending_free_hit(new_match):
    match = _play(new_match(), BallDetails(event=BallEventType.NO_BALL, extras=1))
    assert match.innings[0].is_free_hit
    match = _play(match, dot())
    assert not match.innings[0].is_free_hit

    restored = undo_last_ball(match)

    assert restored.innings[0].is_free_hit


def test_undo_free_hit_survives_wide(new_match):
    match = _play(
        new_match(),
        BallDetails(event=BallEventType.NO_BALL, extras=1),
        BallDetails(event=BallEventType.WIDE, extras=1),
        dot(),
    )

    restored = undo_last_ball(match)

    assert restored.innings[0].is_free_hit


# --------------------------------------------------------------------------- #
#  Over boundary
# --------------------------------------------------------------------------- #

def test_undo_last_ball_of_maiden_reopens_over(new_match):
    five = _play(new_match(), *[dot() for _ in range(5)])
    six = _play(five, dot())
    innings = six.innings[0]
    assert innings.overs == 1
    assert innings.current_bowler is None
    assert innings.bowling_team.get_player(211).bowling.maidens == 1

    restored = undo_last_ball(six)

    innings = restored.innings[0]
    assert innings.overs == 0
    assert innings.balls_this_over == 5
    assert innings.current_bowler == 211
    assert innings.bowling_team.get_player(211).bowling.maidens == 0
    assert _state(restored) == _state(five)


def test_undo_odd_run_at_over_end(new_match):
    five = _play(new_match(), *[dot() for _ in range(5)])
    six = _play(five, runs(1))
    # Single swaps strike, end of over swaps it back
    assert six.innings[0].striker == 101

    restored = undo_last_ball(six)

    assert _state(restored) == _state(five)


# --------------------------------------------------------------------------- #
#  Wickets
# --------------------------------------------------------------------------- #

def test_undo_wicket_brings_batter_back(new_match):
    before = _play(new_match(), dot())
    after = _play(before, wicket())
    innings = after.innings[0]
    assert innings.striker == 103
    assert innings.fall_of_wickets

    restored = undo_last_ball(after)

    innings = restored.innings[0]
    assert innings.wickets == 0
    assert innings.striker == 101
    assert innings.fall_of_wickets == []
    assert innings.batting_team.get_player(101).batting.status == BattingStatus.NOT_OUT
    assert innings.batting_team.get_player(101).batting.out_details is None
    assert innings.batting_team.get_player(103).batting.status == BattingStatus.DID_NOT_BAT
    assert innings.bowling_team.get_player(211).bowling.wickets == 0
    assert innings.bowling_team.get_player(211).bowling.balls_bowled == 1


def test_undo_wicket_restarts_partnership_totals(new_match):
    match = _play(new_match(), runs(4), wicket())

    restored = undo_last_ball(match)

    innings = restored.innings[0]
    assert innings.batting_team.get_player(101).batting.runs == 4
    assert innings.current_partnership.batter1 == 101
    assert innings.current_partnership.batter2 == 102
    assert innings.current_partnership.runs == 0
    assert innings.current_partnership.balls == 0


# --------------------------------------------------------------------------- #
#  Innings and match boundaries
# --------------------------------------------------------------------------- #

def test_undo_across_innings_break(new_match):
    match = _play(new_match(), *[dot() for _ in range(6)])
    match = change_bowler(match, 210)
    eleven = _play(match, *[dot() for _ in range(5)])
    twelve = _play(eleven, dot())
    assert twelve.current_innings == 2

    restored = undo_last_ball(twelve)

    assert restored.current_innings == 1
    assert len(restored.innings) == 1
    assert restored.innings[0].legal_balls == 11
    assert restored.innings[0].current_bowler == 210


def test_undo_skips_unbowled_innings_after_manual_end(new_match):
    match = _play(new_match(), runs(2))
    match = end_innings(match)
    assert len(match.innings) == 2

    restored = undo_last_ball(match)

    assert len(restored.innings) == 1
    assert restored.innings[0].score == 0
    assert restored.innings[0].timeline == []


def test_undo_winning_run_reopens_match(new_match):
    match = _play(new_match(), runs(6))
    match = end_innings(match)
    match = change_bowler(match, 111)
    match = _play(match, runs(6), runs(1))
    assert match.status == MatchStatus.FINISHED
    assert match.result == "Tigers won by 10 wickets."

    restored = undo_last_ball(match)

    assert restored.status == MatchStatus.IN_PROGRESS
    assert restored.result is None
    assert restored.innings[1].score == 6
    for team in restored.teams:
        for player in team.players:
            assert player.rating == 75.0


def test_refinishing_after_undo_records_match_once(new_match):
    store = InMemoryPlayerStore()
    match = change_bowler(end_innings(_play(new_match(), runs(6))), 111)
    match = _play(match, runs(6))
    won = process_ball(match, runs(4), store)
    assert won.status == MatchStatus.FINISHED
    first = store.load(201)
    assert first.history.matches == 1
    assert first.history.highest_score == 10

    rewon = process_ball(undo_last_ball(won), runs(1), store)

    assert rewon.result == "Tigers won by 10 wickets."
    history = store.load(201).history
    assert history.matches == 1
    assert history.runs == 7
    assert history.fours == 0
    assert history.sixes == 1
    assert history.highest_score == 7
    assert [line.match_id for line in history.recent_matches] == [won.id]
    assert store.load(201).rating == rewon.teams[1].get_player(201).rating
    # The bowler's line is replaced too
    assert store.load(111).history.runs_conceded == 7


def test_undo_back_out_of_super_over(new_match):
    # Falcons 1, Tigers 1 off the second over: tied, super over starts
    match = _play(new_match(), runs(1))
    match = end_innings(match)
    match = change_bowler(match, 111)
    match = _play(match, *[dot() for _ in range(5)], runs(1))
    match = change_bowler(match, 110)
    match = _play(match, *[dot() for _ in range(6)])
    assert match.status == MatchStatus.SUPER_OVER
    assert match.super_over is not None

    restored = undo_last_ball(match)

    assert restored.status == MatchStatus.IN_PROGRESS
    assert restored.super_over is None
    assert restored.current_innings == 2
    assert restored.innings[1].legal_balls == 11
