"""
Derived match values: run rates, powerplay length and the "what's needed"
summary shown above the scorecard. Everything here is read-only.
"""

import math

from cricsim.models import BALLS_PER_OVER, SUPER_OVER_WICKETS, Innings, Match, MatchSituation, MatchStatus, MatchType

# Sentinel RRR when runs are still needed but no balls are left
UNREACHABLE_RUN_RATE = 999.0

_POWERPLAY_T20 = 6
_FORMAT_OVERS: dict[MatchType, int] = {
    MatchType.T20: 20,
    MatchType.TEN_OVERS: 10,
    MatchType.FIVE_OVERS: 5,
    MatchType.TWO_OVERS: 2,
    MatchType.FIFTY_OVERS: 50,
}


def get_powerplay_overs(match_type: MatchType) -> int:
    """
    Powerplay length for a format: 6 for T20, 10 for 50 overs.
    Shorter formats scale the T20 ratio and round up (10 -> 3, 5 -> 2, 2 -> 1).
    """
    if match_type == MatchType.FIFTY_OVERS:
        return 10
    overs = _FORMAT_OVERS[match_type]
    return max(1, math.ceil(overs * _POWERPLAY_T20 / 20))


def calculate_current_run_rate(score: int, balls: int) -> float:
    if balls <= 0:
        return 0.0
    return score / balls * BALLS_PER_OVER


def calculate_required_run_rate(target: int, score: int, balls_remaining: int) -> float:
    runs_needed = target - score
    if runs_needed <= 0:
        return 0.0
    if balls_remaining <= 0:
        return UNREACHABLE_RUN_RATE
    return runs_needed / balls_remaining * BALLS_PER_OVER


def chase_target(match: Match, innings: Innings) -> int | None:
    """Target for the given innings, or None if it is not a chase."""
    if innings.target is not None:
        return innings.target
    if match.in_super_over:
        so = match.super_over
        if len(so.innings) == 2 and innings is so.innings[1]:
            return so.innings[0].score + 1
        return None
    if len(match.innings) == 2 and innings is match.innings[1]:
        return match.innings[0].score + 1
    return None


def wicket_limit(match: Match, innings: Innings) -> int:
    """Wickets that end the innings: two in a super over, else all but one of the XI."""
    if match.in_super_over:
        return SUPER_OVER_WICKETS
    return len(innings.batting_team.playing_xi) - 1


def overs_notation(balls: int) -> float:
    """Convert a ball count to overs.balls notation, e.g. 33 -> 5.3."""
    return balls // BALLS_PER_OVER + (balls % BALLS_PER_OVER) / 10


def _last_innings(match: Match) -> Innings | None:
    if match.super_over is not None and match.super_over.innings:
        return match.super_over.innings[-1]
    return match.innings[-1] if match.innings else None


def calculate_win_probability(match: Match) -> float:
    """
    Chance (percent) that the side batting last wins.

    50 until a chase has faced a ball. A finished match gives 100 or 0 for a
    win or a loss and 50 for a tie or no result. In a live chase the run
    rate ratio is scaled by wickets in hand and held to [1, 99], then damped
    by how much of the innings is left, with nudges for a near-won chase and
    for a rate that has drifted out of reach.
    """
    innings = _last_innings(match)
    if innings is None:
        return 50.0

    if match.status == MatchStatus.FINISHED:
        result = match.result or ""
        if result.startswith(f"{innings.batting_team.name} won"):
            return 100.0
        if " won" in result:
            return 0.0
        return 50.0

    target = chase_target(match, innings)
    if target is None or innings.legal_balls == 0:
        return 50.0

    runs_needed = target - innings.score
    balls_left = innings.balls_remaining
    total_balls = innings.max_overs * BALLS_PER_OVER
    if runs_needed <= 0:
        return 100.0
    limit = wicket_limit(match, innings)
    if balls_left <= 0 or innings.wickets >= limit:
        return 0.0

    current = calculate_current_run_rate(innings.score, innings.legal_balls)
    required = calculate_required_run_rate(target, innings.score, balls_left)
    wickets_factor = (limit - innings.wickets) / limit

    probability = min(max(current / required * 50 * wickets_factor, 1.0), 99.0)
    probability *= 1 - (balls_left / total_balls) * 0.3
    if runs_needed < 10 and balls_left > runs_needed * 2:
        probability = min(probability * 1.2, 95.0)
    if required > current * 2 and balls_left < total_balls / 2:
        probability = max(probability * 0.7, 5.0)
    return round(min(max(probability, 1.0), 99.0), 1)


def get_match_situation(match: Match) -> MatchSituation:
    innings = match.active_innings
    if innings is None:
        raise ValueError(f"Match {match.id} has no innings in play")

    innings_number = match.super_over.current_innings if match.in_super_over else match.current_innings
    target = chase_target(match, innings)
    situation = MatchSituation(
        innings=innings_number,
        batting_team_name=innings.batting_team.name,
        bowling_team_name=innings.bowling_team.name,
        overs_left=overs_notation(innings.balls_remaining),
        is_chasing=target is not None,
        win_probability=calculate_win_probability(match),
    )
    if target is not None:
        situation.target = target
        situation.runs_needed = max(0, target - innings.score)
        situation.balls_remaining = innings.balls_remaining
    return situation
