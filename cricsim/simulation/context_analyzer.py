"""
Context analyzer: turns the live match state into the situation summary
(phase, pressure, momentum, complexity) that the simulation strategies
work from. Nothing here modifies the match.
"""

import logging

from cricsim.config import settings
from cricsim.engine.situation import (
    calculate_current_run_rate,
    calculate_required_run_rate,
    chase_target,
)
from cricsim.models import (
    BALLS_PER_OVER,
    Ball,
    BallEventType,
    BallOutcome,
    CricketContext,
    Innings,
    Match,
    MatchPhase,
    MomentumState,
    Player,
    PressureMetrics,
    Team,
)
from cricsim.simulation.modifiers import NEUTRAL, PlayerModifiers
from cricsim.simulation.outcomes import outcome_to_details

logger = logging.getLogger(__name__)

POWERPLAY_END = 6
DEATH_START = 15
MOMENTUM_WINDOW = 12
OVER_WINDOW = 6
MOMENTUM_LIMIT = 10.0


# ------------------------------------------------------------------ #
#  Phase
# ------------------------------------------------------------------ #

def detect_match_phase(overs: int, max_overs: int | None = None, scale: bool | None = None) -> MatchPhase:
    """
    Powerplay before over 6, death from over 15. With scaling on, the same
    boundaries are applied as fractions (6/20, 15/20) of the innings length.
    """
    scale = settings.scale_phases_to_format if scale is None else scale
    powerplay_end, death_start = POWERPLAY_END, DEATH_START
    if scale and max_overs:
        powerplay_end = max_overs * POWERPLAY_END / 20
        death_start = max_overs * DEATH_START / 20

    if overs < powerplay_end:
        return MatchPhase.POWERPLAY
    if overs >= death_start:
        return MatchPhase.DEATH_OVERS
    return MatchPhase.MIDDLE_OVERS


# ------------------------------------------------------------------ #
#  Pressure
# ------------------------------------------------------------------ #

def _trailing_dots(timeline: list[Ball]) -> int:
    count = 0
    for ball in reversed(timeline):
        if not ball.is_dot:
            break
        count += 1
    return count


def _balls_since_boundary(timeline: list[Ball]) -> int:
    count = 0
    for ball in reversed(timeline):
        if ball.runs >= 4:
            break
        count += 1
    return count


def pressure_from_totals(
    score: int,
    wickets: int,
    legal_balls: int,
    timeline: list[Ball],
    target: int | None,
    max_overs: int,
) -> PressureMetrics:
    required = 0.0
    if target is not None:
        balls_remaining = max(0, max_overs * BALLS_PER_OVER - legal_balls)
        required = calculate_required_run_rate(target, score, balls_remaining)
    return PressureMetrics(
        current_run_rate=round(calculate_current_run_rate(score, legal_balls), 2),
        required_run_rate=round(required, 2),
        dot_ball_pressure=_trailing_dots(timeline),
        boundary_pressure=_balls_since_boundary(timeline),
        wickets_in_hand=max(0, 10 - wickets),
    )


def calculate_pressure_metrics(match: Match, innings: Innings) -> PressureMetrics:
    return pressure_from_totals(
        innings.score,
        innings.wickets,
        innings.legal_balls,
        innings.timeline,
        chase_target(match, innings),
        innings.max_overs,
    )


# ------------------------------------------------------------------ #
#  Momentum
# ------------------------------------------------------------------ #

def _clamp(value: float, limit: float = MOMENTUM_LIMIT) -> float:
    return max(-limit, min(limit, value))


def track_momentum(timeline: list[Ball], modifiers: PlayerModifiers | None = None) -> MomentumState:
    modifiers = modifiers or NEUTRAL
    batting = bowling = 0.0
    for ball in timeline[-MOMENTUM_WINDOW:]:
        if ball.runs >= 4:
            batting += ball.runs * modifiers.batting(ball.batter_id)
        if ball.is_wicket:
            bowling += 10 * modifiers.bowling(ball.bowler_id)
        elif ball.is_dot:
            bowling += 1 * modifiers.bowling(ball.bowler_id)
        if ball.runs == 1:
            batting += 0.5
            bowling -= 0.5

    over = 0.0
    for ball in timeline[-OVER_WINDOW:]:
        if ball.runs >= 4:
            over += ball.runs
        if ball.is_wicket:
            over -= 5
        elif ball.is_dot:
            over -= 1

    return MomentumState(
        batting_momentum=round(_clamp(batting), 2),
        bowling_momentum=round(_clamp(bowling), 2),
        over_momentum=round(_clamp(over), 2),
    )


# ------------------------------------------------------------------ #
#  Complexity
# ------------------------------------------------------------------ #

def calculate_complexity(phase: MatchPhase, pressure: PressureMetrics, momentum: MomentumState) -> int:
    complexity = 1
    if phase == MatchPhase.DEATH_OVERS:
        complexity += 3
    elif phase == MatchPhase.POWERPLAY:
        complexity += 1

    if pressure.required_run_rate > 12:
        complexity += 2
        if pressure.required_run_rate > 15:
            complexity += 1
    if pressure.wickets_in_hand <= 3:
        complexity += 2

    if abs(momentum.batting_momentum) > 7:
        complexity += 1

    return max(1, min(10, complexity))


# ------------------------------------------------------------------ #
#  Context construction
# ------------------------------------------------------------------ #

def _innings_number(match: Match, innings: Innings) -> int:
    if match.super_over is not None:
        for i, inn in enumerate(match.super_over.innings, start=1):
            if inn is innings:
                return i
    for i, inn in enumerate(match.innings, start=1):
        if inn is innings:
            return i
    return match.current_innings


def analyze_context(
    match: Match,
    innings: Innings,
    batting_team: Team,
    bowling_team: Team,
    striker: Player,
    non_striker: Player,
    bowler: Player,
    modifiers: PlayerModifiers | None = None,
    last_pattern_id: str | None = None,
) -> CricketContext:
    phase = detect_match_phase(innings.overs, innings.max_overs)
    pressure = calculate_pressure_metrics(match, innings)
    momentum = track_momentum(innings.timeline, modifiers)
    complexity = calculate_complexity(phase, pressure, momentum)

    return CricketContext(
        match=match,
        innings_number=_innings_number(match, innings),
        over=innings.overs,
        ball=innings.balls_this_over,
        batting_team=batting_team,
        bowling_team=bowling_team,
        striker=striker,
        non_striker=non_striker,
        bowler=bowler,
        phase=phase,
        pressure=pressure,
        momentum=momentum,
        complexity=complexity,
        score=innings.score,
        wickets=innings.wickets,
        target=chase_target(match, innings),
        max_overs=innings.max_overs,
        striker_balls_faced=striker.batting.balls_faced,
        timeline=list(innings.timeline),
        last_pattern_id=last_pattern_id,
    )


def update_context_after_ball(
    context: CricketContext,
    outcome: BallOutcome,
    modifiers: PlayerModifiers | None = None,
) -> CricketContext:
    """
    Advance a context by one simulated ball without going back to the match:
    the working score, wickets and timeline move forward and the derived
    signals are recomputed from them.
    """
    details = outcome_to_details(outcome)
    is_wicket = details.event == BallEventType.WICKET
    synthetic = Ball(
        event=details.event,
        runs=details.runs,
        extras=details.extras,
        is_wicket=is_wicket,
        wicket_type=details.wicket_type,
        batter_id=context.striker.id,
        bowler_id=context.bowler.id,
        display="W" if is_wicket else outcome.type.value,
        over=round(context.over + context.ball / 10, 1),
    )

    over, ball = context.over, context.ball
    striker, non_striker = context.striker, context.non_striker
    balls_faced = context.striker_balls_faced
    if synthetic.is_legal:
        ball += 1
        balls_faced += 1

    if is_wicket:
        balls_faced = 0
    elif synthetic.is_legal and synthetic.runs % 2 == 1:
        striker, non_striker = non_striker, striker
        balls_faced = striker.batting.balls_faced

    if ball == BALLS_PER_OVER:
        over += 1
        ball = 0
        striker, non_striker = non_striker, striker
        balls_faced = striker.batting.balls_faced

    score = context.score + synthetic.runs + synthetic.extras
    wickets = context.wickets + (1 if is_wicket else 0)
    timeline = [*context.timeline, synthetic]

    phase = detect_match_phase(over, context.max_overs)
    pressure = pressure_from_totals(
        score, wickets, over * BALLS_PER_OVER + ball, timeline, context.target, context.max_overs
    )
    momentum = track_momentum(timeline, modifiers)

    return context.model_copy(update={
        "over": over,
        "ball": ball,
        "striker": striker,
        "non_striker": non_striker,
        "striker_balls_faced": balls_faced,
        "score": score,
        "wickets": wickets,
        "timeline": timeline,
        "phase": phase,
        "pressure": pressure,
        "momentum": momentum,
        "complexity": calculate_complexity(phase, pressure, momentum),
    })
