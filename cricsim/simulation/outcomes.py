"""Translate simulated outcomes into the deliveries the match engine scores."""

import random

from cricsim.models import (
    BallDetails,
    BallEventType,
    BallOutcome,
    OutcomeType,
    Team,
    WicketType,
)

_RUN_OUTCOMES = (
    OutcomeType.DOT,
    OutcomeType.SINGLE,
    OutcomeType.DOUBLE,
    OutcomeType.TRIPLE,
    OutcomeType.FOUR,
    OutcomeType.SIX,
)

_EXTRA_EVENTS: dict[OutcomeType, BallEventType] = {
    OutcomeType.WIDE: BallEventType.WIDE,
    OutcomeType.NO_BALL: BallEventType.NO_BALL,
    OutcomeType.BYE: BallEventType.BYE,
    OutcomeType.LEG_BYE: BallEventType.LEG_BYE,
}

# Dismissals that need someone other than the bowler
FIELDER_WICKETS = (WicketType.CAUGHT, WicketType.RUN_OUT, WicketType.STUMPED)


def outcome_to_details(outcome: BallOutcome, fielder_id: int | None = None) -> BallDetails:
    if outcome.type in _RUN_OUTCOMES:
        return BallDetails(event=BallEventType.RUN, runs=outcome.runs)
    if outcome.type == OutcomeType.WICKET:
        return BallDetails(
            event=BallEventType.WICKET,
            wicket_type=outcome.wicket_type,
            fielder_id=outcome.fielder_id if outcome.fielder_id is not None else fielder_id,
        )
    if outcome.type == OutcomeType.NO_BALL:
        # One-run penalty; anything beyond it came off the bat
        return BallDetails(event=BallEventType.NO_BALL, extras=1, runs=max(0, outcome.runs - 1))
    return BallDetails(event=_EXTRA_EVENTS[outcome.type], extras=max(1, outcome.runs))


def pick_fielder(outcome: BallOutcome, bowling_team: Team, bowler_id: int | None, rng: random.Random) -> int | None:
    """Choose a catcher/thrower for dismissals that need one."""
    if outcome.type != OutcomeType.WICKET or outcome.wicket_type not in FIELDER_WICKETS:
        return None
    if outcome.fielder_id is not None:
        return outcome.fielder_id
    fielders = [p.id for p in bowling_team.playing_xi if p.id != bowler_id]
    return rng.choice(fielders) if fielders else None


def fit_to_over(outcomes: list[BallOutcome], legal_balls_left: int) -> list[BallOutcome]:
    """Cut a sequence once it has used up the legal deliveries left in the over."""
    fitted = []
    legal = 0
    for outcome in outcomes:
        if legal >= legal_balls_left or len(fitted) >= 6:
            break
        fitted.append(outcome)
        if outcome.is_legal:
            legal += 1
    return fitted
