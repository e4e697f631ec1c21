"""
Drives the match engine with simulated overs.

The dispatcher produces the outcomes; this module feeds them through
process_ball one at a time, exactly as a scorer tapping them in would,
and stops early when the match needs a decision (new bowler, new batter),
the innings or match ends, or the caller cancels. Every ball applied
before a stop is final.
"""

import asyncio
import inspect
import logging
import random
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from cricsim.engine.match_engine import process_ball
from cricsim.engine.weather import handle_rain_interruption
from cricsim.models import (
    Ball,
    BallOutcome,
    CricketContext,
    Innings,
    Match,
    MatchStatus,
    OverSimulationResult,
)
from cricsim.simulation.context_analyzer import analyze_context
from cricsim.simulation.engine import SimulationEngine
from cricsim.simulation.modifiers import PlayerModifiers
from cricsim.simulation.outcomes import outcome_to_details, pick_fielder
from cricsim.storage.memory import PlayerStore

logger = logging.getLogger(__name__)

BallCallback = Callable[[Match, Ball], Any]


class FlowStatus(str, Enum):
    COMPLETED = "completed"
    AWAITING_BOWLER = "awaiting_bowler"
    AWAITING_BATTER = "awaiting_batter"
    INNINGS_ENDED = "innings_ended"
    MATCH_FINISHED = "match_finished"
    PAUSED_ON_WICKET = "paused_on_wicket"
    CANCELLED = "cancelled"


class FlowResult(BaseModel):
    match: Match
    status: FlowStatus
    applied: list[Ball] = Field(default_factory=list)
    pending: list[BallOutcome] = Field(default_factory=list)
    rain_message: Optional[str] = None
    simulation: Optional[OverSimulationResult] = None


# ------------------------------------------------------------------ #
#  Context
# ------------------------------------------------------------------ #

def build_context(
    match: Match,
    modifiers: PlayerModifiers | None = None,
    last_pattern_id: str | None = None,
) -> CricketContext | None:
    """Context for the active innings, or None if a bowler or batter is still to be chosen."""
    if match.status == MatchStatus.FINISHED:
        return None
    innings = match.active_innings
    if innings is None:
        return None
    striker = innings.batting_team.get_player(innings.striker)
    non_striker = innings.batting_team.get_player(innings.non_striker)
    bowler = innings.bowling_team.get_player(innings.current_bowler)
    if striker is None or non_striker is None or bowler is None:
        return None
    return analyze_context(
        match,
        innings,
        innings.batting_team,
        innings.bowling_team,
        striker,
        non_striker,
        bowler,
        modifiers=modifiers,
        last_pattern_id=last_pattern_id,
    )


def _waiting_status(match: Match) -> FlowStatus:
    innings = match.active_innings
    if innings is not None and innings.current_bowler is None:
        return FlowStatus.AWAITING_BOWLER
    return FlowStatus.AWAITING_BATTER


def _innings_key(match: Match) -> tuple[bool, int]:
    if match.in_super_over:
        return True, match.super_over.current_innings
    return False, match.current_innings


def _innings_at(match: Match, key: tuple[bool, int]) -> Innings:
    super_over, number = key
    if super_over:
        return match.super_over.innings[number - 1]
    return match.innings[number - 1]


# ------------------------------------------------------------------ #
#  Applying outcomes
# ------------------------------------------------------------------ #

async def apply_outcomes(
    match: Match,
    outcomes: list[BallOutcome],
    delay: float = 0.0,
    cancel_event: asyncio.Event | None = None,
    on_ball: BallCallback | None = None,
    pause_on_wicket: bool = False,
    rng: random.Random | None = None,
    store: PlayerStore | None = None,
) -> FlowResult:
    rng = rng or random.Random()
    applied: list[Ball] = []
    rain_message = None

    for index, outcome in enumerate(outcomes):
        if index > 0 and delay > 0:
            await asyncio.sleep(delay)
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"Simulation cancelled after {len(applied)} balls (match {match.id})")
            return FlowResult(
                match=match, status=FlowStatus.CANCELLED, applied=applied,
                pending=outcomes[index:], rain_message=rain_message,
            )

        innings = match.active_innings
        if innings is None:
            return FlowResult(
                match=match, status=FlowStatus.AWAITING_BATTER, applied=applied,
                pending=outcomes[index:], rain_message=rain_message,
            )
        fielder_id = pick_fielder(outcome, innings.bowling_team, innings.current_bowler, rng)
        key = _innings_key(match)

        new = process_ball(match, outcome_to_details(outcome, fielder_id), store)
        if new is None:
            return FlowResult(
                match=match, status=_waiting_status(match), applied=applied,
                pending=outcomes[index:], rain_message=rain_message,
            )
        match = new
        ball = _innings_at(match, key).timeline[-1]
        applied.append(ball)

        if not match.in_super_over and match.status == MatchStatus.IN_PROGRESS:
            was_applied = bool(match.rain_simulation and match.rain_simulation.applied)
            match = handle_rain_interruption(
                match, match.active_innings.overs, match.current_innings, rng=rng, store=store,
            )
            if not was_applied and match.rain_simulation and match.rain_simulation.applied:
                rain_message = match.rain_simulation.rain_message

        if on_ball is not None:
            result = on_ball(match, ball)
            if inspect.isawaitable(result):
                await result

        remaining = outcomes[index + 1:]
        if match.status == MatchStatus.FINISHED:
            return FlowResult(
                match=match, status=FlowStatus.MATCH_FINISHED, applied=applied,
                pending=remaining, rain_message=rain_message,
            )
        if _innings_key(match) != key:
            return FlowResult(
                match=match, status=FlowStatus.INNINGS_ENDED, applied=applied,
                pending=remaining, rain_message=rain_message,
            )
        current = match.active_innings
        if ball.is_wicket:
            if current.striker is None:
                return FlowResult(
                    match=match, status=FlowStatus.AWAITING_BATTER, applied=applied,
                    pending=remaining, rain_message=rain_message,
                )
            if pause_on_wicket:
                return FlowResult(
                    match=match, status=FlowStatus.PAUSED_ON_WICKET, applied=applied,
                    pending=remaining, rain_message=rain_message,
                )
        if current.current_bowler is None:
            status = FlowStatus.AWAITING_BOWLER if remaining else FlowStatus.COMPLETED
            return FlowResult(
                match=match, status=status, applied=applied,
                pending=remaining, rain_message=rain_message,
            )

    return FlowResult(match=match, status=FlowStatus.COMPLETED, applied=applied, rain_message=rain_message)


async def simulate_and_apply_over(
    match: Match,
    engine: SimulationEngine,
    modifiers: PlayerModifiers | None = None,
    delay: float = 0.0,
    cancel_event: asyncio.Event | None = None,
    on_ball: BallCallback | None = None,
    pause_on_wicket: bool = False,
    rng: random.Random | None = None,
    store: PlayerStore | None = None,
) -> FlowResult:
    """
    Simulate the rest of the current over and score it. If the dispatcher
    raises, nothing has been applied and the error propagates.
    """
    modifiers = modifiers if modifiers is not None else engine.modifiers
    context = build_context(match, modifiers, engine.last_pattern_id)
    if context is None:
        status = FlowStatus.MATCH_FINISHED if match.status == MatchStatus.FINISHED else _waiting_status(match)
        return FlowResult(match=match, status=status)

    simulation = await engine.simulate_over(context)
    logger.info(
        f"Match {match.id}: {simulation.strategy} over with {len(simulation.outcomes)} balls"
    )
    result = await apply_outcomes(
        match,
        simulation.outcomes,
        delay=delay,
        cancel_event=cancel_event,
        on_ball=on_ball,
        pause_on_wicket=pause_on_wicket,
        rng=rng,
        store=store,
    )
    result.simulation = simulation
    return result
