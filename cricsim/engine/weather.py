"""
Rain interruptions.

Whether it rains, and at which over of which innings, is decided when the
match is created (see match_engine.roll_rain). This module applies the
interruption once play reaches that point: overs are cut and, in a chase,
the target is revised in proportion to the overs that remain.
"""

import logging
import math
import random

from cricsim.config import settings
from cricsim.engine.match_engine import finish_match
from cricsim.models import Match, MatchStatus
from cricsim.storage.memory import PlayerStore

logger = logging.getLogger(__name__)

MAX_OVERS_LOST_FRACTION = 0.35


def overs_lost(original_overs: int, current_over: int) -> int:
    """
    Overs removed by the interruption: the earlier the rain, the bigger the
    cut, never more than 35% of the original allocation.
    """
    progress = current_over / original_overs
    if progress < 0.3:
        fraction = 0.35
    elif progress < 0.6:
        fraction = 0.25
    else:
        fraction = 0.15
    cap = math.floor(original_overs * MAX_OVERS_LOST_FRACTION)
    return min(max(1, round(original_overs * fraction)), cap)


def revised_target(first_innings_score: int, reduced_overs: int, original_overs: int, factor: float) -> int:
    par = first_innings_score * reduced_overs / original_overs
    return math.floor(par * factor) + 1


def handle_rain_interruption(
    match: Match,
    current_over: int,
    current_innings: int,
    rng: random.Random | None = None,
    jitter: float | None = None,
    store: PlayerStore | None = None,
) -> Match:
    """
    Apply the scripted rain break if its trigger has been reached.
    Otherwise (or if it was already applied, or no overs would be lost) the
    match comes back unchanged. If the revised target has already been
    reached the match is finished, saving player records to `store`.
    """
    rain = match.rain_simulation
    if rain is None or not rain.will_rain or rain.applied:
        return match
    if match.status != MatchStatus.IN_PROGRESS:
        return match
    if current_innings != rain.interruption_innings or current_over < rain.interruption_over:
        return match
    if current_innings > len(match.innings):
        return match

    original = rain.original_overs or match.overs_per_innings
    bowled = match.innings[current_innings - 1].overs
    reduced = min(max(original - overs_lost(original, current_over), bowled + 1), original)
    if reduced >= original:
        logger.debug(f"Match {match.id}: rain at over {current_over} costs no overs")
        return match

    rng = rng or random.Random()
    jitter = settings.rain_target_jitter if jitter is None else jitter

    new = match.model_copy(deep=True)
    innings = new.innings[current_innings - 1]
    r = new.rain_simulation
    innings.max_overs = reduced
    r.applied = True
    r.dls_overs = reduced

    if current_innings == 2:
        first_score = new.innings[0].score
        factor = rng.uniform(1 - jitter, 1 + jitter)
        r.original_target = innings.target if innings.target is not None else first_score + 1
        r.dls_target = revised_target(first_score, reduced, original, factor)
        innings.target = r.dls_target
        r.rain_message = (
            f"Rain stopped play at {current_over} overs. {innings.batting_team.name} "
            f"now need {r.dls_target} from {reduced} overs."
        )
    else:
        r.rain_message = f"Rain stopped play at {current_over} overs. Match reduced to {reduced} overs a side."

    logger.info(f"Match {new.id}: {r.rain_message}")

    if innings.target is not None and innings.score >= innings.target:
        return finish_match(new, store)
    return new
