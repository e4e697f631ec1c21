import logging
import random

from cricsim.config import settings
from cricsim.models import (
    BallOutcome,
    CricketContext,
    OutcomeType,
    OverSimulationResult,
    WicketType,
)
from cricsim.simulation.context_analyzer import update_context_after_ball
from cricsim.simulation.modifiers import NEUTRAL, PlayerModifiers
from cricsim.simulation.probabilities import base_probabilities, normalize
from cricsim.simulation.strategies.base import SimulationStrategy

logger = logging.getLogger(__name__)

STATISTICAL_WICKETS = (WicketType.BOWLED, WicketType.CAUGHT, WicketType.LBW)

AGGRESSION_START = 15
AGGRESSION_STEP = 0.05
AGGRESSION_CAP = 2.5


def aggression_factor(balls_faced: int) -> float:
    """A set batter starts swinging harder after 15 balls."""
    if balls_faced <= AGGRESSION_START:
        return 1.0
    return min(AGGRESSION_CAP, 1 + AGGRESSION_STEP * (balls_faced - AGGRESSION_START))


def adjusted_probabilities(context: CricketContext, modifiers: PlayerModifiers | None = None) -> dict[OutcomeType, float]:
    modifiers = modifiers or NEUTRAL
    probs = base_probabilities(context.phase)
    pressure, momentum = context.pressure, context.momentum

    if pressure.required_run_rate > 12:
        probs[OutcomeType.FOUR] *= 1.2
        probs[OutcomeType.SIX] *= 1.5
        probs[OutcomeType.WICKET] *= 1.3
    if pressure.dot_ball_pressure > 3:
        probs[OutcomeType.WICKET] *= 1.2
        probs[OutcomeType.SINGLE] *= 1.1
    if momentum.batting_momentum > 5:
        probs[OutcomeType.FOUR] *= 1.2
        probs[OutcomeType.SIX] *= 1.2
    if momentum.bowling_momentum > 5:
        probs[OutcomeType.WICKET] *= 1.2
        probs[OutcomeType.DOT] *= 1.1

    bat_boost = modifiers.batting(context.striker.id)
    bowl_boost = modifiers.bowling(context.bowler.id)
    probs[OutcomeType.FOUR] *= bat_boost
    probs[OutcomeType.SIX] *= bat_boost
    probs[OutcomeType.WICKET] *= bowl_boost
    probs[OutcomeType.DOT] *= bowl_boost

    aggression = aggression_factor(context.striker_balls_faced)
    probs[OutcomeType.FOUR] *= aggression
    probs[OutcomeType.SIX] *= aggression

    return normalize(probs)


def draw_outcome(probabilities: dict[OutcomeType, float], rng: random.Random) -> OutcomeType:
    roll = rng.random()
    cumulative = 0.0
    for outcome, p in probabilities.items():
        cumulative += p
        if roll < cumulative:
            return outcome
    # Float rounding can leave the roll just above the final sum
    return next(reversed(probabilities))


class StatisticalStrategy(SimulationStrategy):
    """Ball-by-ball sampling from phase tables shaped by the situation."""

    name = "Statistical"
    priority = 3

    def __init__(
        self,
        modifiers: PlayerModifiers | None = None,
        rng: random.Random | None = None,
        threshold: int | None = None,
    ) -> None:
        self.modifiers = modifiers
        self.rng = rng or random.Random()
        self.threshold = settings.ai_complexity_threshold if threshold is None else threshold

    def can_handle(self, context: CricketContext) -> bool:
        return 4 <= context.complexity < self.threshold

    async def simulate(self, context: CricketContext) -> OverSimulationResult:
        outcomes: list[BallOutcome] = []
        legal = 0
        working = context
        while legal < context.balls_left_in_over and len(outcomes) < 6:
            kind = draw_outcome(adjusted_probabilities(working, self.modifiers), self.rng)
            if kind == OutcomeType.WICKET:
                outcome = BallOutcome.of(kind, self.rng.choice(STATISTICAL_WICKETS))
            else:
                outcome = BallOutcome.of(kind)
            outcomes.append(outcome)
            if outcome.is_legal:
                legal += 1
            working = update_context_after_ball(working, outcome, self.modifiers)

        runs = sum(o.runs for o in outcomes)
        wickets = sum(1 for o in outcomes if o.type == OutcomeType.WICKET)
        runs_text = f"{runs} run{'s' if runs != 1 else ''}"
        wickets_text = f"{wickets} wicket{'s' if wickets != 1 else ''}"
        return OverSimulationResult(
            outcomes=outcomes,
            commentary=f"{runs_text} and {wickets_text} from a statistically simulated over.",
            strategy=self.name,
            debug={"complexity": context.complexity, "phase": context.phase.value},
        )
