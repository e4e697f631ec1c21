import logging
import random

from cricsim.models import CricketContext, MatchPhase, OverSimulationResult
from cricsim.simulation.outcomes import fit_to_over
from cricsim.simulation.patterns import OVER_PATTERNS, OverPattern, PatternVariation
from cricsim.simulation.strategies.base import SimulationStrategy

logger = logging.getLogger(__name__)

PHASE_TAGS = {
    MatchPhase.POWERPLAY: "powerplay",
    MatchPhase.MIDDLE_OVERS: "middle",
    MatchPhase.DEATH_OVERS: "death",
}

SET_BATTER_BALLS = 20
SET_BATTER_SWING_CHANCE = 0.3


def context_tags(context: CricketContext) -> set[str]:
    """Tags describing the live situation, in the same vocabulary as variations."""
    tags = {PHASE_TAGS[context.phase]}
    if context.pressure.required_run_rate > 10:
        tags.add("high_rrr")
    if context.pressure.dot_ball_pressure > 3 or context.pressure.wickets_in_hand <= 3:
        tags.add("pressure")
    if context.momentum.batting_momentum > 5:
        tags.add("batting_momentum")
    if context.momentum.bowling_momentum > 5:
        tags.add("bowling_momentum")
    return tags


def candidate_patterns(context: CricketContext, patterns: list[OverPattern] | None = None) -> list[OverPattern]:
    patterns = OVER_PATTERNS if patterns is None else patterns
    phase_tag = PHASE_TAGS[context.phase]
    candidates = [
        p for p in patterns
        if phase_tag in p.tags or (context.phase == MatchPhase.MIDDLE_OVERS and "normal" in p.tags)
    ]
    fresh = [p for p in candidates if p.id != context.last_pattern_id]
    return fresh or candidates


def pattern_weight(pattern: OverPattern, context: CricketContext) -> float:
    weight = pattern.base_weight
    rrr = context.pressure.required_run_rate
    if rrr > 10 and "pressure" in pattern.tags:
        weight *= 1.5
    if rrr > 12 and "death" in pattern.tags:
        weight *= 1.2
    if context.momentum.batting_momentum > 5 and "momentum-swing" in pattern.tags:
        weight *= 1.5
    if context.momentum.bowling_momentum > 5 and "pressure" in pattern.tags:
        weight *= 1.5
    if context.striker_balls_faced > SET_BATTER_BALLS and "momentum-swing" in pattern.tags:
        weight *= 1.5
    return weight


def best_variation(pattern: OverPattern, tags: set[str]) -> PatternVariation:
    return max(pattern.variations, key=lambda v: len(tags.intersection(v.context_tags)))


class TemplateStrategy(SimulationStrategy):
    """Picks a named over shape from the pattern library for low-complexity overs."""

    name = "Template"
    priority = 4

    def __init__(self, rng: random.Random | None = None, patterns: list[OverPattern] | None = None) -> None:
        self.rng = rng or random.Random()
        self.patterns = patterns

    def can_handle(self, context: CricketContext) -> bool:
        return context.complexity < 4

    def choose_pattern(self, context: CricketContext) -> OverPattern:
        candidates = candidate_patterns(context, self.patterns)
        if not candidates:
            raise LookupError(f"No over patterns for phase {context.phase.value}")

        if context.striker_balls_faced > SET_BATTER_BALLS and self.rng.random() < SET_BATTER_SWING_CHANCE:
            swings = [p for p in candidates if "momentum-swing" in p.tags]
            if swings:
                candidates = swings

        weights = [pattern_weight(p, context) for p in candidates]
        return self.rng.choices(candidates, weights=weights, k=1)[0]

    async def simulate(self, context: CricketContext) -> OverSimulationResult:
        pattern = self.choose_pattern(context)
        tags = context_tags(context)
        variation = best_variation(pattern, tags)

        outcomes = [o.model_copy() for o in variation.outcomes]
        self.rng.shuffle(outcomes)
        outcomes = fit_to_over(outcomes, context.balls_left_in_over)

        logger.debug(f"Template {pattern.id} chosen for over {context.over + 1}")
        return OverSimulationResult(
            outcomes=outcomes,
            commentary=pattern.description,
            strategy=self.name,
            pattern_id=pattern.id,
            debug={"tags": sorted(tags), "variation_tags": variation.context_tags},
        )
