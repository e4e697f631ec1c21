"""
Strategy dispatcher for over simulation.

Strategies are tried in ascending priority; the first whose can_handle()
claims the context produces the over. The dispatcher owns the cache: it
hands it to the cache strategy and stores every freshly simulated over
in it.
"""

import logging
import random

from cricsim.config import settings
from cricsim.models import CricketContext, OverSimulationResult
from cricsim.simulation.cache import SimulationCache, fingerprint
from cricsim.simulation.modifiers import PlayerModifiers
from cricsim.simulation.strategies.ai_strategy import AIStrategy
from cricsim.simulation.strategies.base import SimulationStrategy
from cricsim.simulation.strategies.cache_strategy import CacheStrategy
from cricsim.simulation.strategies.rule_based_strategy import RuleBasedStrategy
from cricsim.simulation.strategies.statistical_strategy import StatisticalStrategy
from cricsim.simulation.strategies.template_strategy import TemplateStrategy

logger = logging.getLogger(__name__)


class StrategyResolutionError(RuntimeError):
    """No strategy claimed the context. The rule-based fallback should make this impossible."""


def default_strategies(
    cache: SimulationCache,
    modifiers: PlayerModifiers | None = None,
    rng: random.Random | None = None,
    use_ai: bool = True,
) -> list[SimulationStrategy]:
    strategies: list[SimulationStrategy] = [
        CacheStrategy(cache),
        # Without the LLM the statistical model also takes the high-complexity overs
        StatisticalStrategy(modifiers=modifiers, rng=rng, threshold=None if use_ai else 11),
        TemplateStrategy(rng=rng),
        RuleBasedStrategy(),
    ]
    if use_ai:
        strategies.append(AIStrategy(modifiers=modifiers))
    return strategies


class SimulationEngine:
    def __init__(
        self,
        cache: SimulationCache | None = None,
        strategies: list[SimulationStrategy] | None = None,
        modifiers: PlayerModifiers | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.cache = cache if cache is not None else SimulationCache(settings.simulation_cache_size)
        self.modifiers = modifiers
        if strategies is None:
            strategies = default_strategies(self.cache, modifiers, rng)
        self.strategies = sorted(strategies, key=lambda s: s.priority)
        self.last_pattern_id: str | None = None

    async def simulate_over(self, context: CricketContext) -> OverSimulationResult:
        if self.last_pattern_id is not None and context.last_pattern_id is None:
            context = context.model_copy(update={"last_pattern_id": self.last_pattern_id})

        for strategy in self.strategies:
            if not strategy.can_handle(context):
                continue

            logger.info(
                f"Over {context.over + 1}: {strategy.name} strategy (complexity {context.complexity})"
            )
            result = await strategy.simulate(context)

            if not isinstance(strategy, CacheStrategy):
                self.cache.set(fingerprint(context), result)
            self.last_pattern_id = result.pattern_id
            return result

        raise StrategyResolutionError(
            f"No simulation strategy claimed over {context.over + 1} (complexity {context.complexity})"
        )

    def reset(self) -> None:
        self.last_pattern_id = None
