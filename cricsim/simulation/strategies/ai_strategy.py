import logging
from typing import Awaitable, Callable

from cricsim.commentary import generator
from cricsim.commentary.generator import GeneratedOver, to_outcomes
from cricsim.config import settings
from cricsim.models import CricketContext, OverSimulationResult
from cricsim.simulation.modifiers import PlayerModifiers
from cricsim.simulation.outcomes import fit_to_over
from cricsim.simulation.strategies.base import SimulationStrategy

logger = logging.getLogger(__name__)

OverGenerator = Callable[[CricketContext, PlayerModifiers | None], Awaitable[GeneratedOver]]


class AIStrategy(SimulationStrategy):
    """Hands high-complexity overs to the LLM. Failures propagate."""

    name = "AI"
    priority = 2

    def __init__(
        self,
        modifiers: PlayerModifiers | None = None,
        threshold: int | None = None,
        generate: OverGenerator | None = None,
    ) -> None:
        self.modifiers = modifiers
        self.threshold = settings.ai_complexity_threshold if threshold is None else threshold
        self._generate = generate

    def can_handle(self, context: CricketContext) -> bool:
        return context.complexity >= self.threshold

    async def simulate(self, context: CricketContext) -> OverSimulationResult:
        generate = self._generate or generator.generate_over
        generated = await generate(context, self.modifiers)

        outcomes = fit_to_over(to_outcomes(generated.balls), context.balls_left_in_over)
        cost = generated.total_tokens * settings.ai_cost_per_1k_tokens / 1000
        logger.info(f"AI over for complexity {context.complexity}: {len(outcomes)} balls, ${cost:.4f}")

        phase = context.phase.value.lower().replace("_", " ")
        return OverSimulationResult(
            outcomes=outcomes,
            commentary=f"AI simulation of a complexity-{context.complexity} over in the {phase}.",
            cost=cost,
            strategy=self.name,
            debug={"tokens": generated.total_tokens, "complexity": context.complexity},
        )
