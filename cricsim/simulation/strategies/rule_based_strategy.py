from cricsim.models import BallOutcome, CricketContext, OutcomeType, OverSimulationResult
from cricsim.simulation.strategies.base import SimulationStrategy


class RuleBasedStrategy(SimulationStrategy):
    """Last resort: a single off every remaining ball."""

    name = "Rule-based"
    priority = 5

    def can_handle(self, context: CricketContext) -> bool:
        return True

    async def simulate(self, context: CricketContext) -> OverSimulationResult:
        outcomes = [BallOutcome.of(OutcomeType.SINGLE) for _ in range(context.balls_left_in_over)]
        return OverSimulationResult(
            outcomes=outcomes,
            commentary="Singles taken off every ball.",
            strategy=self.name,
        )
