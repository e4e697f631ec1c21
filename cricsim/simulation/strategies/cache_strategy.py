from cricsim.models import BallOutcome, CricketContext, OverSimulationResult
from cricsim.simulation.cache import SimulationCache, fingerprint
from cricsim.simulation.outcomes import fit_to_over
from cricsim.simulation.strategies.base import SimulationStrategy

# Strategies never return more outcomes than this for one over
MAX_OUTCOMES = 6


def covers_over(outcomes: list[BallOutcome], legal_balls_left: int) -> bool:
    """
    True if the outcomes can finish an over with this many legal balls left.
    A result stored part way through an over may be too short for a fresh one.
    """
    fitted = fit_to_over(outcomes, legal_balls_left)
    legal = sum(1 for o in fitted if o.is_legal)
    return legal >= legal_balls_left or len(fitted) >= MAX_OUTCOMES


class CacheStrategy(SimulationStrategy):
    name = "Cache"
    priority = 1

    def __init__(self, cache: SimulationCache) -> None:
        self.cache = cache

    def can_handle(self, context: CricketContext) -> bool:
        key = fingerprint(context)
        stored = self.cache.peek(key)
        if stored is not None and not covers_over(stored.outcomes, context.balls_left_in_over):
            self.cache.misses += 1
            return False
        # Counted lookup; simulate() then reads without touching the counters
        return self.cache.get(key) is not None

    async def simulate(self, context: CricketContext) -> OverSimulationResult:
        key = fingerprint(context)
        cached = self.cache.peek(key)
        if cached is None:
            raise LookupError(f"No cached over for {key}")

        outcomes = fit_to_over(cached.outcomes, context.balls_left_in_over)
        return cached.model_copy(update={
            "outcomes": outcomes,
            "commentary": f"[Cached] {cached.commentary}",
            "strategy": self.name,
            "cost": 0.0,
            "debug": {**cached.debug, "cache_key": key},
        })
