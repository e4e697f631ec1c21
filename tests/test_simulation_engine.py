"""
Tests for the strategy dispatcher: priority order, cache ownership and
pattern threading between overs.
"""

import random

import pytest

from conftest import make_context
from cricsim.commentary import generator
from cricsim.commentary.generator import GeneratedOver, OverGenerationError, SimulatedBall
from cricsim.models import BallEventType, BallOutcome, CricketContext, OutcomeType, OverSimulationResult
from cricsim.simulation.cache import SimulationCache, fingerprint
from cricsim.simulation.engine import SimulationEngine, StrategyResolutionError, default_strategies
from cricsim.simulation.strategies.ai_strategy import AIStrategy
from cricsim.simulation.strategies.base import SimulationStrategy
from cricsim.simulation.strategies.cache_strategy import CacheStrategy
from cricsim.simulation.strategies.template_strategy import TemplateStrategy


class _Recorder(SimulationStrategy):
    """Claims everything and remembers what it was asked."""

    name = "Recorder"
    priority = 3

    def __init__(self) -> None:
        self.seen: list[CricketContext] = []

    def can_handle(self, context: CricketContext) -> bool:
        return True

    async def simulate(self, context: CricketContext) -> OverSimulationResult:
        self.seen.append(context)
        return OverSimulationResult(
            outcomes=[BallOutcome.of(OutcomeType.DOT)] * context.balls_left_in_over,
            commentary="Recorded.",
            strategy=self.name,
            pattern_id=f"P{len(self.seen)}",
        )


def _engine(use_ai: bool = False, seed: int = 3) -> SimulationEngine:
    cache = SimulationCache(10)
    rng = random.Random(seed)
    return SimulationEngine(cache, default_strategies(cache, rng=rng, use_ai=use_ai), rng=rng)


def test_strategies_sorted_by_priority():
    engine = _engine(use_ai=True)
    assert [s.name for s in engine.strategies] == ["Cache", "AI", "Statistical", "Template", "Rule-based"]
    assert [s.priority for s in engine.strategies] == [1, 2, 3, 4, 5]


def test_default_engine_builds_its_own_cache():
    engine = SimulationEngine()
    assert engine.cache is not None
    assert engine.strategies[0].name == "Cache"


@pytest.mark.asyncio
async def test_low_complexity_goes_to_template_then_cache(new_match):
    engine = _engine()
    context = make_context(new_match(), complexity=2)

    first = await engine.simulate_over(context)

    assert first.strategy == "Template"
    assert engine.cache.has(fingerprint(context))
    assert engine.last_pattern_id == first.pattern_id

    second = await engine.simulate_over(context)

    assert second.strategy == "Cache"
    assert second.commentary == f"[Cached] {first.commentary}"
    assert second.outcomes == first.outcomes
    assert len(engine.cache) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("complexity", [4, 6])
async def test_mid_complexity_goes_to_statistical(new_match, complexity):
    engine = _engine(use_ai=True)
    result = await engine.simulate_over(make_context(new_match(), complexity=complexity))
    assert result.strategy == "Statistical"


@pytest.mark.asyncio
async def test_high_complexity_goes_to_ai(new_match, monkeypatch):
    async def fake_generate(context, modifiers):
        return GeneratedOver(
            balls=[SimulatedBall(event=BallEventType.RUN, runs=6) for _ in range(context.balls_left_in_over)],
            total_tokens=800,
        )

    monkeypatch.setattr(generator, "generate_over", fake_generate)
    engine = _engine(use_ai=True)

    result = await engine.simulate_over(make_context(new_match(), complexity=8))

    assert result.strategy == "AI"
    assert result.cost > 0
    assert [o.type for o in result.outcomes] == [OutcomeType.SIX] * 6


@pytest.mark.asyncio
async def test_high_complexity_without_ai_is_statistical(new_match):
    engine = _engine(use_ai=False)
    result = await engine.simulate_over(make_context(new_match(), complexity=10))
    assert result.strategy == "Statistical"


@pytest.mark.asyncio
async def test_ai_failure_is_not_cached(new_match):
    async def failing(context, modifiers):
        raise OverGenerationError("timeout")

    cache = SimulationCache(10)
    engine = SimulationEngine(cache, [AIStrategy(threshold=1, generate=failing)])

    with pytest.raises(OverGenerationError):
        await engine.simulate_over(make_context(new_match(), complexity=9))

    assert len(cache) == 0


@pytest.mark.asyncio
async def test_no_claiming_strategy_raises(new_match):
    engine = SimulationEngine(SimulationCache(2), [TemplateStrategy()])

    with pytest.raises(StrategyResolutionError):
        await engine.simulate_over(make_context(new_match(), complexity=5))


@pytest.mark.asyncio
async def test_last_pattern_threaded_into_next_over(new_match):
    recorder = _Recorder()
    engine = SimulationEngine(SimulationCache(5), [recorder])
    match = new_match()

    await engine.simulate_over(make_context(match))
    await engine.simulate_over(make_context(match, ball=3))

    assert recorder.seen[0].last_pattern_id is None
    assert recorder.seen[1].last_pattern_id == "P1"
    assert engine.last_pattern_id == "P2"

    engine.reset()
    assert engine.last_pattern_id is None


@pytest.mark.asyncio
async def test_short_cached_over_is_resimulated_and_replaced(new_match):
    cache = SimulationCache(10)
    recorder = _Recorder()
    engine = SimulationEngine(cache, [CacheStrategy(cache), recorder])
    fresh = make_context(new_match())
    # Stored when only two balls of the over were left
    cache.set(fingerprint(fresh), OverSimulationResult(
        outcomes=[BallOutcome.of(OutcomeType.FOUR)] * 2,
        commentary="Two fours.",
        strategy="AI",
    ))

    result = await engine.simulate_over(fresh)

    assert result.strategy == "Recorder"
    assert len(result.outcomes) == 6
    assert cache.peek(fingerprint(fresh)).strategy == "Recorder"

    again = await engine.simulate_over(fresh)

    assert again.strategy == "Cache"
    assert len(recorder.seen) == 1
