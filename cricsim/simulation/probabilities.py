"""
Base outcome probabilities per phase, used by the statistical strategy.
Tuning constants; tables are renormalized before sampling.
"""

from cricsim.models import MatchPhase, OutcomeType

PHASE_PROBABILITIES: dict[MatchPhase, dict[OutcomeType, float]] = {
    MatchPhase.POWERPLAY: {
        OutcomeType.DOT: 0.25,
        OutcomeType.SINGLE: 0.35,
        OutcomeType.DOUBLE: 0.10,
        OutcomeType.FOUR: 0.18,
        OutcomeType.SIX: 0.07,
        OutcomeType.WICKET: 0.05,
        OutcomeType.WIDE: 0.02,
        OutcomeType.NO_BALL: 0.01,
        OutcomeType.BYE: 0.005,
        OutcomeType.LEG_BYE: 0.005,
    },
    MatchPhase.MIDDLE_OVERS: {
        OutcomeType.DOT: 0.38,
        OutcomeType.SINGLE: 0.40,
        OutcomeType.DOUBLE: 0.08,
        OutcomeType.FOUR: 0.08,
        OutcomeType.SIX: 0.02,
        OutcomeType.WICKET: 0.04,
        OutcomeType.WIDE: 0.02,
        OutcomeType.NO_BALL: 0.01,
        OutcomeType.BYE: 0.005,
        OutcomeType.LEG_BYE: 0.005,
    },
    MatchPhase.DEATH_OVERS: {
        OutcomeType.DOT: 0.15,
        OutcomeType.SINGLE: 0.25,
        OutcomeType.DOUBLE: 0.10,
        OutcomeType.FOUR: 0.25,
        OutcomeType.SIX: 0.15,
        OutcomeType.WICKET: 0.10,
        OutcomeType.WIDE: 0.02,
        OutcomeType.NO_BALL: 0.01,
        OutcomeType.BYE: 0.005,
        OutcomeType.LEG_BYE: 0.005,
    },
}


def base_probabilities(phase: MatchPhase) -> dict[OutcomeType, float]:
    """A fresh, mutable copy of the phase table."""
    return dict(PHASE_PROBABILITIES[phase])


def normalize(probabilities: dict[OutcomeType, float]) -> dict[OutcomeType, float]:
    total = sum(probabilities.values())
    if total <= 0:
        raise ValueError("Probability table has no weight")
    return {k: v / total for k, v in probabilities.items()}
