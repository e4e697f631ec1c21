from abc import ABC, abstractmethod

from cricsim.models import CricketContext, OverSimulationResult


class SimulationStrategy(ABC):
    """
    One way of producing an over. The dispatcher asks strategies in
    ascending priority order and the first that claims the context runs.
    """

    name: str = "Base"
    priority: int = 100

    @abstractmethod
    def can_handle(self, context: CricketContext) -> bool:
        ...

    @abstractmethod
    async def simulate(self, context: CricketContext) -> OverSimulationResult:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}(priority={self.priority})"
