"""
Shared fixtures for the test suite.

Key design decisions:
  - Every test gets a fresh SQLite file under tmp_path; the database module's
    DB_DIR / DB_PATH globals are pointed at it before init_db().
  - API tests use an `httpx.AsyncClient` wired to the FastAPI app via
    ASGITransport, with the app's in-process state reset per test.
  - Two small squads (12 players each, the 12th a substitute) and a
    `new_match` factory cover most engine tests.
"""

from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

import cricsim.main as main_mod
import cricsim.storage.database as db_mod
from cricsim.engine.match_engine import change_bowler, create_match
from cricsim.models import (
    BallDetails,
    BallEventType,
    CricketContext,
    Match,
    MatchSettings,
    MatchType,
    Player,
    Team,
    TossDecision,
    WicketType,
)
from cricsim.simulation.flow import build_context
from cricsim.storage.memory import InMemoryPlayerStore


# --------------------------------------------------------------------------- #
#  Temp database, fresh for every test function
# --------------------------------------------------------------------------- #

@pytest_asyncio.fixture(autouse=True)
async def _init_test_db(tmp_path: Path):
    """
    Before each test:
      1. Point the DB module to a temp file.
      2. Run init_db() to create all tables.
    After the test:
      3. Close the connection.
    """
    test_db = tmp_path / "test.db"
    db_mod.DB_DIR = tmp_path
    db_mod.DB_PATH = test_db

    await db_mod.init_db()
    yield
    await db_mod.close_db()


# --------------------------------------------------------------------------- #
#  HTTP client, talks to the FastAPI app without a real server
# --------------------------------------------------------------------------- #

@pytest_asyncio.fixture
async def client() -> AsyncClient:
    main_mod.engines.clear()
    main_mod._locks.clear()
    main_mod.simulation_cache.clear()
    main_mod.player_store = InMemoryPlayerStore()

    transport = ASGITransport(app=main_mod.app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# --------------------------------------------------------------------------- #
#  Squads and matches
# --------------------------------------------------------------------------- #

def make_team(team_id: int, name: str, size: int = 12) -> Team:
    players = [Player(id=team_id * 100 + i, name=f"{name} {i}") for i in range(1, size + 1)]
    return Team(id=team_id, name=name, players=players)


@pytest.fixture
def teams() -> list[Team]:
    return [make_team(1, "Falcons"), make_team(2, "Tigers")]


def match_settings(overs: int = 2, rain: float = 0.0, **kw) -> MatchSettings:
    defaults = dict(
        team_names=["Falcons", "Tigers"],
        overs_per_innings=overs,
        toss_winner="Falcons",
        toss_decision=TossDecision.BAT,
        match_type=MatchType.TWO_OVERS if overs == 2 else MatchType.T20,
        rain_probability=rain,
    )
    defaults.update(kw)
    return MatchSettings(**defaults)


@pytest.fixture
def new_match(teams):
    """Factory: a match with Falcons batting first and a bowler already on."""

    def _factory(overs: int = 2, bowler_id: int | None = 211, **kw) -> Match:
        match = create_match(teams, match_settings(overs, **kw))
        if bowler_id is not None:
            match = change_bowler(match, bowler_id)
        return match

    return _factory


def dot() -> BallDetails:
    return BallDetails(event=BallEventType.RUN, runs=0)


def runs(n: int) -> BallDetails:
    return BallDetails(event=BallEventType.RUN, runs=n)


def wicket(kind: WicketType = WicketType.BOWLED, fielder_id: int | None = None) -> BallDetails:
    return BallDetails(event=BallEventType.WICKET, wicket_type=kind, fielder_id=fielder_id)


def make_context(match: Match, **updates) -> CricketContext:
    """Simulation context for the live match, with optional field overrides."""
    context = build_context(match)
    assert context is not None
    return context.model_copy(update=updates) if updates else context
