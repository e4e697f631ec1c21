import asyncio
import json
import logging
import random
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from sse_starlette.sse import EventSourceResponse

from cricsim.config import settings
from cricsim.commentary.generator import OverGenerationError, generate_ball_commentary
from cricsim.commentary.prompts import build_situation_summary
from cricsim.engine.match_engine import (
    change_bowler,
    create_match,
    process_ball,
    select_next_batter,
    undo_last_ball,
    update_field_placements,
    use_impact_player,
)
from cricsim.engine.ratings import player_of_the_match
from cricsim.engine.situation import get_match_situation
from cricsim.engine.weather import handle_rain_interruption
from cricsim.models import (
    Ball,
    BallDetails,
    BatterSelection,
    BowlerChange,
    CreateMatchRequest,
    FieldUpdate,
    ImpactPlayerRequest,
    Innings,
    Match,
    MatchStatus,
    SimulateOverRequest,
)
from cricsim.simulation.cache import SimulationCache
from cricsim.simulation.engine import SimulationEngine, default_strategies
from cricsim.simulation.flow import FlowResult, build_context, simulate_and_apply_over
from cricsim.simulation.modifiers import PlayerModifiers, load_player_modifiers
from cricsim.storage import database as db
from cricsim.storage.memory import InMemoryPlayerStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Global state shared by every match
simulation_cache = SimulationCache(settings.simulation_cache_size)
player_modifiers = PlayerModifiers()
player_store = InMemoryPlayerStore()
engines: dict[str, SimulationEngine] = {}
_locks: dict[str, asyncio.Lock] = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """App startup/shutdown lifecycle."""
    global player_modifiers, player_store
    await db.init_db()
    player_modifiers = load_player_modifiers()
    player_store = InMemoryPlayerStore(await db.load_player_records())
    logger.info(f"Match simulator starting up ({len(player_store)} player records)")
    yield
    await db.close_db()
    logger.info("Shutting down")


app = FastAPI(
    title="Cricket Match Simulator",
    description="Ball-by-ball limited-overs scoring with simulated overs",
    lifespan=lifespan,
)


# ------------------------------------------------------------------ #
#  Helpers
# ------------------------------------------------------------------ #

def _lock_for(match_id: str) -> asyncio.Lock:
    """One writer per match: every mutating request runs under this lock."""
    return _locks.setdefault(match_id, asyncio.Lock())


def _engine_for(match_id: str) -> SimulationEngine:
    if match_id not in engines:
        strategies = default_strategies(
            simulation_cache, player_modifiers, use_ai=bool(settings.openai_api_key)
        )
        engines[match_id] = SimulationEngine(simulation_cache, strategies, modifiers=player_modifiers)
    return engines[match_id]


async def _load_or_404(match_id: str) -> Match:
    match = await db.get_match(match_id)
    if match is None:
        raise HTTPException(status_code=404, detail="Match not found")
    return match


async def _persist(match: Match) -> None:
    await db.save_match(match)
    if match.status == MatchStatus.FINISHED:
        # No more overs to simulate; an undo starts a fresh engine
        engines.pop(match.id, None)
    dirty = player_store.dirty_records()
    if dirty and await db.save_player_records(dirty):
        player_store.mark_clean()


def _latest_innings_with_balls(match: Match) -> Innings | None:
    candidates = list(match.innings)
    if match.super_over is not None:
        candidates.extend(match.super_over.innings)
    for innings in reversed(candidates):
        if innings.timeline:
            return innings
    return None


def _scoreline(match: Match) -> dict:
    innings = match.active_innings
    return {
        "status": match.status.value,
        "result": match.result,
        "batting_team": innings.batting_team.name if innings else None,
        "score": innings.score if innings else 0,
        "wickets": innings.wickets if innings else 0,
        "overs": innings.overs_display if innings else "0.0",
        "target": innings.target if innings else None,
    }


def _flow_payload(result: FlowResult) -> dict:
    sim = result.simulation
    return {
        "status": result.status.value,
        "match": result.match.model_dump(mode="json"),
        "applied": [b.model_dump(mode="json") for b in result.applied],
        "pending": [o.model_dump(mode="json") for o in result.pending],
        "rain_message": result.rain_message,
        "strategy": sim.strategy if sim else None,
        "commentary": sim.commentary if sim else None,
        "cost": sim.cost if sim else 0.0,
    }


def _after_ball(match: Match) -> Match:
    """Manual scoring triggers the scripted rain break the same way simulation does."""
    if match.in_super_over or match.status != MatchStatus.IN_PROGRESS:
        return match
    return handle_rain_interruption(
        match, match.active_innings.overs, match.current_innings, store=player_store,
    )


# ------------------------------------------------------------------ #
#  Matches
# ------------------------------------------------------------------ #

@app.post("/api/matches", status_code=201)
async def create_match_endpoint(body: CreateMatchRequest):
    rng = random.Random(body.seed) if body.seed is not None else None
    try:
        match = create_match(body.teams, body.settings, store=player_store, rng=rng)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    await _persist(match)
    return match


@app.get("/api/matches")
async def list_matches_endpoint(status: str | None = None):
    return await db.list_matches(status)


@app.get("/api/matches/{match_id}")
async def get_match_endpoint(match_id: str):
    match = await _load_or_404(match_id)
    payload = match.model_dump(mode="json")
    if match.status == MatchStatus.FINISHED:
        payload["player_of_the_match"] = player_of_the_match(match)
    return payload


@app.delete("/api/matches/{match_id}")
async def delete_match_endpoint(match_id: str):
    async with _lock_for(match_id):
        deleted = await db.delete_match(match_id)
        engines.pop(match_id, None)
        # Dropped while held: anyone still queued on it finds the match gone
        _locks.pop(match_id, None)
    if not deleted:
        raise HTTPException(status_code=404, detail="Match not found")
    return {"deleted": match_id}


# ------------------------------------------------------------------ #
#  Scoring
# ------------------------------------------------------------------ #

@app.post("/api/matches/{match_id}/balls")
async def add_ball(match_id: str, details: BallDetails):
    async with _lock_for(match_id):
        match = await _load_or_404(match_id)
        new = process_ball(match, details, player_store)
        if new is None:
            raise HTTPException(status_code=409, detail="Choose a bowler and striker before the next ball")
        new = _after_ball(new)
        await _persist(new)
    return new


@app.post("/api/matches/{match_id}/undo")
async def undo_ball(match_id: str):
    async with _lock_for(match_id):
        match = await _load_or_404(match_id)
        new = undo_last_ball(match)
        if new is None:
            raise HTTPException(status_code=409, detail="No ball to undo")
        await _persist(new)
    return new


@app.put("/api/matches/{match_id}/bowler")
async def set_bowler(match_id: str, body: BowlerChange):
    async with _lock_for(match_id):
        match = await _load_or_404(match_id)
        new = change_bowler(match, body.bowler_id)
        if new is None:
            raise HTTPException(status_code=409, detail=f"Player {body.bowler_id} cannot bowl this over")
        await _persist(new)
    return new


@app.put("/api/matches/{match_id}/batter")
async def set_batter(match_id: str, body: BatterSelection):
    async with _lock_for(match_id):
        match = await _load_or_404(match_id)
        new = select_next_batter(match, body.player_id)
        if new is None:
            raise HTTPException(status_code=409, detail=f"Player {body.player_id} cannot come in now")
        await _persist(new)
    return new


@app.put("/api/matches/{match_id}/field")
async def set_field(match_id: str, body: FieldUpdate):
    async with _lock_for(match_id):
        match = await _load_or_404(match_id)
        try:
            new = update_field_placements(match, body.placements)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        await _persist(new)
    return new


@app.post("/api/matches/{match_id}/impact-player")
async def impact_player(match_id: str, body: ImpactPlayerRequest):
    async with _lock_for(match_id):
        match = await _load_or_404(match_id)
        try:
            new = use_impact_player(match, body.team_id, body.player_out_id, body.player_in_id)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
        await _persist(new)
    return new


# ------------------------------------------------------------------ #
#  Situation
# ------------------------------------------------------------------ #

@app.get("/api/matches/{match_id}/situation")
async def match_situation(match_id: str):
    match = await _load_or_404(match_id)
    try:
        return get_match_situation(match)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))


@app.get("/api/matches/{match_id}/context")
async def match_context(match_id: str):
    """The analyzer's view of the match: what the simulation strategies would see."""
    match = await _load_or_404(match_id)
    context = build_context(match, player_modifiers)
    if context is None:
        raise HTTPException(status_code=409, detail="No bowler or batter in place")
    return {
        "innings": context.innings_number,
        "over": context.over,
        "ball": context.ball,
        "phase": context.phase.value,
        "pressure": context.pressure.model_dump(),
        "momentum": context.momentum.model_dump(),
        "complexity": context.complexity,
        "summary": build_situation_summary(context, player_modifiers),
    }


# ------------------------------------------------------------------ #
#  Simulation
# ------------------------------------------------------------------ #

@app.post("/api/matches/{match_id}/simulate-over")
async def simulate_over(match_id: str, body: SimulateOverRequest | None = None):
    body = body or SimulateOverRequest()
    rng = random.Random(body.seed) if body.seed is not None else None
    async with _lock_for(match_id):
        match = await _load_or_404(match_id)
        try:
            result = await simulate_and_apply_over(
                match,
                _engine_for(match_id),
                pause_on_wicket=body.pause_on_wicket,
                rng=rng,
                store=player_store,
            )
        except OverGenerationError as e:
            logger.error(f"Simulated over failed for match {match_id}: {e}")
            raise HTTPException(status_code=502, detail=f"Over generation failed: {e}")
        await _persist(result.match)
    return _flow_payload(result)


@app.get("/api/matches/{match_id}/simulate-over/stream")
async def stream_over(match_id: str, request: Request):
    """SSE endpoint: simulates an over and emits one event per ball, paced for display."""
    await _load_or_404(match_id)
    queue: asyncio.Queue = asyncio.Queue()
    cancel = asyncio.Event()

    async def on_ball(current: Match, ball: Ball):
        await queue.put({
            "event": "ball",
            "data": json.dumps({"ball": ball.model_dump(mode="json"), **_scoreline(current)}, default=str),
        })

    async def run():
        try:
            async with _lock_for(match_id):
                match = await _load_or_404(match_id)
                result = await simulate_and_apply_over(
                    match,
                    _engine_for(match_id),
                    delay=settings.ball_delay_seconds,
                    cancel_event=cancel,
                    on_ball=on_ball,
                    store=player_store,
                )
                await _persist(result.match)
            payload = _flow_payload(result)
            payload.pop("match")
            await queue.put({"event": "over_end", "data": json.dumps(payload, default=str)})
        except (OverGenerationError, HTTPException) as e:
            logger.error(f"Streamed over failed for match {match_id}: {e}")
            await queue.put({"event": "error", "data": json.dumps({"detail": str(e)})})
        finally:
            await queue.put(None)

    async def event_generator():
        task = asyncio.create_task(run())
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    # Send keepalive
                    yield {"event": "ping", "data": "{}"}
                    continue
                if event is None:
                    break
                yield event
        finally:
            # Balls already applied stay applied; the rest of the over is dropped
            cancel.set()
            await task

    return EventSourceResponse(event_generator())


@app.post("/api/matches/{match_id}/commentary")
async def ball_commentary(match_id: str):
    match = await _load_or_404(match_id)
    innings = _latest_innings_with_balls(match)
    if innings is None:
        raise HTTPException(status_code=409, detail="No ball bowled yet")
    ball = innings.timeline[-1]
    text = await generate_ball_commentary(innings, ball)
    return {"text": text, "ball": ball}


@app.get("/api/simulation/cache")
async def cache_analytics():
    return simulation_cache.get_analytics()


# ------------------------------------------------------------------ #
#  Players
# ------------------------------------------------------------------ #

@app.get("/api/players/{player_id}")
async def get_player(player_id: int):
    record = await db.get_player_record(player_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Player not found")
    return record
