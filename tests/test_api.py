"""
Integration tests for the FastAPI endpoints.

Uses conftest fixtures:
  - _init_test_db: autouse, fresh SQLite DB per test
  - client: httpx.AsyncClient wired to app via ASGITransport
"""

import json
from types import SimpleNamespace

import pytest

import cricsim.main as main_mod
from conftest import make_team, match_settings
from cricsim.commentary import generator
from cricsim.commentary.generator import OverGenerationError
from cricsim.config import settings
from cricsim.simulation.engine import SimulationEngine
from cricsim.simulation.strategies.ai_strategy import AIStrategy
from cricsim.simulation.strategies.rule_based_strategy import RuleBasedStrategy


def _create_body(overs: int = 2, **kw) -> dict:
    return {
        "teams": [make_team(1, "Falcons").model_dump(mode="json"), make_team(2, "Tigers").model_dump(mode="json")],
        "settings": match_settings(overs, **kw).model_dump(mode="json"),
    }


async def _create(client, overs: int = 2, bowler_id: int | None = 211) -> str:
    r = await client.post("/api/matches", json=_create_body(overs))
    assert r.status_code == 201
    match_id = r.json()["id"]
    if bowler_id is not None:
        r = await client.put(f"/api/matches/{match_id}/bowler", json={"bowler_id": bowler_id})
        assert r.status_code == 200
    return match_id


async def _ball(client, match_id: str, **details) -> dict:
    details.setdefault("event", "run")
    r = await client.post(f"/api/matches/{match_id}/balls", json=details)
    assert r.status_code == 200, r.text
    return r.json()


async def _bowl_over(client, match_id: str, bowler_id: int, runs: int = 0) -> dict:
    r = await client.put(f"/api/matches/{match_id}/bowler", json={"bowler_id": bowler_id})
    assert r.status_code == 200, r.text
    data = None
    for _ in range(6):
        data = await _ball(client, match_id, runs=runs)
    return data


# --------------------------------------------------------------------------- #
#  Match lifecycle
# --------------------------------------------------------------------------- #

@pytest.mark.asyncio
async def test_match_lifecycle(client):
    """POST create, GET list, GET detail, DELETE, GET returns 404."""
    r = await client.post("/api/matches", json=_create_body())
    assert r.status_code == 201
    data = r.json()
    match_id = data["id"]
    assert data["status"] == "in_progress"
    assert data["innings"][0]["batting_team"]["name"] == "Falcons"
    assert data["innings"][0]["current_bowler"] is None

    r = await client.get("/api/matches")
    assert r.status_code == 200
    assert [m["match_id"] for m in r.json()] == [match_id]
    assert r.json()[0]["title"] == "Falcons v Tigers"

    r = await client.get(f"/api/matches/{match_id}")
    assert r.status_code == 200
    assert r.json()["overs_per_innings"] == 2
    assert "player_of_the_match" not in r.json()

    r = await client.delete(f"/api/matches/{match_id}")
    assert r.status_code == 200
    assert r.json() == {"deleted": match_id}

    assert match_id not in main_mod._locks

    r = await client.get(f"/api/matches/{match_id}")
    assert r.status_code == 404
    r = await client.delete(f"/api/matches/{match_id}")
    assert r.status_code == 404
    assert match_id not in main_mod._locks


@pytest.mark.asyncio
async def test_create_match_rejects_bad_setup(client):
    body = _create_body(toss_winner="Eagles")
    r = await client.post("/api/matches", json=body)
    assert r.status_code == 422

    body = _create_body()
    body["teams"][0]["players"] = body["teams"][0]["players"][:9]
    r = await client.post("/api/matches", json=body)
    assert r.status_code == 422

    body = _create_body()
    body["settings"]["overs_per_innings"] = 0
    r = await client.post("/api/matches", json=body)
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_create_match_with_seeded_rain_is_reproducible(client):
    first = await client.post("/api/matches", json={**_create_body(overs=20, rain=100), "seed": 9})
    second = await client.post("/api/matches", json={**_create_body(overs=20, rain=100), "seed": 9})

    rain1, rain2 = first.json()["rain_simulation"], second.json()["rain_simulation"]
    assert rain1["will_rain"] is True
    assert rain1["interruption_over"] == rain2["interruption_over"]
    assert rain1["interruption_innings"] == rain2["interruption_innings"]


# --------------------------------------------------------------------------- #
#  Scoring
# --------------------------------------------------------------------------- #

@pytest.mark.asyncio
async def test_ball_needs_bowler(client):
    match_id = await _create(client, bowler_id=None)

    r = await client.post(f"/api/matches/{match_id}/balls", json={"event": "run", "runs": 1})

    assert r.status_code == 409


@pytest.mark.asyncio
async def test_ball_validation(client):
    match_id = await _create(client)

    r = await client.post(f"/api/matches/{match_id}/balls", json={"event": "w"})
    assert r.status_code == 422
    r = await client.post(f"/api/matches/{match_id}/balls", json={"event": "run", "runs": 7})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_score_and_undo(client):
    match_id = await _create(client)

    data = await _ball(client, match_id, runs=4)
    assert data["innings"][0]["score"] == 4
    data = await _ball(client, match_id, event="wd", extras=1)
    assert data["innings"][0]["score"] == 5
    assert data["innings"][0]["timeline"][-1]["display"] == "wd"

    r = await client.post(f"/api/matches/{match_id}/undo")
    assert r.status_code == 200
    assert r.json()["innings"][0]["score"] == 4

    r = await client.get(f"/api/matches/{match_id}")
    assert len(r.json()["innings"][0]["timeline"]) == 1


@pytest.mark.asyncio
async def test_undo_with_nothing_bowled(client):
    match_id = await _create(client)
    r = await client.post(f"/api/matches/{match_id}/undo")
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_bowler_rules(client):
    match_id = await _create(client, bowler_id=None)

    r = await client.put(f"/api/matches/{match_id}/bowler", json={"bowler_id": 101})
    assert r.status_code == 409
    r = await client.put(f"/api/matches/{match_id}/bowler", json={"bowler_id": 212})
    assert r.status_code == 409

    await _bowl_over(client, match_id, 211)
    r = await client.put(f"/api/matches/{match_id}/bowler", json={"bowler_id": 211})
    assert r.status_code == 409
    r = await client.put(f"/api/matches/{match_id}/bowler", json={"bowler_id": 210})
    assert r.status_code == 200
    assert r.json()["innings"][0]["current_bowler"] == 210


@pytest.mark.asyncio
async def test_select_batter(client):
    match_id = await _create(client)

    r = await client.put(f"/api/matches/{match_id}/batter", json={"player_id": 105})
    assert r.status_code == 200
    assert r.json()["innings"][0]["striker"] == 105

    await _ball(client, match_id, runs=0)
    r = await client.put(f"/api/matches/{match_id}/batter", json={"player_id": 106})
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_field_placements(client):
    match_id = await _create(client)

    r = await client.put(f"/api/matches/{match_id}/field", json={"placements": [
        {"player_id": 201, "position": "slip"},
        {"player_id": 205, "position": "point"},
    ]})
    assert r.status_code == 200
    assert len(r.json()["innings"][0]["field_placements"]) == 2

    r = await client.put(f"/api/matches/{match_id}/field", json={"placements": [
        {"player_id": 211, "position": "mid-off"},
    ]})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_impact_player_once_per_team(client):
    match_id = await _create(client)
    body = {"team_id": 2, "player_out_id": 209, "player_in_id": 212}

    r = await client.post(f"/api/matches/{match_id}/impact-player", json=body)
    assert r.status_code == 200
    tigers = next(t for t in r.json()["teams"] if t["id"] == 2)
    assert tigers["impact_player_used"] is True

    r = await client.post(f"/api/matches/{match_id}/impact-player", json=body)
    assert r.status_code == 422


# --------------------------------------------------------------------------- #
#  Situation and context
# --------------------------------------------------------------------------- #

@pytest.mark.asyncio
async def test_situation(client):
    match_id = await _create(client)
    await _ball(client, match_id, runs=2)

    r = await client.get(f"/api/matches/{match_id}/situation")

    assert r.status_code == 200
    data = r.json()
    assert data["innings"] == 1
    assert data["batting_team_name"] == "Falcons"
    assert data["is_chasing"] is False
    assert data["overs_left"] == pytest.approx(1.5)
    assert data["win_probability"] == 50.0


@pytest.mark.asyncio
async def test_context(client):
    match_id = await _create(client, bowler_id=None)
    r = await client.get(f"/api/matches/{match_id}/context")
    assert r.status_code == 409

    await client.put(f"/api/matches/{match_id}/bowler", json={"bowler_id": 211})
    r = await client.get(f"/api/matches/{match_id}/context")

    assert r.status_code == 200
    data = r.json()
    assert data["phase"] == "POWERPLAY"
    assert data["complexity"] == 2
    assert data["pressure"]["wickets_in_hand"] == 10
    assert "Falcons batting against Tigers" in data["summary"]


@pytest.mark.asyncio
async def test_unknown_match_is_404(client):
    for method, path in [
        ("get", "/api/matches/missing/situation"),
        ("get", "/api/matches/missing/context"),
        ("post", "/api/matches/missing/undo"),
        ("post", "/api/matches/missing/simulate-over"),
        ("post", "/api/matches/missing/commentary"),
    ]:
        r = await getattr(client, method)(path)
        assert r.status_code == 404, path


# --------------------------------------------------------------------------- #
#  Simulation
# --------------------------------------------------------------------------- #

@pytest.mark.asyncio
async def test_simulate_over_applies_and_persists(client):
    match_id = await _create(client, overs=20)
    main_mod.engines[match_id] = SimulationEngine(main_mod.simulation_cache, [RuleBasedStrategy()])

    r = await client.post(f"/api/matches/{match_id}/simulate-over", json={})

    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "completed"
    assert data["strategy"] == "Rule-based"
    assert len(data["applied"]) == 6
    assert data["pending"] == []
    assert data["match"]["innings"][0]["score"] == 6

    r = await client.get(f"/api/matches/{match_id}")
    assert r.json()["innings"][0]["score"] == 6
    assert r.json()["innings"][0]["current_bowler"] is None


@pytest.mark.asyncio
async def test_simulate_over_with_default_engine(client):
    match_id = await _create(client, overs=20)

    r = await client.post(f"/api/matches/{match_id}/simulate-over", json={"seed": 11})

    assert r.status_code == 200
    data = r.json()
    assert data["strategy"] == "Template"
    assert data["status"] == "completed"
    assert data["match"]["innings"][0]["timeline"]

    r = await client.get("/api/simulation/cache")
    assert r.status_code == 200
    assert r.json()["size"] == 1


@pytest.mark.asyncio
async def test_simulate_over_waits_for_bowler(client):
    match_id = await _create(client, bowler_id=None)

    r = await client.post(f"/api/matches/{match_id}/simulate-over")

    assert r.status_code == 200
    assert r.json()["status"] == "awaiting_bowler"
    assert r.json()["strategy"] is None


@pytest.mark.asyncio
async def test_simulate_over_generation_failure_is_502(client):
    async def failing(context, modifiers):
        raise OverGenerationError("upstream timeout")

    match_id = await _create(client)
    main_mod.engines[match_id] = SimulationEngine(
        main_mod.simulation_cache, [AIStrategy(threshold=1, generate=failing)]
    )

    r = await client.post(f"/api/matches/{match_id}/simulate-over", json={})

    assert r.status_code == 502
    assert "upstream timeout" in r.json()["detail"]
    r = await client.get(f"/api/matches/{match_id}")
    assert r.json()["innings"][0]["timeline"] == []
    assert r.json()["innings"][0]["current_bowler"] == 211


@pytest.mark.asyncio
async def test_stream_over_emits_ball_events(client, monkeypatch):
    monkeypatch.setattr(settings, "ball_delay_seconds", 0.0)
    match_id = await _create(client, overs=20)
    main_mod.engines[match_id] = SimulationEngine(main_mod.simulation_cache, [RuleBasedStrategy()])

    r = await client.get(f"/api/matches/{match_id}/simulate-over/stream")

    assert r.status_code == 200
    events = []
    current = None
    for line in r.text.splitlines():
        if line.startswith("event:"):
            current = line.split(":", 1)[1].strip()
        elif line.startswith("data:") and current in ("ball", "over_end"):
            events.append((current, json.loads(line.split(":", 1)[1].strip())))

    balls = [data for name, data in events if name == "ball"]
    assert len(balls) == 6
    assert [b["score"] for b in balls] == [1, 2, 3, 4, 5, 6]
    assert events[-1][0] == "over_end"
    assert events[-1][1]["status"] == "completed"
    assert events[-1][1]["strategy"] == "Rule-based"

    r = await client.get(f"/api/matches/{match_id}")
    assert r.json()["innings"][0]["score"] == 6


# --------------------------------------------------------------------------- #
#  Commentary, players
# --------------------------------------------------------------------------- #

@pytest.mark.asyncio
async def test_commentary_for_last_ball(client, monkeypatch):
    async def offline(**kwargs):
        raise ConnectionError("offline")

    fake = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=offline)))
    monkeypatch.setattr(generator, "_client", fake)
    match_id = await _create(client)

    r = await client.post(f"/api/matches/{match_id}/commentary")
    assert r.status_code == 409

    await _ball(client, match_id, runs=4)
    r = await client.post(f"/api/matches/{match_id}/commentary")

    assert r.status_code == 200
    assert r.json()["text"] == "FOUR! Falcons 1 finds the gap and it races away."
    assert r.json()["ball"]["display"] == "4"


@pytest.mark.asyncio
async def test_finished_match_saves_player_records(client):
    match_id = await _create(client, bowler_id=None)
    r = await client.get("/api/players/101")
    assert r.status_code == 404

    await _bowl_over(client, match_id, 211)
    await _bowl_over(client, match_id, 210)
    data = await _bowl_over(client, match_id, 111, runs=1)

    assert data["status"] == "finished"
    assert data["result"] == "Tigers won by 10 wickets."

    r = await client.get(f"/api/matches/{match_id}")
    assert r.json()["player_of_the_match"] is not None

    r = await client.get("/api/players/201")
    assert r.status_code == 200
    record = r.json()
    assert record["history"]["matches"] == 1
    assert record["history"]["runs"] == 1


@pytest.mark.asyncio
async def test_finished_match_releases_its_engine(client):
    match_id = await _create(client, bowler_id=None)
    main_mod.engines[match_id] = SimulationEngine(main_mod.simulation_cache, [RuleBasedStrategy()])

    await _bowl_over(client, match_id, 211)
    await _bowl_over(client, match_id, 210)
    assert match_id in main_mod.engines

    data = await _bowl_over(client, match_id, 111, runs=1)

    assert data["status"] == "finished"
    assert match_id not in main_mod.engines
