"""
Tests for the LLM-backed over generator and ball commentary.

The OpenAI client is replaced with a stand-in that returns canned
responses, so no network access is needed.
"""

import json
from types import SimpleNamespace

import pytest
from pydantic import ValidationError

from conftest import make_context
from cricsim.commentary import generator
from cricsim.commentary.generator import (
    OverGenerationError,
    SimulatedBall,
    generate_ball_commentary,
    generate_over,
    to_outcomes,
)
from cricsim.config import settings
from cricsim.engine.match_engine import process_ball
from cricsim.models import BallDetails, BallEventType, OutcomeType, WicketType


class _FakeCompletions:
    def __init__(self, content: str | None = None, error: Exception | None = None, tokens: int = 321):
        self.content = content
        self.error = error
        self.tokens = tokens
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))],
            usage=SimpleNamespace(total_tokens=self.tokens),
        )


@pytest.fixture
def fake_openai(monkeypatch):
    """Install a fake client; call with the canned content (or error)."""

    def _install(content: str | None = None, error: Exception | None = None) -> _FakeCompletions:
        completions = _FakeCompletions(content, error)
        client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
        monkeypatch.setattr(generator, "_client", client)
        return completions

    return _install


def _over(*balls: dict) -> str:
    return json.dumps({"over": list(balls)})


# --------------------------------------------------------------------------- #
#  Over generation
# --------------------------------------------------------------------------- #

@pytest.mark.asyncio
async def test_generate_over_parses_camel_case(new_match, fake_openai):
    completions = fake_openai(_over(
        {"event": "run", "runs": 4},
        {"event": "w", "wicketType": "Caught", "fielderId": 205},
        {"event": "wd", "extras": 1},
        {"event": "lb", "extras": 2},
    ))
    context = make_context(new_match(), complexity=8)

    generated = await generate_over(context)

    assert generated.total_tokens == 321
    assert [b.event for b in generated.balls] == [
        BallEventType.RUN, BallEventType.WICKET, BallEventType.WIDE, BallEventType.LEG_BYE,
    ]
    assert generated.balls[1].wicket_type == WicketType.CAUGHT
    assert generated.balls[1].fielder_id == 205

    call = completions.calls[0]
    assert call["model"] == settings.openai_model
    assert call["response_format"] == {"type": "json_object"}
    user_prompt = call["messages"][1]["content"]
    assert "Legal deliveries left in this over: 6" in user_prompt
    assert "Striker: Falcons 1" in user_prompt
    assert "Bowler: Tigers 11" in user_prompt


@pytest.mark.asyncio
async def test_generate_over_request_failure(new_match, fake_openai):
    fake_openai(error=ConnectionError("network down"))

    with pytest.raises(OverGenerationError) as exc:
        await generate_over(make_context(new_match()))

    assert isinstance(exc.value.__cause__, ConnectionError)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content",
    [
        None,
        "",
        "not json",
        json.dumps({"balls": []}),
        _over(),
        _over({"event": "run", "runs": 5}),
        _over({"event": "w"}),
        _over({"event": "b", "runs": 2}),
        _over(*[{"event": "run", "runs": 1}] * 7),
    ],
)
async def test_generate_over_rejects_bad_responses(new_match, fake_openai, content):
    fake_openai(content)

    with pytest.raises(OverGenerationError):
        await generate_over(make_context(new_match()))


@pytest.mark.asyncio
async def test_generate_over_rejects_too_many_legal_balls(new_match, fake_openai):
    fake_openai(_over({"event": "run", "runs": 1}, {"event": "wd", "extras": 1}, {"event": "run"}, {"event": "run"}))

    with pytest.raises(OverGenerationError):
        await generate_over(make_context(new_match(), ball=4))


@pytest.mark.asyncio
async def test_generate_over_allows_extras_beyond_balls_left(new_match, fake_openai):
    fake_openai(_over({"event": "wd", "extras": 1}, {"event": "nb", "extras": 1, "runs": 4}, {"event": "run", "runs": 2}))

    generated = await generate_over(make_context(new_match(), ball=5))

    assert len(generated.balls) == 3


# --------------------------------------------------------------------------- #
#  Conversion
# --------------------------------------------------------------------------- #

def test_to_outcomes_maps_every_event():
    balls = [
        SimulatedBall(event=BallEventType.RUN, runs=0),
        SimulatedBall(event=BallEventType.RUN, runs=3),
        SimulatedBall(event=BallEventType.WICKET, wicketType=WicketType.STUMPED),
        SimulatedBall(event=BallEventType.NO_BALL, extras=1, runs=2),
        SimulatedBall(event=BallEventType.WIDE, extras=3),
        SimulatedBall(event=BallEventType.BYE, extras=0),
    ]

    outcomes = to_outcomes(balls)

    assert [(o.type, o.runs) for o in outcomes] == [
        (OutcomeType.DOT, 0),
        (OutcomeType.TRIPLE, 3),
        (OutcomeType.WICKET, 0),
        (OutcomeType.NO_BALL, 3),
        (OutcomeType.WIDE, 3),
        (OutcomeType.BYE, 1),
    ]
    assert outcomes[2].wicket_type == WicketType.STUMPED


def test_simulated_ball_validation():
    with pytest.raises(ValidationError):
        SimulatedBall(event=BallEventType.LEG_BYE, runs=1)
    with pytest.raises(ValidationError):
        SimulatedBall(event=BallEventType.RUN, runs=7)
    assert not SimulatedBall(event=BallEventType.NO_BALL, extras=1).is_legal
    assert SimulatedBall(event=BallEventType.BYE, extras=1).is_legal


# --------------------------------------------------------------------------- #
#  Ball commentary
# --------------------------------------------------------------------------- #

@pytest.mark.asyncio
async def test_ball_commentary_strips_quotes(new_match, fake_openai):
    completions = fake_openai('  "What a strike, that has gone all the way!"  ')
    match = process_ball(new_match(), BallDetails(event=BallEventType.RUN, runs=6))
    innings = match.innings[0]

    text = await generate_ball_commentary(innings, innings.timeline[-1])

    assert text == "What a strike, that has gone all the way!"
    assert "SIX! Falcons 1 clears the rope" in completions.calls[0]["messages"][1]["content"]


@pytest.mark.asyncio
async def test_ball_commentary_falls_back_on_error(new_match, fake_openai):
    fake_openai(error=RuntimeError("rate limited"))
    match = process_ball(new_match(), BallDetails(event=BallEventType.RUN, runs=6))
    innings = match.innings[0]

    text = await generate_ball_commentary(innings, innings.timeline[-1])

    assert text == "SIX! Falcons 1 sends that into the stands!"


@pytest.mark.asyncio
async def test_ball_commentary_fallback_for_wicket(new_match, fake_openai):
    fake_openai(error=RuntimeError("rate limited"))
    match = process_ball(new_match(), BallDetails(event=BallEventType.WICKET, wicket_type=WicketType.BOWLED))
    innings = match.innings[0]

    text = await generate_ball_commentary(innings, innings.timeline[-1])

    assert text == "OUT! Falcons 1 has to go. Falcons are 0/1."
