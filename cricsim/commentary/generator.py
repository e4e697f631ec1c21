import logging
from typing import Optional

from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from cricsim.config import settings
from cricsim.models import (
    Ball,
    BallEventType,
    BallOutcome,
    CricketContext,
    Innings,
    OutcomeType,
    WicketType,
)
from cricsim.commentary.prompts import (
    COMMENTARY_SYSTEM_PROMPT,
    OVER_SYSTEM_PROMPT,
    format_commentary_prompt,
    format_over_prompt,
)
from cricsim.simulation.modifiers import PlayerModifiers

logger = logging.getLogger(__name__)

# Lazy-initialized client
_client: AsyncOpenAI | None = None

_OVER_TOKENS = 400
_COMMENTARY_TOKENS = 120


class OverGenerationError(RuntimeError):
    """The LLM call failed or returned something that is not a valid over."""


def _get_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        _client = AsyncOpenAI(api_key=settings.openai_api_key)
    return _client


# =========================================================================== #
#  Response schema
# =========================================================================== #

class SimulatedBall(BaseModel):
    """One delivery as returned by the model (camelCase keys accepted)."""

    model_config = ConfigDict(populate_by_name=True)

    event: BallEventType
    runs: int = Field(0, ge=0, le=6)
    extras: int = Field(0, ge=0)
    wicket_type: Optional[WicketType] = Field(None, alias="wicketType")
    fielder_id: Optional[int] = Field(None, alias="fielderId")

    @model_validator(mode="after")
    def _consistent(self) -> "SimulatedBall":
        if self.runs == 5:
            raise ValueError("runs off the bat must be 0, 1, 2, 3, 4 or 6")
        if self.event == BallEventType.WICKET and self.wicket_type is None:
            raise ValueError("wicketType is required for a wicket")
        if self.event in (BallEventType.LEG_BYE, BallEventType.BYE) and self.runs != 0:
            raise ValueError("byes and leg byes carry their runs in extras")
        return self

    @property
    def is_legal(self) -> bool:
        return self.event not in (BallEventType.WIDE, BallEventType.NO_BALL)


class SimulatedOver(BaseModel):
    over: list[SimulatedBall] = Field(..., min_length=1, max_length=6)


class GeneratedOver(BaseModel):
    balls: list[SimulatedBall]
    total_tokens: int = 0


# =========================================================================== #
#  Over generation
# =========================================================================== #

async def generate_over(context: CricketContext, modifiers: PlayerModifiers | None = None) -> GeneratedOver:
    """
    Ask the LLM for the next over. Raises OverGenerationError on a failed
    call or a response that does not match the schema; there is no fallback.
    """
    client = _get_client()
    user_prompt = format_over_prompt(context, modifiers)

    try:
        response = await client.chat.completions.create(
            model=settings.openai_model,
            messages=[
                {"role": "system", "content": OVER_SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            temperature=settings.ai_temperature,
            max_completion_tokens=_OVER_TOKENS,
            response_format={"type": "json_object"},
        )
    except Exception as e:
        logger.error(f"Over generation request failed: {e}")
        raise OverGenerationError(f"Over generation request failed: {e}") from e

    content = response.choices[0].message.content if response.choices else None
    if not content:
        logger.error("Over generation returned an empty response")
        raise OverGenerationError("Empty response from the over generator")

    try:
        parsed = SimulatedOver.model_validate_json(content)
    except ValidationError as e:
        logger.error(f"Over generation returned a malformed over: {e}")
        raise OverGenerationError(f"Malformed over: {e}") from e

    legal = sum(1 for b in parsed.over if b.is_legal)
    if legal > context.balls_left_in_over:
        raise OverGenerationError(
            f"Over has {legal} legal deliveries but only {context.balls_left_in_over} remain"
        )

    tokens = response.usage.total_tokens if response.usage else 0
    logger.info(f"Generated {len(parsed.over)}-ball over ({tokens} tokens)")
    return GeneratedOver(balls=parsed.over, total_tokens=tokens)


# =========================================================================== #
#  Ball commentary
# =========================================================================== #

async def generate_ball_commentary(innings: Innings, ball: Ball) -> str:
    """
    One or two lines of commentary on a delivery.
    Falls back to a template line if the API call fails.
    """
    client = _get_client()
    user_prompt = format_commentary_prompt(innings, ball)

    try:
        response = await client.chat.completions.create(
            model=settings.openai_model,
            messages=[
                {"role": "system", "content": COMMENTARY_SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            temperature=settings.ai_temperature,
            max_completion_tokens=_COMMENTARY_TOKENS,
        )
        commentary = response.choices[0].message.content.strip()
        # Strip quotes if the model wraps in quotes
        return commentary.strip('"').strip("'")

    except Exception as e:
        logger.error(f"OpenAI API error: {e}")
        return _fallback_commentary(innings, ball)


def _fallback_commentary(innings: Innings, ball: Ball) -> str:
    """Basic line used when the API is unavailable."""
    batter = innings.batting_team.get_player(ball.batter_id)
    name = batter.name if batter else "The batter"
    if ball.is_wicket:
        return f"OUT! {name} has to go. {innings.batting_team.name} are {innings.score}/{innings.wickets}."
    if ball.runs == 6:
        return f"SIX! {name} sends that into the stands!"
    if ball.runs == 4:
        return f"FOUR! {name} finds the gap and it races away."
    if ball.event == BallEventType.WIDE:
        return "Wide called, an extra to the total."
    if ball.event == BallEventType.NO_BALL:
        return "No-ball! Free hit coming up."
    if ball.runs + ball.extras == 0:
        return "Dot ball. Good tight bowling."
    return f"{ball.runs + ball.extras} taken, {innings.batting_team.name} move to {innings.score}/{innings.wickets}."


# =========================================================================== #
#  Conversion
# =========================================================================== #

_RUN_OUTCOMES = {
    0: OutcomeType.DOT,
    1: OutcomeType.SINGLE,
    2: OutcomeType.DOUBLE,
    3: OutcomeType.TRIPLE,
    4: OutcomeType.FOUR,
    6: OutcomeType.SIX,
}

_EXTRA_OUTCOMES = {
    BallEventType.WIDE: OutcomeType.WIDE,
    BallEventType.BYE: OutcomeType.BYE,
    BallEventType.LEG_BYE: OutcomeType.LEG_BYE,
}


def to_outcomes(balls: list[SimulatedBall]) -> list[BallOutcome]:
    """Map generated deliveries onto simulation outcomes."""
    outcomes = []
    for b in balls:
        if b.event == BallEventType.RUN:
            outcomes.append(BallOutcome.of(_RUN_OUTCOMES[b.runs]))
        elif b.event == BallEventType.WICKET:
            outcomes.append(BallOutcome(
                type=OutcomeType.WICKET, wicket_type=b.wicket_type, fielder_id=b.fielder_id,
            ))
        elif b.event == BallEventType.NO_BALL:
            outcomes.append(BallOutcome(type=OutcomeType.NO_BALL, runs=1 + b.runs))
        else:
            outcomes.append(BallOutcome(type=_EXTRA_OUTCOMES[b.event], runs=max(1, b.extras)))
    return outcomes
