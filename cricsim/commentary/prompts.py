import logging

from cricsim.models import Ball, BallEventType, CricketContext, Innings, Player
from cricsim.simulation.modifiers import PlayerModifiers

logger = logging.getLogger(__name__)


# =========================================================================== #
#  Over simulation
# =========================================================================== #

OVER_SYSTEM_PROMPT = """You are a cricket match simulator.
Given the state of a limited-overs match, you decide what happens in the next over, ball by ball.

RULES:
- Return ONLY a JSON object of the form {"over": [ ...balls ]}
- Give one entry per delivery, at most 6 entries, and no more legal deliveries than the over has left
- Each ball is {"event": ..., "runs": ..., "extras": ..., "wicketType": ..., "fielderId": ...}
- event is one of: "run", "w" (wicket), "wd" (wide), "nb" (no-ball), "lb" (leg bye), "b" (bye)
- runs is runs off the bat: 0, 1, 2, 3, 4 or 6. For "lb" and "b" runs must be 0 and the runs go in extras
- extras is 1 for a wide or no-ball, or the number of byes / leg byes
- wicketType is required when event is "w": one of "Bowled", "Caught", "LBW", "Run Out", "Stumped", "Hit Wicket"
- fielderId is optional; when the dismissal needs a fielder, pick one of the fielder ids supplied
- Make the over plausible for the situation: pressure, momentum and player ratings should all show
"""

OVER_USER_TEMPLATE = """Match Situation:
{summary}

Fielder ids for the bowling side: {fielder_ids}
Legal deliveries left in this over: {balls_left}

Simulate the over."""


def _player_line(role: str, player: Player, modifiers: PlayerModifiers | None) -> str:
    line = f"- {role}: {player.name} (rating {player.rating:.0f})"
    if role == "Bowler":
        b = player.bowling
        line += f", {b.overs_display} overs, {b.wickets}/{b.runs_conceded}"
    else:
        b = player.batting
        line += f", {b.runs} off {b.balls_faced}"
    hint = modifiers.narrative(player.id) if modifiers else None
    if hint:
        line += f". Note: {hint}"
    return line


def build_situation_summary(context: CricketContext, modifiers: PlayerModifiers | None = None) -> str:
    """Natural-language summary of the context for the over generator."""
    p, m = context.pressure, context.momentum
    lines = [
        f"Innings {context.innings_number}, over {context.over + 1} (ball {context.ball} of the over bowled)",
        f"Phase: {context.phase.value}",
        f"{context.batting_team.name} batting against {context.bowling_team.name}",
        f"Score: {context.score}/{context.wickets} from {context.max_overs} overs available",
    ]
    if context.target is not None:
        lines.append(f"Target: {context.target} (required rate {p.required_run_rate:.2f})")
    lines += [
        f"Current run rate: {p.current_run_rate:.2f}",
        f"Wickets in hand: {p.wickets_in_hand}",
        f"Dot balls in a row: {p.dot_ball_pressure}, balls since last boundary: {p.boundary_pressure}",
        f"Momentum: batting {m.batting_momentum:+.1f}, bowling {m.bowling_momentum:+.1f}, this over {m.over_momentum:+.1f}",
        "Players:",
        _player_line("Striker", context.striker, modifiers),
        _player_line("Non-striker", context.non_striker, modifiers),
        _player_line("Bowler", context.bowler, modifiers),
    ]
    return "\n".join(lines)


def format_over_prompt(context: CricketContext, modifiers: PlayerModifiers | None = None) -> str:
    fielder_ids = [pl.id for pl in context.bowling_team.playing_xi if pl.id != context.bowler.id]
    return OVER_USER_TEMPLATE.format(
        summary=build_situation_summary(context, modifiers),
        fielder_ids=", ".join(str(i) for i in fielder_ids),
        balls_left=context.balls_left_in_over,
    )


# =========================================================================== #
#  Ball commentary
# =========================================================================== #

COMMENTARY_SYSTEM_PROMPT = """You are a live TV cricket commentator. Energetic, warm, a little playful.

RULES:
- 1-2 lines, 10-35 words
- React to the delivery you are given, using the score context
- Only use the facts provided; don't invent shots or fielders
- No hashtags, no emojis, no quotes around the line
"""

COMMENTARY_USER_TEMPLATE = """{batting_team} {score}/{wickets} ({overs} ov){chase}
Bowler: {bowler} to {batter}
Delivery: {event_description}

Commentary:"""


def build_event_description(ball: Ball, batter: str, bowler: str) -> str:
    if ball.is_wicket:
        return f"WICKET! {batter} out, {ball.wicket_type.value}"
    if ball.event == BallEventType.WICKET:
        return f"{ball.wicket_type.value} on a free hit, not out"
    if ball.event == BallEventType.WIDE:
        return f"Wide ball, {ball.extras} extra"
    if ball.event == BallEventType.NO_BALL:
        return f"No-ball, {ball.runs} off the bat, free hit coming"
    if ball.event in (BallEventType.BYE, BallEventType.LEG_BYE):
        kind = "byes" if ball.event == BallEventType.BYE else "leg byes"
        return f"{ball.extras} {kind}"
    if ball.runs == 6:
        return f"SIX! {batter} clears the rope"
    if ball.runs == 4:
        return f"FOUR! {batter} finds the boundary"
    if ball.runs == 0:
        return f"Dot ball, {bowler} keeps it tight"
    return f"{ball.runs} run{'s' if ball.runs > 1 else ''}"


def format_commentary_prompt(innings: Innings, ball: Ball) -> str:
    batter = innings.batting_team.get_player(ball.batter_id)
    bowler = innings.bowling_team.get_player(ball.bowler_id)
    batter_name = batter.name if batter else "The batter"
    bowler_name = bowler.name if bowler else "The bowler"
    chase = ""
    if innings.target is not None:
        chase = f", need {max(0, innings.target - innings.score)} off {innings.balls_remaining}"
    return COMMENTARY_USER_TEMPLATE.format(
        batting_team=innings.batting_team.name,
        score=innings.score,
        wickets=innings.wickets,
        overs=innings.overs_display,
        chase=chase,
        bowler=bowler_name,
        batter=batter_name,
        event_description=build_event_description(ball, batter_name, bowler_name),
    )
