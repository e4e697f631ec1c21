#!/usr/bin/env python3
"""
Simulate a complete match offline and print the scorecard.

Every over is produced by the simulation dispatcher and scored through the
match engine; bowlers are picked with suggest_next_bowler.

Usage:
    python scripts/simulate_match.py                      # T20, random seed
    python scripts/simulate_match.py --overs 5 --seed 7   # short, reproducible
    python scripts/simulate_match.py --rain 60 --no-ai    # rain likely, no LLM calls
"""

import argparse
import asyncio
import logging
import random
import sys
from pathlib import Path

# Allow importing cricsim when run as script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from cricsim.config import settings  # noqa: E402
from cricsim.engine.match_engine import (  # noqa: E402
    change_bowler,
    create_match,
    end_innings,
    max_overs_per_bowler,
    suggest_next_bowler,
)
from cricsim.engine.ratings import player_of_the_match  # noqa: E402
from cricsim.models import (  # noqa: E402
    BattingStatus,
    Innings,
    Match,
    MatchSettings,
    MatchStatus,
    MatchType,
    Player,
    Team,
    TossDecision,
)
from cricsim.simulation.cache import SimulationCache  # noqa: E402
from cricsim.simulation.engine import SimulationEngine, default_strategies  # noqa: E402
from cricsim.simulation.flow import FlowStatus, simulate_and_apply_over  # noqa: E402
from cricsim.simulation.modifiers import load_player_modifiers  # noqa: E402
from cricsim.storage.memory import InMemoryPlayerStore  # noqa: E402

MATCH_TYPES = {
    20: MatchType.T20,
    50: MatchType.FIFTY_OVERS,
    10: MatchType.TEN_OVERS,
    5: MatchType.FIVE_OVERS,
    2: MatchType.TWO_OVERS,
}

SQUADS = {
    "Falcons": [
        "A. Rahane", "S. Dhawan", "K. Nair", "R. Pant", "H. Pandya", "R. Jadeja",
        "W. Sundar", "B. Kumar", "M. Shami", "Y. Chahal", "J. Bumrah", "S. Dube",
    ],
    "Tigers": [
        "D. Warner", "T. Head", "S. Smith", "M. Labuschagne", "G. Maxwell", "M. Marsh",
        "A. Carey", "P. Cummins", "M. Starc", "A. Zampa", "J. Hazlewood", "C. Green",
    ],
}


def build_teams() -> list[Team]:
    teams = []
    for team_id, (name, squad) in enumerate(SQUADS.items(), start=1):
        players = [
            Player(id=team_id * 100 + i, name=player_name)
            for i, player_name in enumerate(squad, start=1)
        ]
        teams.append(Team(id=team_id, name=name, players=players))
    return teams


def _ensure_bowler(match: Match) -> Match:
    innings = match.active_innings
    if innings is None or innings.current_bowler is not None:
        return match
    suggested = suggest_next_bowler(match)
    new = change_bowler(match, suggested) if suggested is not None else None
    if new is not None:
        return new
    # The suggestion can be over the limit when every fresh bowler is exhausted
    for player in innings.bowling_team.playing_xi:
        new = change_bowler(match, player.id)
        if new is not None:
            return new
    raise RuntimeError(f"No eligible bowler for over {innings.overs + 1}")


# ------------------------------------------------------------------ #
#  Scorecard
# ------------------------------------------------------------------ #

def print_innings(title: str, innings: Innings) -> None:
    print(f"\n{title}: {innings.batting_team.name} {innings.score}/{innings.wickets} ({innings.overs_display} ov)")
    print(f"  {'Batter':<18}{'R':>5}{'B':>5}{'4s':>4}{'6s':>4}{'SR':>8}  Dismissal")
    for p in innings.batting_team.playing_xi:
        b = p.batting
        if b.status == BattingStatus.DID_NOT_BAT:
            continue
        how = b.out_details if b.status == BattingStatus.OUT else "not out"
        print(f"  {p.name:<18}{b.runs:>5}{b.balls_faced:>5}{b.fours:>4}{b.sixes:>4}{b.strike_rate:>8.1f}  {how}")

    print(f"  {'Bowler':<18}{'O':>6}{'M':>4}{'R':>5}{'W':>4}{'Econ':>7}")
    for p in innings.bowling_team.playing_xi:
        w = p.bowling
        if w.balls_bowled == 0:
            continue
        print(f"  {p.name:<18}{w.overs_display:>6}{w.maidens:>4}{w.runs_conceded:>5}{w.wickets:>4}{w.economy_rate:>7.2f}")

    if innings.fall_of_wickets:
        fow = ", ".join(f"{f.score}-{f.wicket} ({f.player_out}, {f.over})" for f in innings.fall_of_wickets)
        print(f"  FoW: {fow}")


def print_scorecard(match: Match) -> None:
    for i, innings in enumerate(match.innings, start=1):
        print_innings(f"Innings {i}", innings)
    if match.super_over is not None:
        for i, innings in enumerate(match.super_over.innings, start=1):
            print_innings(f"Super Over {i}", innings)

    print(f"\nResult: {match.result}")
    potm_id = player_of_the_match(match)
    for team in match.teams:
        player = team.get_player(potm_id)
        if player:
            print(f"Player of the match: {player.name} ({team.name})")


# ------------------------------------------------------------------ #
#  Main loop
# ------------------------------------------------------------------ #

async def run(overs: int, seed: int | None, rain: float, use_ai: bool) -> Match:
    rng = random.Random(seed)
    teams = build_teams()
    toss_winner = rng.choice(teams).name
    match_settings = MatchSettings(
        team_names=[t.name for t in teams],
        overs_per_innings=overs,
        toss_winner=toss_winner,
        toss_decision=rng.choice(list(TossDecision)),
        match_type=MATCH_TYPES.get(overs, MatchType.T20),
        rain_probability=rain,
    )
    store = InMemoryPlayerStore()
    match = create_match(teams, match_settings, store=store, rng=rng)
    print(
        f"{toss_winner} won the toss and chose to {match_settings.toss_decision.value}. "
        f"{overs} overs a side, at most {max_overs_per_bowler(overs)} per bowler."
    )

    cache = SimulationCache(settings.simulation_cache_size)
    modifiers = load_player_modifiers()
    engine = SimulationEngine(
        cache,
        default_strategies(cache, modifiers, rng, use_ai=use_ai),
        modifiers=modifiers,
        rng=rng,
    )

    while match.status != MatchStatus.FINISHED:
        match = _ensure_bowler(match)
        result = await simulate_and_apply_over(match, engine, rng=rng, store=store)
        match = result.match
        if result.rain_message:
            print(f"\n*** {result.rain_message}")
        if result.status == FlowStatus.INNINGS_ENDED and match.in_super_over:
            print("\n*** Scores level. Super over!")
        if result.status == FlowStatus.AWAITING_BATTER:
            # No one left to come in: the innings is over
            match = end_innings(match, store)

    print_scorecard(match)
    print(f"\nSimulation cache: {cache.get_analytics()}")
    return match


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulate a full limited-overs match offline")
    parser.add_argument("--overs", type=int, default=20, help="Overs per innings (default: 20)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for a reproducible match")
    parser.add_argument("--rain", type=float, default=0.0, help="Chance of rain, 0-100 (default: 0)")
    parser.add_argument("--no-ai", action="store_true", help="Never call the LLM, even for complex overs")
    args = parser.parse_args()

    if not 1 <= args.overs <= 100:
        print(f"ERROR: --overs must be between 1 and 100, got {args.overs}")
        sys.exit(1)

    use_ai = not args.no_ai and bool(settings.openai_api_key)
    if not args.no_ai and not use_ai:
        print("OPENAI_API_KEY not set, simulating without the LLM")

    logging.basicConfig(level=logging.WARNING)
    asyncio.run(run(args.overs, args.seed, args.rain, use_ai))


if __name__ == "__main__":
    main()
