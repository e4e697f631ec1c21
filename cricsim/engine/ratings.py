"""
Post-match player ratings and career history.

Ratings move by a bounded amount each match, driven by what the player did
with bat and ball, and are clamped to [1, 100].
"""

import logging

from cricsim.models import (
    BALLS_PER_OVER,
    BattingRecord,
    BattingStatus,
    BowlingRecord,
    MatchLine,
    Match,
    Player,
    PlayerHistory,
    PlayerRecord,
)
from cricsim.storage.memory import PlayerStore

logger = logging.getLogger(__name__)

MIN_RATING = 1.0
MAX_RATING = 100.0
RECENT_MATCHES_KEPT = 20


def calculate_rating_change(batting: BattingRecord, bowling: BowlingRecord) -> float:
    change = 0.0

    # --- Batting ---
    if batting.balls_faced > 0:
        change += batting.runs * 0.1
        if batting.runs >= 100:
            change += 10
        elif batting.runs >= 50:
            change += 5
        strike_rate = batting.runs / batting.balls_faced * 100
        if strike_rate > 150:
            change += (strike_rate - 150) * 0.02
        elif strike_rate < 80 and batting.balls_faced > 10:
            change -= (80 - strike_rate) * 0.02

    # --- Bowling ---
    if bowling.balls_bowled > 0:
        change += bowling.wickets * 2
        if bowling.wickets >= 5:
            change += 10
        elif bowling.wickets >= 3:
            change += 5
        change += bowling.maidens * 2
        economy = bowling.runs_conceded / (bowling.balls_bowled / BALLS_PER_OVER)
        if bowling.balls_bowled >= 12:
            if economy < 4:
                change += 4 - economy
            elif economy > 10:
                change -= (economy - 10) * 0.5

    return change


def clamp_rating(value: float) -> float:
    return max(MIN_RATING, min(MAX_RATING, value))


def collect_performances(match: Match) -> dict[int, tuple[Player, BattingRecord, BowlingRecord]]:
    """
    Merge each player's batting and bowling from the main innings.
    Innings snapshots hold innings-scoped stats, so a player's batting comes
    from the innings their side batted and their bowling from the one it bowled.
    """
    merged: dict[int, tuple[Player, BattingRecord, BowlingRecord]] = {}
    for team in match.teams:
        for player in team.playing_xi:
            merged[player.id] = (player, BattingRecord(), BowlingRecord())

    for innings in match.innings:
        for p in innings.batting_team.players:
            if p.id in merged and p.batting.status != BattingStatus.DID_NOT_BAT:
                player, _, bowling = merged[p.id]
                merged[p.id] = (player, p.batting, bowling)
        for p in innings.bowling_team.players:
            if p.id in merged and p.bowling.balls_bowled > 0:
                player, batting, _ = merged[p.id]
                merged[p.id] = (player, batting, p.bowling)
    return merged


def updated_ratings(match: Match) -> dict[int, float]:
    """New rating per player id after this match."""
    ratings = {}
    for pid, (player, batting, bowling) in collect_performances(match).items():
        ratings[pid] = round(clamp_rating(player.rating + calculate_rating_change(batting, bowling)), 2)
    return ratings


def player_of_the_match(match: Match) -> int | None:
    """Id of the player whose performance earned the biggest rating gain."""
    best_id, best_change = None, float("-inf")
    for pid, (_, batting, bowling) in collect_performances(match).items():
        change = calculate_rating_change(batting, bowling)
        if change > best_change:
            best_id, best_change = pid, change
    return best_id


def update_player_history(
    record: PlayerRecord,
    match_id: str,
    batting: BattingRecord,
    bowling: BowlingRecord,
    rating: float,
) -> PlayerRecord:
    """
    Add one match to a player's record. A match already on the record (it
    was finished, undone and finished again) replaces the earlier entry.
    """
    record = record.model_copy(deep=True)
    h = record.history
    _remove_match_line(h, match_id)
    prior_highest, prior_best = h.highest_score, h.best_bowling

    h.matches += 1
    h.runs += batting.runs
    h.balls_faced += batting.balls_faced
    h.fours += batting.fours
    h.sixes += batting.sixes
    h.highest_score = max(h.highest_score, batting.runs)
    if batting.runs >= 100:
        h.hundreds += 1
    elif batting.runs >= 50:
        h.fifties += 1
    h.wickets += bowling.wickets
    h.balls_bowled += bowling.balls_bowled
    h.runs_conceded += bowling.runs_conceded
    h.maidens += bowling.maidens
    if bowling.balls_bowled and _better_figures(bowling, h.best_bowling):
        h.best_bowling = f"{bowling.wickets}/{bowling.runs_conceded}"

    h.recent_matches.append(MatchLine(
        match_id=match_id,
        runs=batting.runs,
        balls_faced=batting.balls_faced,
        fours=batting.fours,
        sixes=batting.sixes,
        wickets=bowling.wickets,
        runs_conceded=bowling.runs_conceded,
        balls_bowled=bowling.balls_bowled,
        maidens=bowling.maidens,
        rating_after=rating,
        prior_highest_score=prior_highest,
        prior_best_bowling=prior_best,
    ))
    h.recent_matches = h.recent_matches[-RECENT_MATCHES_KEPT:]
    record.rating = rating
    return record


def _remove_match_line(h: PlayerHistory, match_id: str) -> None:
    """Take a match's totals back out of the history, if it is there."""
    index = next((i for i, line in enumerate(h.recent_matches) if line.match_id == match_id), None)
    if index is None:
        return
    line = h.recent_matches.pop(index)
    h.matches -= 1
    h.runs -= line.runs
    h.balls_faced -= line.balls_faced
    h.fours -= line.fours
    h.sixes -= line.sixes
    if line.runs >= 100:
        h.hundreds -= 1
    elif line.runs >= 50:
        h.fifties -= 1
    h.wickets -= line.wickets
    h.balls_bowled -= line.balls_bowled
    h.runs_conceded -= line.runs_conceded
    h.maidens -= line.maidens
    # Bests only roll back when nothing has been added since
    if index == len(h.recent_matches):
        h.highest_score = line.prior_highest_score
        h.best_bowling = line.prior_best_bowling


def _better_figures(bowling: BowlingRecord, best: str | None) -> bool:
    if not best:
        return True
    wickets, runs = (int(x) for x in best.split("/"))
    return (bowling.wickets, -bowling.runs_conceded) > (wickets, -runs)


def apply_match_ratings(match: Match, store: PlayerStore | None = None) -> None:
    """
    Write new ratings onto match.teams (in place) and, when a store is given,
    save each player's record. Store failures are logged, never raised.
    """
    performances = collect_performances(match)
    ratings = updated_ratings(match)
    for team in match.teams:
        for player in team.players:
            if player.id in ratings:
                player.rating = ratings[player.id]

    if store is None:
        return

    for pid, (player, batting, bowling) in performances.items():
        try:
            existing = store.load(pid)
        except Exception as e:
            logger.debug(f"Unreadable record for player {pid}, starting fresh: {e}")
            existing = None
        record = existing or PlayerRecord(player_id=pid, name=player.name)
        record.name = player.name
        record = update_player_history(record, match.id, batting, bowling, ratings[pid])
        try:
            store.save(record)
        except Exception as e:
            logger.error(f"Failed to save rating for player {pid} ({player.name}): {e}")


def restore_pre_match_ratings(match: Match) -> None:
    """Undo apply_match_ratings on match.teams using the first-innings snapshots."""
    if not match.innings:
        return
    first = match.innings[0]
    for team in match.teams:
        snapshot = first.batting_team if first.batting_team.id == team.id else first.bowling_team
        for player in team.players:
            before = snapshot.get_player(player.id)
            if before is not None:
                player.rating = before.rating
