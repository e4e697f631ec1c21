"""
Ball-by-ball match state machine.

Every public function takes a Match and hands back a new one, or None when a
precondition is not met (no bowler chosen, nothing to undo). The Match passed
in is never modified, so keeping the previous value around is all a caller
needs for previews and undo.
"""

import logging
import math
import random
import uuid

from cricsim.engine.ratings import apply_match_ratings, restore_pre_match_ratings
from cricsim.engine.situation import chase_target, wicket_limit
from cricsim.models import (
    BALLS_PER_OVER,
    MAX_PLAYERS,
    Ball,
    BallDetails,
    BallEventType,
    BattingRecord,
    BattingStatus,
    BowlingRecord,
    FallOfWicket,
    FieldPlacement,
    Innings,
    Match,
    MatchSettings,
    MatchStatus,
    Partnership,
    Player,
    RainSimulation,
    SuperOver,
    Team,
    Toss,
    TossDecision,
    WicketType,
)
from cricsim.storage.memory import PlayerStore

logger = logging.getLogger(__name__)

MAX_FIELDERS = 10
SUPER_OVER_OVERS = 1

# Events whose `runs` are off the bat (byes, leg byes and wides carry extras only)
_BATTER_EVENTS = (BallEventType.RUN, BallEventType.NO_BALL, BallEventType.WICKET)


# ------------------------------------------------------------------ #
#  Helpers
# ------------------------------------------------------------------ #

def _copy(match: Match) -> Match:
    return match.model_copy(deep=True)


def _swap_strike(innings: Innings) -> None:
    innings.striker, innings.non_striker = innings.non_striker, innings.striker


def _refresh_rates(innings: Innings) -> None:
    """Strike rates and economies are always recomputed from totals."""
    for p in innings.batting_team.players:
        b = p.batting
        b.strike_rate = round(b.runs / b.balls_faced * 100, 2) if b.balls_faced else 0.0
    for p in innings.bowling_team.players:
        w = p.bowling
        w.economy_rate = round(w.runs_conceded / (w.balls_bowled / BALLS_PER_OVER), 2) if w.balls_bowled else 0.0


def _over_is_maiden(innings: Innings, over_index: int) -> bool:
    over_balls = [b for b in innings.timeline if b.over_index == over_index]
    return bool(over_balls) and all(b.runs + b.extras == 0 for b in over_balls)


def _bowler_of_last_over(innings: Innings) -> int | None:
    if innings.overs == 0:
        return None
    for ball in reversed(innings.timeline):
        if ball.over_index == innings.overs - 1:
            return ball.bowler_id
    return None


def max_overs_per_bowler(max_overs: int) -> int:
    return max(1, math.ceil(max_overs / 5))


def _new_innings(batting: Team, bowling: Team, max_overs: int, target: int | None = None) -> Innings:
    """Snapshot both rosters with clean scorecards and send the openers in."""
    batting = batting.model_copy(deep=True)
    bowling = bowling.model_copy(deep=True)
    for team in (batting, bowling):
        for p in team.players:
            p.batting = BattingRecord()
            p.bowling = BowlingRecord()

    xi = batting.playing_xi
    striker, non_striker = xi[0], xi[1]
    striker.batting.status = BattingStatus.NOT_OUT
    non_striker.batting.status = BattingStatus.NOT_OUT
    return Innings(
        batting_team=batting,
        bowling_team=bowling,
        max_overs=max_overs,
        target=target,
        striker=striker.id,
        non_striker=non_striker.id,
        current_partnership=Partnership(batter1=striker.id, batter2=non_striker.id),
    )


def roll_rain(probability: float, overs: int, rng: random.Random) -> RainSimulation:
    """
    Decide up front whether (and where) rain will interrupt the match.
    The trigger stays hidden on the match until play reaches it.
    """
    rain = RainSimulation(probability=probability, original_overs=overs)
    # Below three overs the cap on overs lost rounds to zero
    if probability <= 0 or overs < 3:
        return rain
    if rng.random() * 100 < probability:
        rain.will_rain = True
        rain.interruption_innings = rng.choice([1, 2])
        rain.interruption_over = rng.randint(1, overs - 1)
        logger.debug(
            f"Rain scripted for innings {rain.interruption_innings}, over {rain.interruption_over}"
        )
    return rain


# ------------------------------------------------------------------ #
#  Match creation
# ------------------------------------------------------------------ #

def create_match(
    teams: list[Team],
    settings: MatchSettings,
    store: PlayerStore | None = None,
    rng: random.Random | None = None,
) -> Match:
    """
    Build a match after the toss. Players past the eleventh are substitutes.
    Ratings saved in `store` from earlier matches are carried over; an
    unreadable record is treated as "nothing saved yet".
    """
    if len(teams) != 2:
        raise ValueError(f"A match needs exactly two teams, got {len(teams)}")
    if {t.name for t in teams} != set(settings.team_names):
        raise ValueError(f"Team names {settings.team_names} do not match the teams supplied")

    rng = rng or random.Random()
    prepared: list[Team] = []
    seen_ids: set[int] = set()
    for team in teams:
        team = team.model_copy(deep=True)
        if len(team.players) < MAX_PLAYERS:
            raise ValueError(f"{team.name} has {len(team.players)} players, needs at least {MAX_PLAYERS}")
        team.impact_player_used = False
        for index, player in enumerate(team.players):
            if player.id in seen_ids:
                raise ValueError(f"Duplicate player id {player.id}")
            seen_ids.add(player.id)
            player.is_substitute = index >= MAX_PLAYERS
            player.is_impact_player = False
            player.batting = BattingRecord()
            player.bowling = BowlingRecord()
            if store is not None:
                record = _load_record(store, player.id)
                if record is not None:
                    player.rating = record.rating
        prepared.append(team)

    toss_winner = next((t for t in prepared if t.name == settings.toss_winner), None)
    if toss_winner is None:
        raise ValueError(f"Toss winner {settings.toss_winner!r} is not playing")
    other = prepared[1] if prepared[0] is toss_winner else prepared[0]
    if settings.toss_decision == TossDecision.BAT:
        batting_first, bowling_first = toss_winner, other
    else:
        batting_first, bowling_first = other, toss_winner

    match = Match(
        id=uuid.uuid4().hex,
        teams=prepared,
        overs_per_innings=settings.overs_per_innings,
        match_type=settings.match_type,
        toss=Toss(winner=settings.toss_winner, decision=settings.toss_decision),
    )
    if settings.rain_probability > 0:
        match.rain_simulation = roll_rain(settings.rain_probability, settings.overs_per_innings, rng)
    match.innings.append(_new_innings(batting_first, bowling_first, settings.overs_per_innings))

    logger.info(
        f"Match {match.id}: {batting_first.name} v {bowling_first.name}, "
        f"{settings.overs_per_innings} overs, {settings.toss_winner} chose to {settings.toss_decision.value}"
    )
    return match


def _load_record(store: PlayerStore, player_id: int):
    try:
        return store.load(player_id)
    except Exception as e:
        logger.debug(f"Ignoring unreadable record for player {player_id}: {e}")
        return None


# ------------------------------------------------------------------ #
#  Scoring a ball
# ------------------------------------------------------------------ #

def _display_token(details: BallDetails, is_wicket: bool) -> str:
    event = details.event
    if event == BallEventType.WICKET:
        return "W" if is_wicket else str(details.runs)
    if event == BallEventType.WIDE:
        return "wd"
    if event == BallEventType.NO_BALL:
        return "nb"
    if event == BallEventType.LEG_BYE:
        return f"{details.extras}lb"
    if event == BallEventType.BYE:
        return f"{details.extras}b"
    return str(details.runs)


def _build_ball(innings: Innings, details: BallDetails) -> Ball:
    is_wicket = details.event == BallEventType.WICKET
    if is_wicket and innings.is_free_hit and details.wicket_type != WicketType.RUN_OUT:
        # Only a run out stands on a free hit
        logger.info(f"{details.wicket_type.value} on a free hit, dismissal does not count")
        is_wicket = False

    return Ball(
        event=details.event,
        runs=details.runs,
        extras=details.extras,
        is_wicket=is_wicket,
        wicket_type=details.wicket_type if details.event == BallEventType.WICKET else None,
        batter_id=innings.striker,
        bowler_id=innings.current_bowler,
        fielder_id=details.fielder_id,
        display=_display_token(details, is_wicket),
        over=round(innings.overs + innings.balls_this_over / 10, 1),
    )


def _dismissal_text(ball: Ball, bowler: Player, fielder: Player | None) -> str:
    fielder_name = fielder.name if fielder else "Fielder"
    if ball.wicket_type == WicketType.CAUGHT:
        return f"c. {fielder_name} b. {bowler.name}"
    if ball.wicket_type == WicketType.RUN_OUT:
        return f"run out ({fielder_name})"
    if ball.wicket_type == WicketType.STUMPED:
        return f"st. {fielder_name} b. {bowler.name}"
    return f"{ball.wicket_type.value} b. {bowler.name}"


def _next_batter(innings: Innings) -> Player | None:
    """First player in the order who has not batted yet."""
    for p in innings.batting_team.playing_xi:
        if p.id in (innings.striker, innings.non_striker):
            continue
        if p.batting.status == BattingStatus.DID_NOT_BAT:
            return p
    return None


def _apply_wicket(match: Match, innings: Innings, ball: Ball, striker: Player, bowler: Player) -> None:
    fielder = innings.bowling_team.get_player(ball.fielder_id)
    innings.wickets += 1
    striker.batting.status = BattingStatus.OUT
    striker.batting.out_details = _dismissal_text(ball, bowler, fielder)
    innings.fall_of_wickets.append(FallOfWicket(
        wicket=innings.wickets,
        score=innings.score,
        over=round(innings.overs + innings.balls_this_over / 10, 1),
        player_out=striker.name,
    ))
    if ball.wicket_type != WicketType.RUN_OUT:
        bowler.bowling.wickets += 1

    incoming = None
    if innings.wickets < wicket_limit(match, innings):
        incoming = _next_batter(innings)
    if incoming is not None:
        incoming.batting.status = BattingStatus.NOT_OUT
        innings.striker = incoming.id
    else:
        innings.striker = None
    innings.current_partnership = Partnership(batter1=innings.striker, batter2=innings.non_striker)


def _apply_ball(match: Match, innings: Innings, ball: Ball) -> None:
    striker = innings.batting_team.get_player(ball.batter_id)
    bowler = innings.bowling_team.get_player(ball.bowler_id)
    total = ball.runs + ball.extras

    innings.score += total
    bowler.bowling.runs_conceded += total
    if ball.is_legal:
        bowler.bowling.balls_bowled += 1
        innings.balls_this_over += 1
        striker.batting.balls_faced += 1
        innings.current_partnership.balls += 1

    if ball.event == BallEventType.NO_BALL:
        innings.is_free_hit = True
    elif ball.is_legal:
        innings.is_free_hit = False

    if ball.event in _BATTER_EVENTS:
        striker.batting.runs += ball.runs
        innings.current_partnership.runs += ball.runs
        if ball.runs == 4:
            striker.batting.fours += 1
        elif ball.runs == 6:
            striker.batting.sixes += 1

    if ball.is_wicket:
        _apply_wicket(match, innings, ball, striker, bowler)

    if ball.is_legal and ball.runs % 2 == 1:
        _swap_strike(innings)

    if innings.balls_this_over == BALLS_PER_OVER:
        over_index = innings.overs
        innings.overs += 1
        innings.balls_this_over = 0
        _swap_strike(innings)
        if _over_is_maiden(innings, over_index):
            bowler.bowling.maidens += 1
        innings.field_placements = []
        if innings.overs < innings.max_overs:
            innings.current_bowler = None

    _refresh_rates(innings)


def process_ball(match: Match, details: BallDetails, store: PlayerStore | None = None) -> Match | None:
    """
    Score one delivery and return the resulting match.

    Returns None if no bowler (or no striker) is in place; the caller must
    prompt for a selection and must not treat the ball as bowled. A finished
    match is returned as-is.
    """
    if match.status == MatchStatus.FINISHED:
        return match
    current = match.active_innings
    if current is None or current.current_bowler is None or current.striker is None:
        return None

    new = _copy(match)
    innings = new.active_innings
    ball = _build_ball(innings, details)
    # Appended first: the ball belongs to this innings even if it ends it
    innings.timeline.append(ball)
    _apply_ball(new, innings, ball)
    _check_termination(new, innings, store)
    return new


def _check_termination(match: Match, innings: Innings, store: PlayerStore | None) -> None:
    target = chase_target(match, innings)
    if target is not None and innings.score >= target:
        _finish_match(match, store)
        return
    all_out = innings.wickets >= wicket_limit(match, innings)
    if all_out or innings.overs >= innings.max_overs:
        _end_innings(match, store)


# ------------------------------------------------------------------ #
#  Innings and match transitions
# ------------------------------------------------------------------ #

def _end_innings(match: Match, store: PlayerStore | None) -> None:
    if match.in_super_over:
        so = match.super_over
        if so.current_innings == 1:
            first = so.innings[0]
            so.innings.append(_new_innings(
                match.get_team(first.bowling_team.name),
                match.get_team(first.batting_team.name),
                SUPER_OVER_OVERS,
                target=first.score + 1,
            ))
            so.current_innings = 2
            logger.info(f"Super over: {first.bowling_team.name} need {first.score + 1}")
        else:
            _finish_match(match, store)
        return

    if match.current_innings == 1:
        first = match.innings[0]
        match.innings.append(_new_innings(
            match.get_team(first.bowling_team.name),
            match.get_team(first.batting_team.name),
            first.max_overs,
            target=first.score + 1,
        ))
        match.current_innings = 2
        logger.info(
            f"End of innings 1: {first.batting_team.name} {first.score}/{first.wickets} "
            f"({first.overs_display}), target {first.score + 1}"
        )
    else:
        _finish_match(match, store)


def _wickets_text(n: int) -> str:
    return f"{n} wicket" if n == 1 else f"{n} wickets"


def _runs_text(n: int) -> str:
    return f"{n} run" if n == 1 else f"{n} runs"


def _finish_match(match: Match, store: PlayerStore | None) -> None:
    if match.in_super_over:
        so = match.super_over
        first = so.innings[0]
        second = so.innings[1] if len(so.innings) > 1 else None
        if second is not None and second.score > first.score:
            match.result = f"{second.batting_team.name} won the Super Over."
        elif second is not None and second.score < first.score:
            match.result = f"{first.batting_team.name} won the Super Over."
        else:
            match.result = "Match tied (Super Over tied)."
        match.status = MatchStatus.FINISHED
        apply_match_ratings(match, store)
        logger.info(f"Match {match.id} finished: {match.result}")
        return

    if len(match.innings) < 2:
        match.result = "No result."
    else:
        first, second = match.innings
        target = second.target if second.target is not None else first.score + 1
        if second.score >= target:
            left = len(second.batting_team.playing_xi) - 1 - second.wickets
            match.result = f"{second.batting_team.name} won by {_wickets_text(left)}."
        elif second.score == target - 1:
            match.status = MatchStatus.SUPER_OVER
            match.result = None
            match.super_over = SuperOver(innings=[_new_innings(
                match.get_team(second.batting_team.name),
                match.get_team(second.bowling_team.name),
                SUPER_OVER_OVERS,
            )])
            logger.info(f"Match {match.id} tied on {second.score}, going to a super over")
            return
        else:
            match.result = f"{first.batting_team.name} won by {_runs_text(target - 1 - second.score)}."
        if match.rain_simulation and match.rain_simulation.applied:
            match.result = match.result.rstrip(".") + " (DLS)."

    match.status = MatchStatus.FINISHED
    apply_match_ratings(match, store)
    logger.info(f"Match {match.id} finished: {match.result}")


def end_innings(match: Match, store: PlayerStore | None = None) -> Match:
    """Close the current innings by hand (declaration, abandonment)."""
    if match.status == MatchStatus.FINISHED:
        return match
    new = _copy(match)
    _end_innings(new, store)
    return new


def finish_match(match: Match, store: PlayerStore | None = None) -> Match:
    """Compute the result now. A tie still goes to a super over."""
    if match.status == MatchStatus.FINISHED:
        return match
    new = _copy(match)
    _finish_match(new, store)
    return new


# ------------------------------------------------------------------ #
#  Undo
# ------------------------------------------------------------------ #

def _reopen(match: Match) -> None:
    restore_pre_match_ratings(match)
    match.result = None
    match.status = MatchStatus.SUPER_OVER if match.super_over is not None else MatchStatus.IN_PROGRESS


def _innings_with_last_ball(match: Match) -> Innings | None:
    """
    Find the innings holding the most recent ball, discarding innings that
    were opened but never bowled at (undo walks back through them).
    """
    if match.super_over is not None:
        so = match.super_over
        while so.innings:
            last = so.innings[-1]
            if last.timeline:
                so.current_innings = len(so.innings)
                match.status = MatchStatus.SUPER_OVER
                return last
            so.innings.pop()
        match.super_over = None
        match.status = MatchStatus.IN_PROGRESS
        match.result = None

    while match.innings:
        last = match.innings[-1]
        if last.timeline:
            match.current_innings = len(match.innings)
            return last
        if len(match.innings) == 1:
            return None
        match.innings.pop()
    return None


def _free_hit_pending(timeline: list[Ball]) -> bool:
    for ball in reversed(timeline):
        if ball.event == BallEventType.WIDE:
            continue
        return ball.event == BallEventType.NO_BALL
    return False


def _reverse_ball(innings: Innings, ball: Ball) -> None:
    striker = innings.batting_team.get_player(ball.batter_id)
    bowler = innings.bowling_team.get_player(ball.bowler_id)
    total = ball.runs + ball.extras

    # Unwind in the opposite order to _apply_ball
    if ball.is_legal and innings.balls_this_over == 0:
        innings.overs -= 1
        innings.balls_this_over = BALLS_PER_OVER
        _swap_strike(innings)
        over_balls = [b for b in innings.timeline if b.over_index == innings.overs] + [ball]
        if all(b.runs + b.extras == 0 for b in over_balls):
            bowler.bowling.maidens -= 1

    if ball.is_legal:
        innings.balls_this_over -= 1
        if ball.runs % 2 == 1:
            _swap_strike(innings)

    if ball.is_wicket:
        innings.wickets -= 1
        incoming = innings.batting_team.get_player(innings.striker)
        if (
            incoming is not None
            and incoming.id != striker.id
            and incoming.batting.status == BattingStatus.NOT_OUT
            and incoming.batting.balls_faced == 0
        ):
            incoming.batting.status = BattingStatus.DID_NOT_BAT
        innings.striker = striker.id
        striker.batting.status = BattingStatus.NOT_OUT
        striker.batting.out_details = None
        innings.fall_of_wickets.pop()
        if ball.wicket_type != WicketType.RUN_OUT:
            bowler.bowling.wickets -= 1
        # Known gap: the pair is restored but its earlier runs/balls are not
        innings.current_partnership = Partnership(batter1=innings.striker, batter2=innings.non_striker)
        logger.debug("Undo across a wicket: partnership totals restart from zero")

    innings.score -= total
    bowler.bowling.runs_conceded -= total
    if ball.is_legal:
        bowler.bowling.balls_bowled -= 1
        striker.batting.balls_faced -= 1
        if not ball.is_wicket:
            innings.current_partnership.balls -= 1

    if ball.event in _BATTER_EVENTS:
        striker.batting.runs -= ball.runs
        if ball.runs == 4:
            striker.batting.fours -= 1
        elif ball.runs == 6:
            striker.batting.sixes -= 1
        if not ball.is_wicket:
            innings.current_partnership.runs -= ball.runs

    innings.is_free_hit = _free_hit_pending(innings.timeline)
    innings.current_bowler = ball.bowler_id
    _refresh_rates(innings)


def undo_last_ball(match: Match) -> Match | None:
    """
    Take back the most recent delivery anywhere in the match, reversing each
    counter it moved. Returns None when no ball has been bowled.
    """
    new = _copy(match)
    if new.status == MatchStatus.FINISHED:
        _reopen(new)
    innings = _innings_with_last_ball(new)
    if innings is None:
        return None
    ball = innings.timeline.pop()
    _reverse_ball(innings, ball)
    logger.info(f"Undid {ball.display} at {ball.over} (match {match.id})")
    return new


# ------------------------------------------------------------------ #
#  Selections
# ------------------------------------------------------------------ #

def change_bowler(match: Match, bowler_id: int) -> Match | None:
    """
    Put a bowler on. Returns None if the player cannot bowl now: not in the
    fielding XI, bowled the previous over, or has no overs left.
    """
    innings = match.active_innings
    if innings is None or match.status == MatchStatus.FINISHED:
        return None
    player = innings.bowling_team.get_player(bowler_id)
    if player is None or not player.eligible:
        return None
    if innings.balls_this_over == 0:
        if _bowler_of_last_over(innings) == bowler_id:
            return None
        if player.bowling.overs_bowled >= max_overs_per_bowler(innings.max_overs):
            return None

    new = _copy(match)
    new.active_innings.current_bowler = bowler_id
    return new


def suggest_next_bowler(match: Match) -> int | None:
    """Pick the least-used bowler with overs left, preferring economy, then lineup from the tail."""
    innings = match.active_innings
    if innings is None:
        return None
    last = _bowler_of_last_over(innings)
    limit = max_overs_per_bowler(innings.max_overs)
    candidates = [p for p in reversed(innings.bowling_team.playing_xi) if p.id != last]
    fresh = [p for p in candidates if p.bowling.overs_bowled < limit]
    pool = fresh or candidates
    if not pool:
        return None
    best = min(pool, key=lambda p: (p.bowling.overs_bowled, p.bowling.economy_rate))
    return best.id


def select_next_batter(match: Match, player_id: int) -> Match | None:
    """
    Send in a chosen batter in place of the automatic pick (or into an empty
    striker slot). Only allowed before the current striker has faced a ball.
    """
    innings = match.active_innings
    if innings is None or match.status == MatchStatus.FINISHED:
        return None
    chosen = innings.batting_team.get_player(player_id)
    if chosen is None or not chosen.eligible or chosen.batting.status != BattingStatus.DID_NOT_BAT:
        return None
    current = innings.batting_team.get_player(innings.striker)
    if current is not None and current.batting.balls_faced > 0:
        return None

    new = _copy(match)
    innings = new.active_innings
    if current is not None:
        innings.batting_team.get_player(current.id).batting.status = BattingStatus.DID_NOT_BAT
    innings.batting_team.get_player(player_id).batting.status = BattingStatus.NOT_OUT
    innings.striker = player_id
    partnership = innings.current_partnership
    if partnership.batter1 == (current.id if current else None):
        partnership.batter1 = player_id
    elif partnership.batter2 == (current.id if current else None):
        partnership.batter2 = player_id
    return new


def use_impact_player(match: Match, team_id: int, player_out_id: int, player_in_id: int) -> Match:
    """Bring a substitute on in place of a member of the XI. Once per team per match."""
    team = next((t for t in match.teams if t.id == team_id), None)
    if team is None:
        raise ValueError(f"Unknown team {team_id}")
    if team.impact_player_used:
        raise ValueError(f"{team.name} has already used its impact player")
    player_in = team.get_player(player_in_id)
    player_out = team.get_player(player_out_id)
    if player_in is None or not player_in.is_substitute:
        raise ValueError(f"Player {player_in_id} is not a substitute for {team.name}")
    if player_out is None or not player_out.eligible:
        raise ValueError(f"Player {player_out_id} is not in the {team.name} XI")
    innings = match.active_innings
    if innings is not None and player_out_id in (innings.striker, innings.non_striker, innings.current_bowler):
        raise ValueError(f"{player_out.name} is on the field in an active role")

    new = _copy(match)
    snapshots = [t for inn in _all_innings(new) for t in (inn.batting_team, inn.bowling_team)]
    for t in [*new.teams, *snapshots]:
        if t.id != team_id:
            continue
        t.impact_player_used = True
        t.get_player(player_out_id).is_substitute = True
        t.get_player(player_in_id).is_impact_player = True
    logger.info(f"{team.name}: impact player {player_in.name} replaces {player_out.name}")
    return new


def _all_innings(match: Match) -> list[Innings]:
    innings = list(match.innings)
    if match.super_over is not None:
        innings.extend(match.super_over.innings)
    return innings


def update_field_placements(match: Match, placements: list[FieldPlacement]) -> Match:
    """Set the field for the current over; cleared when the over ends."""
    innings = match.active_innings
    if innings is None:
        raise ValueError("No innings in play")
    if len(placements) > MAX_FIELDERS:
        raise ValueError(f"At most {MAX_FIELDERS} fielders can be placed, got {len(placements)}")
    seen: set[int] = set()
    for placement in placements:
        player = innings.bowling_team.get_player(placement.player_id)
        if player is None or not player.eligible:
            raise ValueError(f"Player {placement.player_id} is not fielding")
        if placement.player_id == innings.current_bowler:
            raise ValueError("The bowler cannot be placed in the field")
        if placement.player_id in seen:
            raise ValueError(f"Player {placement.player_id} placed twice")
        seen.add(placement.player_id)

    new = _copy(match)
    new.active_innings.field_placements = [p.model_copy() for p in placements]
    return new
