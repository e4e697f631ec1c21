from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


MAX_PLAYERS = 11
BALLS_PER_OVER = 6
SUPER_OVER_WICKETS = 2


# =========================================================================== #
#  Enumerations
# =========================================================================== #

class BallEventType(str, Enum):
    """What happened on a delivery, as tapped in by the scorer."""

    RUN = "run"
    WIDE = "wd"
    NO_BALL = "nb"
    LEG_BYE = "lb"
    BYE = "b"
    WICKET = "w"


class WicketType(str, Enum):
    BOWLED = "Bowled"
    CAUGHT = "Caught"
    LBW = "LBW"
    RUN_OUT = "Run Out"
    STUMPED = "Stumped"
    HIT_WICKET = "Hit Wicket"


class BattingStatus(str, Enum):
    NOT_OUT = "not out"
    OUT = "out"
    DID_NOT_BAT = "did not bat"


class MatchStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"
    SUPER_OVER = "super_over"


class TossDecision(str, Enum):
    BAT = "bat"
    BOWL = "bowl"


class MatchType(str, Enum):
    T20 = "T20"
    TEN_OVERS = "10 Overs"
    FIVE_OVERS = "5 Overs"
    TWO_OVERS = "2 Overs"
    FIFTY_OVERS = "50 Overs"


# =========================================================================== #
#  Players and teams
# =========================================================================== #

class BattingRecord(BaseModel):
    runs: int = 0
    balls_faced: int = 0
    fours: int = 0
    sixes: int = 0
    status: BattingStatus = BattingStatus.DID_NOT_BAT
    out_details: Optional[str] = None
    strike_rate: float = 0.0


class BowlingRecord(BaseModel):
    balls_bowled: int = 0
    runs_conceded: int = 0
    maidens: int = 0
    wickets: int = 0
    economy_rate: float = 0.0

    @property
    def overs_bowled(self) -> int:
        return self.balls_bowled // BALLS_PER_OVER

    @property
    def overs_display(self) -> str:
        return f"{self.balls_bowled // BALLS_PER_OVER}.{self.balls_bowled % BALLS_PER_OVER}"


class Player(BaseModel):
    id: int
    name: str
    rating: float = Field(75.0, description="Skill rating in [1, 100], carried between matches")
    is_substitute: bool = False
    is_impact_player: bool = False
    batting: BattingRecord = Field(default_factory=BattingRecord)
    bowling: BowlingRecord = Field(default_factory=BowlingRecord)

    @property
    def eligible(self) -> bool:
        """Substitutes only take part once brought on as the impact player."""
        return not self.is_substitute or self.is_impact_player


class Team(BaseModel):
    id: int
    name: str
    players: list[Player]
    impact_player_used: bool = False

    @property
    def playing_xi(self) -> list[Player]:
        return [p for p in self.players if p.eligible]

    def get_player(self, player_id: int | None) -> Player | None:
        if player_id is None:
            return None
        for p in self.players:
            if p.id == player_id:
                return p
        return None


class FieldPlacement(BaseModel):
    player_id: int
    position: str


# =========================================================================== #
#  Deliveries
# =========================================================================== #

class BallDetails(BaseModel):
    """Input to process_ball: a single delivery as the scorer records it."""

    event: BallEventType
    runs: int = Field(0, ge=0, le=6, description="Runs off the bat")
    extras: int = Field(0, ge=0, description="Wides, no-ball penalty, byes, leg byes")
    wicket_type: Optional[WicketType] = None
    fielder_id: Optional[int] = None

    @model_validator(mode="after")
    def _wicket_needs_type(self) -> "BallDetails":
        if self.event == BallEventType.WICKET and self.wicket_type is None:
            raise ValueError("A wicket must say how the batter was out")
        return self


class Ball(BaseModel):
    """One delivery in an innings timeline. Never modified once appended."""

    model_config = ConfigDict(frozen=True)

    event: BallEventType
    runs: int = 0
    extras: int = 0
    is_wicket: bool = False
    wicket_type: Optional[WicketType] = None
    batter_id: int
    bowler_id: int
    fielder_id: Optional[int] = None
    display: str
    over: float = Field(..., description="overs + balls_this_over / 10 at the moment of delivery")

    @property
    def is_legal(self) -> bool:
        return self.event not in (BallEventType.WIDE, BallEventType.NO_BALL)

    @property
    def is_dot(self) -> bool:
        return self.runs == 0 and self.extras == 0 and not self.is_wicket

    @property
    def over_index(self) -> int:
        return int(round(self.over * 10)) // 10


class FallOfWicket(BaseModel):
    wicket: int
    score: int
    over: float
    player_out: str


class Partnership(BaseModel):
    batter1: Optional[int] = None
    batter2: Optional[int] = None
    runs: int = 0
    balls: int = 0


# =========================================================================== #
#  Innings & match
# =========================================================================== #

class Innings(BaseModel):
    batting_team: Team
    bowling_team: Team
    score: int = 0
    wickets: int = 0
    overs: int = Field(0, description="Completed overs")
    balls_this_over: int = Field(0, description="Legal deliveries in the current over")
    max_overs: int
    target: Optional[int] = Field(None, description="Runs needed to win, set for a chase")
    timeline: list[Ball] = Field(default_factory=list)
    fall_of_wickets: list[FallOfWicket] = Field(default_factory=list)
    current_partnership: Partnership = Field(default_factory=Partnership)
    striker: Optional[int] = None
    non_striker: Optional[int] = None
    current_bowler: Optional[int] = Field(None, description="None means a bowler must be chosen")
    field_placements: list[FieldPlacement] = Field(default_factory=list)
    is_free_hit: bool = False

    @property
    def legal_balls(self) -> int:
        return self.overs * BALLS_PER_OVER + self.balls_this_over

    @property
    def balls_remaining(self) -> int:
        return max(0, self.max_overs * BALLS_PER_OVER - self.legal_balls)

    @property
    def overs_display(self) -> str:
        return f"{self.overs}.{self.balls_this_over}"


class SuperOver(BaseModel):
    innings: list[Innings] = Field(default_factory=list)
    current_innings: int = 1


class RainSimulation(BaseModel):
    probability: float = 0.0
    will_rain: bool = False
    interruption_innings: Optional[int] = None
    interruption_over: Optional[int] = None
    applied: bool = False
    original_overs: Optional[int] = None
    dls_overs: Optional[int] = None
    original_target: Optional[int] = None
    dls_target: Optional[int] = None
    rain_message: Optional[str] = None


class Toss(BaseModel):
    winner: str
    decision: TossDecision


class Match(BaseModel):
    id: str
    teams: list[Team]
    overs_per_innings: int
    match_type: MatchType = MatchType.T20
    toss: Toss
    innings: list[Innings] = Field(default_factory=list)
    current_innings: int = 1
    status: MatchStatus = MatchStatus.IN_PROGRESS
    result: Optional[str] = None
    super_over: Optional[SuperOver] = None
    rain_simulation: Optional[RainSimulation] = None
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def in_super_over(self) -> bool:
        return self.status == MatchStatus.SUPER_OVER and self.super_over is not None

    @property
    def active_innings(self) -> Innings | None:
        """The innings the next ball belongs to (super over included)."""
        if self.in_super_over:
            so = self.super_over
            if so.innings:
                return so.innings[so.current_innings - 1]
            return None
        if not self.innings:
            return None
        return self.innings[self.current_innings - 1]

    def get_team(self, name: str) -> Team | None:
        for team in self.teams:
            if team.name == name:
                return team
        return None


class MatchSettings(BaseModel):
    team_names: list[str] = Field(..., min_length=2, max_length=2)
    overs_per_innings: int = Field(20, ge=1, le=100)
    toss_winner: str
    toss_decision: TossDecision
    match_type: MatchType = MatchType.T20
    rain_probability: float = Field(0.0, ge=0, le=100)


class MatchSituation(BaseModel):
    innings: int
    batting_team_name: str
    bowling_team_name: str
    overs_left: float
    is_chasing: bool
    target: Optional[int] = None
    runs_needed: Optional[int] = None
    balls_remaining: Optional[int] = None
    win_probability: float = Field(50.0, description="Percent chance for the side batting last")


# =========================================================================== #
#  Persisted player records
# =========================================================================== #

class MatchLine(BaseModel):
    """One player's contribution in a single completed match."""

    match_id: str
    runs: int = 0
    balls_faced: int = 0
    fours: int = 0
    sixes: int = 0
    wickets: int = 0
    runs_conceded: int = 0
    balls_bowled: int = 0
    maidens: int = 0
    rating_after: float
    # Career bests before this match, so the line can be taken back out
    prior_highest_score: int = 0
    prior_best_bowling: Optional[str] = None


class PlayerHistory(BaseModel):
    matches: int = 0
    runs: int = 0
    balls_faced: int = 0
    fours: int = 0
    sixes: int = 0
    highest_score: int = 0
    fifties: int = 0
    hundreds: int = 0
    wickets: int = 0
    balls_bowled: int = 0
    runs_conceded: int = 0
    maidens: int = 0
    best_bowling: Optional[str] = None
    recent_matches: list[MatchLine] = Field(default_factory=list)


class PlayerRecord(BaseModel):
    player_id: int
    name: str
    rating: float = 75.0
    history: PlayerHistory = Field(default_factory=PlayerHistory)


# =========================================================================== #
#  Over simulation
# =========================================================================== #

class MatchPhase(str, Enum):
    POWERPLAY = "POWERPLAY"
    MIDDLE_OVERS = "MIDDLE_OVERS"
    DEATH_OVERS = "DEATH_OVERS"


class PressureMetrics(BaseModel):
    current_run_rate: float = 0.0
    required_run_rate: float = 0.0
    dot_ball_pressure: int = Field(0, description="Consecutive dot balls up to now")
    boundary_pressure: int = Field(0, description="Balls since the last boundary")
    wickets_in_hand: int = 10


class MomentumState(BaseModel):
    batting_momentum: float = 0.0
    bowling_momentum: float = 0.0
    over_momentum: float = 0.0


class OutcomeType(str, Enum):
    DOT = "DOT"
    SINGLE = "SINGLE"
    DOUBLE = "DOUBLE"
    TRIPLE = "TRIPLE"
    FOUR = "FOUR"
    SIX = "SIX"
    WICKET = "WICKET"
    WIDE = "WIDE"
    NO_BALL = "NO_BALL"
    BYE = "BYE"
    LEG_BYE = "LEG_BYE"


OUTCOME_RUNS: dict[OutcomeType, int] = {
    OutcomeType.DOT: 0,
    OutcomeType.SINGLE: 1,
    OutcomeType.DOUBLE: 2,
    OutcomeType.TRIPLE: 3,
    OutcomeType.FOUR: 4,
    OutcomeType.SIX: 6,
    OutcomeType.WICKET: 0,
    OutcomeType.WIDE: 1,
    OutcomeType.NO_BALL: 1,
    OutcomeType.BYE: 1,
    OutcomeType.LEG_BYE: 1,
}

ILLEGAL_OUTCOMES = (OutcomeType.WIDE, OutcomeType.NO_BALL)


class BallOutcome(BaseModel):
    """A simulated delivery. `runs` is what the ball adds to the total."""

    type: OutcomeType
    runs: int = 0
    wicket_type: Optional[WicketType] = None
    fielder_id: Optional[int] = None

    @model_validator(mode="after")
    def _check_wicket(self) -> "BallOutcome":
        if self.type == OutcomeType.WICKET and self.wicket_type is None:
            raise ValueError("WICKET outcome requires a wicket_type")
        if self.type != OutcomeType.WICKET and self.wicket_type is not None:
            raise ValueError(f"{self.type.value} outcome cannot carry a wicket_type")
        return self

    @classmethod
    def of(cls, kind: OutcomeType, wicket_type: WicketType | None = None) -> "BallOutcome":
        return cls(type=kind, runs=OUTCOME_RUNS[kind], wicket_type=wicket_type)

    @property
    def is_legal(self) -> bool:
        return self.type not in ILLEGAL_OUTCOMES


class OverSimulationResult(BaseModel):
    outcomes: list[BallOutcome] = Field(..., max_length=6)
    commentary: str
    cost: float = 0.0
    strategy: str
    pattern_id: Optional[str] = None
    debug: dict[str, Any] = Field(default_factory=dict)


class CricketContext(BaseModel):
    """
    Situation summary handed to the simulation strategies.
    Derived from the match and never written back to it.
    """

    match: Match
    innings_number: int
    over: int
    ball: int
    batting_team: Team
    bowling_team: Team
    striker: Player
    non_striker: Player
    bowler: Player
    phase: MatchPhase
    pressure: PressureMetrics
    momentum: MomentumState
    complexity: int = Field(..., ge=1, le=10)

    # Working copy, advanced ball by ball inside one over
    score: int
    wickets: int
    target: Optional[int] = None
    max_overs: int
    striker_balls_faced: int = 0
    timeline: list[Ball] = Field(default_factory=list)
    last_pattern_id: Optional[str] = None

    @property
    def balls_left_in_over(self) -> int:
        return BALLS_PER_OVER - self.ball


# =========================================================================== #
#  API payloads
# =========================================================================== #

class CreateMatchRequest(BaseModel):
    teams: list[Team] = Field(..., min_length=2, max_length=2)
    settings: MatchSettings
    seed: Optional[int] = Field(None, description="Seeds the rain roll, for reproducible matches")


class BowlerChange(BaseModel):
    bowler_id: int


class BatterSelection(BaseModel):
    player_id: int


class FieldUpdate(BaseModel):
    placements: list[FieldPlacement]


class ImpactPlayerRequest(BaseModel):
    team_id: int
    player_out_id: int
    player_in_id: int


class SimulateOverRequest(BaseModel):
    pause_on_wicket: bool = False
    seed: Optional[int] = None
