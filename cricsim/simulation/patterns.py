"""
Library of named over patterns for the template strategy.

Each pattern is a shape an over commonly takes ("tight finish", "powerplay
onslaught", ...) with one or more concrete ball sequences. Sequences are
written in a compact scorer's shorthand:

    0 1 2 3 4 6      runs off the bat
    W:b W:c W:lbw    bowled / caught / lbw
    W:ro W:st        run out / stumped
    wd nb b lb       wide / no-ball / bye / leg bye

Pattern tags drive selection (phase, pressure, momentum-swing, normal);
variation tags are matched against the live context tags.
"""

from pydantic import BaseModel, Field

from cricsim.models import BallOutcome, OutcomeType, WicketType


class PatternVariation(BaseModel):
    outcomes: list[BallOutcome]
    context_tags: list[str] = Field(default_factory=list)


class OverPattern(BaseModel):
    id: str
    description: str
    base_weight: float
    tags: list[str]
    variations: list[PatternVariation]


_RUNS = {
    "0": OutcomeType.DOT,
    "1": OutcomeType.SINGLE,
    "2": OutcomeType.DOUBLE,
    "3": OutcomeType.TRIPLE,
    "4": OutcomeType.FOUR,
    "6": OutcomeType.SIX,
    "wd": OutcomeType.WIDE,
    "nb": OutcomeType.NO_BALL,
    "b": OutcomeType.BYE,
    "lb": OutcomeType.LEG_BYE,
}

_WICKETS = {
    "b": WicketType.BOWLED,
    "c": WicketType.CAUGHT,
    "lbw": WicketType.LBW,
    "ro": WicketType.RUN_OUT,
    "st": WicketType.STUMPED,
    "hw": WicketType.HIT_WICKET,
}


def parse_sequence(sequence: str) -> list[BallOutcome]:
    outcomes = []
    for token in sequence.split():
        if token.startswith("W:"):
            outcomes.append(BallOutcome.of(OutcomeType.WICKET, _WICKETS[token[2:]]))
        else:
            outcomes.append(BallOutcome.of(_RUNS[token]))
    return outcomes


def _pattern(id: str, description: str, weight: float, tags: list[str], *variations: tuple[str, list[str]]) -> OverPattern:
    return OverPattern(
        id=id,
        description=description,
        base_weight=weight,
        tags=tags,
        variations=[PatternVariation(outcomes=parse_sequence(seq), context_tags=ctx) for seq, ctx in variations],
    )


OVER_PATTERNS: list[OverPattern] = [
    # --- Powerplay ---
    _pattern("CAUTIOUS_START", "A watchful start, ones and dots.", 9, ["powerplay", "normal"],
             ("1 0 1 1 0 1", ["powerplay"]),
             ("0 0 1 0 1 0", ["powerplay", "bowling_momentum"])),
    _pattern("POWERPLAY_STEADY", "Balanced powerplay over, gaps found without risk.", 8, ["powerplay", "normal"],
             ("1 2 1 0 1 0", ["powerplay"])),
    _pattern("POWERPLAY_ONSLAUGHT", "The openers go after the new ball.", 9, ["powerplay", "momentum-swing"],
             ("4 4 0 6 0 1", ["powerplay", "batting_momentum"]),
             ("4 1 4 0 4 1", ["powerplay"])),
    _pattern("BOUNDARY_BURST", "Three boundaries in the over.", 6, ["powerplay", "momentum-swing"],
             ("4 4 1 4 0 1", ["batting_momentum"])),
    _pattern("EXPENSIVE_POWERPLAY", "Loose lines, boundaries and a wide.", 5, ["powerplay", "momentum-swing"],
             ("4 wd 6 4 0 1", ["batting_momentum"])),
    _pattern("POWERPLAY_WICKET", "Early breakthrough with the new ball.", 6, ["powerplay", "momentum-swing"],
             ("W:b 1 0 1 0 1", ["powerplay", "bowling_momentum"]),
             ("0 0 W:c 0 1 0", ["powerplay", "pressure"])),
    _pattern("BOUNDARY_AND_WICKET", "A boundary, then the batter holes out.", 5, ["powerplay", "momentum-swing"],
             ("4 W:c 1 0 1 0", ["powerplay"])),
    _pattern("POWERPLAY_TIGHT", "Hard lengths, nothing to hit.", 5, ["powerplay", "pressure"],
             ("0 0 1 0 0 lb", ["bowling_momentum", "pressure"])),

    # --- Middle overs ---
    _pattern("PARTNERSHIP_BUILDER", "Strike rotated every ball.", 8, ["middle"],
             ("1 1 1 1 1 1", ["middle"])),
    _pattern("MIDDLE_OVERS_STEADY", "Ones and twos, the scoreboard ticking.", 8, ["middle", "normal"],
             ("1 2 1 1 0 1", ["middle"]),
             ("2 1 1 0 1 1", ["middle", "batting_momentum"])),
    _pattern("SPIN_CONTROL", "Spin in tandem, a run a ball at most.", 8, ["middle"],
             ("1 0 1 0 1 0", ["middle", "bowling_momentum"])),
    _pattern("SPINNER_SQUEEZE", "No boundary option, singles only.", 7, ["middle", "pressure"],
             ("1 1 0 1 0 1", ["pressure"])),
    _pattern("DEFENSIVE_MIDDLE", "Dots pile up.", 7, ["middle", "pressure"],
             ("0 1 0 1 0 0", ["pressure", "bowling_momentum"])),
    _pattern("MIDDLE_OVERS_BREAKTHROUGH", "A stumping breaks the stand.", 6, ["middle", "momentum-swing"],
             ("1 0 W:st 0 1 0", ["middle", "bowling_momentum"])),
    _pattern("SLOW_BOUNCER_TRAP", "The slower bouncer finds the top edge.", 4, ["middle", "momentum-swing"],
             ("1 0 W:c 0 1 0", ["pressure"])),
    _pattern("MIDDLE_SLOG", "A batter decides to take the spinner on.", 4, ["middle", "momentum-swing"],
             ("6 4 1 0 6 0", ["batting_momentum"]),
             ("1 6 0 6 1 1", ["high_rrr"])),
    _pattern("DOUBLE_WICKET", "Two in the over, a mini collapse.", 3, ["middle", "momentum-swing"],
             ("W:b 1 W:c 0 0 1", ["bowling_momentum", "pressure"])),
    _pattern("RUN_OUT_MIXUP", "A mix-up in the middle costs a wicket.", 2, ["middle", "pressure"],
             ("1 0 W:ro 0 1 0", ["pressure"])),
    _pattern("MAIDEN_OVER", "Six dots.", 3, ["middle", "pressure"],
             ("0 0 0 0 0 0", ["bowling_momentum", "pressure"])),
    _pattern("WIDE_AND_DOT", "Radar off, but the dots keep coming.", 4, ["pressure", "normal"],
             ("wd 0 0 wd 0 1", ["pressure"])),

    # --- Death overs ---
    _pattern("TIGHT_FINISH", "A very tight over at the end of the innings.", 3, ["death", "pressure"],
             ("1 1 0 1 2 0", ["death", "pressure"])),
    _pattern("DEATH_YORKERS", "Yorker after yorker, the last one hits the stumps.", 6, ["death", "pressure"],
             ("0 1 0 1 0 W:b", ["death", "bowling_momentum"]),
             ("1 0 1 1 0 1", ["death", "high_rrr"])),
    _pattern("DEATH_OVERS_WICKET", "A six, then the next big swing goes straight up.", 7, ["death", "pressure"],
             ("6 W:c 1 0 1 0", ["death", "high_rrr"])),
    _pattern("DEATH_SLOG", "Clean hitting at the death.", 5, ["death", "momentum-swing"],
             ("6 4 6 0 1 2", ["death", "batting_momentum"])),
    _pattern("DEATH_EXTRAVAGANZA", "Everything in the slot and it all goes.", 4, ["death", "momentum-swing"],
             ("6 6 4 1 6 0", ["batting_momentum", "high_rrr"])),
    _pattern("DEATH_MISFIELD", "Byes and a misfield add to the pressure on the fielders.", 3, ["death", "pressure"],
             ("1 b 4 1 2 0", ["death", "pressure"])),
    _pattern("LAST_BALL_THRILLER", "A run out in the scramble, then a six.", 1, ["death", "pressure"],
             ("1 1 2 W:ro 1 6", ["death", "high_rrr", "pressure"])),
    _pattern("EXPENSIVE_WICKET_OVER", "A wicket, but the over still goes for plenty.", 4,
             ["powerplay", "death", "momentum-swing"],
             ("4 W:c 6 0 1 0", ["batting_momentum"])),
    _pattern("NO_BALL_BONANZA", "Overstepping twice, punished both times.", 3, ["powerplay", "death"],
             ("nb 4 nb 1 0 6", ["batting_momentum"])),

    # --- Any phase ---
    _pattern("NO_BALL_WICKET", "A no-ball, then a run out on the free hit.", 1, ["pressure"],
             ("nb W:ro 0 1 0 4", ["pressure"])),
    _pattern("HAT_TRICK_BALL", "Three in three.", 0.1, ["pressure", "momentum-swing"],
             ("W:b W:lbw W:c", ["bowling_momentum"])),
]


PATTERNS_BY_ID: dict[str, OverPattern] = {p.id: p for p in OVER_PATTERNS}
