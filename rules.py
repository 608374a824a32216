"""
Eight-ball rule engine.

Pure functions over an immutable ``MatchState``:

  resolve_pocketed_ball  — what one captured ball means for the shooter
  apply_outcome          — immediate effects of that ball (groups, match end)
  settle_shot            — end-of-motion fold of every outcome of the shot

None of these touch ball objects; the controller owns the balls and decides
when each function runs.
"""

import enum
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Tuple

from physics import BallKind, ball_kind

logger = logging.getLogger(__name__)

PLAYERS = (1, 2)


class Group(enum.Enum):
    UNASSIGNED = "unassigned"
    SOLID = "solid"
    STRIPE = "stripe"

    @property
    def complement(self) -> "Group":
        if self is Group.SOLID:
            return Group.STRIPE
        if self is Group.STRIPE:
            return Group.SOLID
        return Group.UNASSIGNED


class Phase(enum.Enum):
    OPEN = "open"
    PLAYING = "playing"
    FINISHED = "finished"


class OutcomeType(enum.Enum):
    SCRATCH = "scratch"
    WIN = "win"
    LOSE = "lose"
    ASSIGNMENT = "assignment"
    SUCCESS = "success"
    OPPONENT_BALL = "opponent_ball"


class ShotCategory(enum.Enum):
    SUCCESS = "success"
    FOUL = "foul"
    MISS = "miss"
    GAME_END = "game_end"


def opponent(player: int) -> int:
    return 2 if player == 1 else 1


def ball_group(ball_id: int) -> Group:
    """Group a ball counts towards; cue and eight belong to neither."""
    kind = ball_kind(ball_id)
    if kind is BallKind.SOLID:
        return Group.SOLID
    if kind is BallKind.STRIPE:
        return Group.STRIPE
    return Group.UNASSIGNED


def count_remaining(balls, captured: Iterable[int] = ()) -> Dict[Group, int]:
    """
    Object balls of each group still on the table.

    Balls in ``captured`` count as remaining: a group ball dropped in the
    same step as the eight does not clear the group in time.
    """
    captured = set(captured)
    remaining = {Group.SOLID: 0, Group.STRIPE: 0}
    for b in balls:
        group = ball_group(b.id)
        if group is Group.UNASSIGNED:
            continue
        if not b.pocketed or b.id in captured:
            remaining[group] += 1
    return remaining


@dataclass(frozen=True)
class MatchState:
    current_player: int = 1
    player_groups: Dict[int, Group] = field(
        default_factory=lambda: {1: Group.UNASSIGNED, 2: Group.UNASSIGNED})
    phase: Phase = Phase.OPEN
    can_shoot: bool = True
    winner: Optional[int] = None
    awaiting_cue_placement: bool = False

    def group_of(self, player: int) -> Group:
        return self.player_groups[player]

    @property
    def finished(self) -> bool:
        return self.phase is Phase.FINISHED

    def to_dict(self) -> dict:
        return {
            "current_player": self.current_player,
            "player_groups": {str(p): g.value for p, g in self.player_groups.items()},
            "phase": self.phase.value,
            "can_shoot": self.can_shoot,
            "winner": self.winner,
            "awaiting_cue_placement": self.awaiting_cue_placement,
        }


@dataclass(frozen=True)
class Outcome:
    """Consequence of a single captured ball."""
    type: OutcomeType
    message: str
    foul: bool = False
    switch_turn: bool = False
    continue_shoot: bool = False
    winner: Optional[int] = None
    group: Optional[Group] = None

    @property
    def ends_match(self) -> bool:
        return self.type in (OutcomeType.WIN, OutcomeType.LOSE)


@dataclass(frozen=True)
class ShotOutcome:
    message: str
    category: ShotCategory
    winner: Optional[int] = None

    def to_dict(self) -> dict:
        return {"message": self.message, "category": self.category.value,
                "winner": self.winner}


# ──────────────────────────────────────────────
# Per-ball resolution
# ──────────────────────────────────────────────

def resolve_pocketed_ball(ball_id: int, state: MatchState,
                          remaining: Dict[Group, int]) -> Outcome:
    """Classify one captured ball for the shooting player."""
    shooter = state.current_player
    kind = ball_kind(ball_id)

    if kind is BallKind.CUE:
        return Outcome(OutcomeType.SCRATCH, "Cue ball scratched!",
                       foul=True, switch_turn=True)

    if kind is BallKind.EIGHT:
        # A shooter with no group has nothing left to clear
        if remaining.get(state.group_of(shooter), 0) == 0:
            return Outcome(OutcomeType.WIN, f"Player {shooter} wins!", winner=shooter)
        return Outcome(OutcomeType.LOSE,
                       f"Player {shooter} loses! 8-ball pocketed early.",
                       winner=opponent(shooter))

    group = ball_group(ball_id)
    own = state.group_of(shooter)
    if own is Group.UNASSIGNED:
        return Outcome(OutcomeType.ASSIGNMENT, f"Player {shooter} gets {group.value}s!",
                       continue_shoot=True, group=group)
    if group is own:
        return Outcome(OutcomeType.SUCCESS, "Good shot! Continue shooting.",
                       continue_shoot=True)
    return Outcome(OutcomeType.OPPONENT_BALL, "Wrong ball! Turn switches.",
                   foul=True, switch_turn=True)


def apply_outcome(state: MatchState, outcome: Outcome) -> MatchState:
    """Effects that take hold the moment a ball drops."""
    if outcome.type is OutcomeType.ASSIGNMENT:
        shooter = state.current_player
        groups = {shooter: outcome.group, opponent(shooter): outcome.group.complement}
        return replace(state, player_groups=groups, phase=Phase.PLAYING)
    if outcome.ends_match:
        return replace(state, phase=Phase.FINISHED, winner=outcome.winner,
                       can_shoot=False)
    return state


def resolve_captures(state: MatchState, captured: Iterable[int],
                     remaining: Dict[Group, int]) -> Tuple[MatchState, List[Outcome]]:
    """Resolve every ball captured in one step, lowest id first."""
    outcomes = []
    for ball_id in sorted(captured):
        if state.finished:
            break
        outcome = resolve_pocketed_ball(ball_id, state, remaining)
        state = apply_outcome(state, outcome)
        outcomes.append(outcome)
        logger.debug("ball %d -> %s", ball_id, outcome.type.value)
    return state, outcomes


# ──────────────────────────────────────────────
# End-of-motion aggregation
# ──────────────────────────────────────────────

def settle_shot(state: MatchState,
                outcomes: List[Outcome]) -> Tuple[MatchState, ShotOutcome]:
    """Fold every outcome of a finished shot into the next state."""
    if state.finished:
        final = next((o for o in outcomes if o.ends_match), None)
        message = final.message if final else f"Player {state.winner} wins!"
        return (replace(state, can_shoot=False, awaiting_cue_placement=False),
                ShotOutcome(message, ShotCategory.GAME_END, state.winner))

    if not outcomes:
        next_state = replace(state, current_player=opponent(state.current_player),
                             can_shoot=True)
        return next_state, ShotOutcome("No balls pocketed. Turn switches.",
                                       ShotCategory.MISS)

    switch = any(o.switch_turn for o in outcomes)
    scratch = any(o.type is OutcomeType.SCRATCH for o in outcomes)
    fouls = [o for o in outcomes if o.foul]

    player = opponent(state.current_player) if switch else state.current_player
    next_state = replace(state, current_player=player, can_shoot=True,
                         awaiting_cue_placement=scratch)
    if fouls:
        return next_state, ShotOutcome(fouls[0].message, ShotCategory.FOUL)
    return next_state, ShotOutcome(outcomes[-1].message, ShotCategory.SUCCESS)
