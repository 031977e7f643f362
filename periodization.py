"""
Periodization Resolver
======================
Works out where an athlete is inside a program on a given day:
which global week, which block, which week of that block, and which
phase (and therefore which routine variant) to train.

Weeks without an authored phase repeat the block's phases cyclically,
so a block with phases for weeks 1-2 and six weeks of duration runs
1, 2, 1, 2, 1, 2.

resolve() is pure: "today" and the last completed session are passed in
by the caller.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, List, Dict, Any, Tuple, Union

from schedule_dates import days_between
from schedule_model import Program, Block, Phase, LastSession


# ============================================
# RESULT TYPES
# ============================================

@dataclass
class NeedsStartDate:
    """The program has no start date, so nothing can be resolved."""
    program_id: Optional[str]
    program_name: str
    status: str = 'needs_start_date'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'programId': self.program_id,
            'programName': self.program_name,
        }


@dataclass
class NotStartedYet:
    program_id: Optional[str]
    start_date: date
    days_until_start: int
    status: str = 'not_started'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'programId': self.program_id,
            'startDate': self.start_date.isoformat(),
            'daysUntilStart': self.days_until_start,
        }


@dataclass
class Completed:
    program_id: Optional[str]
    completed_on: date
    total_weeks: int
    status: str = 'completed'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'programId': self.program_id,
            'completedOn': self.completed_on.isoformat(),
            'totalWeeks': self.total_weeks,
        }


@dataclass
class BlockSummary:
    id: Optional[str]
    name: str
    type: Optional[str]
    week_in_block: int
    total_block_weeks: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'weekInBlock': self.week_in_block,
            'totalBlockWeeks': self.total_block_weeks,
        }


@dataclass
class VariantSuggestion:
    id: str
    name: Optional[str]
    intensity_level: Optional[int]
    routine_id: Optional[str]
    routine_name: Optional[str]
    intensity_modifier: float
    volume_modifier: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'intensityLevel': self.intensity_level,
            'routineId': self.routine_id,
            'routineName': self.routine_name,
            'intensityModifier': self.intensity_modifier,
            'volumeModifier': self.volume_modifier,
        }


@dataclass
class LastTrainingInfo:
    id: Optional[str]
    date: date
    days_since_last_training: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'date': self.date.isoformat(),
            'daysSinceLastTraining': self.days_since_last_training,
        }


@dataclass
class Suggestion:
    """What the athlete should be doing today."""
    program_id: Optional[str]
    program_name: str
    current_week: int
    total_weeks: int
    current_block: Optional[BlockSummary] = None
    suggested_variant: Optional[VariantSuggestion] = None
    phase_notes: Optional[str] = None
    last_training: Optional[LastTrainingInfo] = None
    status: str = 'active'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'programId': self.program_id,
            'programName': self.program_name,
            'currentWeek': self.current_week,
            'totalWeeks': self.total_weeks,
            'currentBlock': self.current_block.to_dict() if self.current_block else None,
            'suggestedVariant': self.suggested_variant.to_dict() if self.suggested_variant else None,
            'phaseNotes': self.phase_notes,
            'lastTraining': self.last_training.to_dict() if self.last_training else None,
        }


ResolveResult = Union[Suggestion, NeedsStartDate, NotStartedYet, Completed]


# ============================================
# WEEK / PHASE LOOKUP
# ============================================

def locate_week(blocks: List[Block], week_number: int) -> Tuple[Optional[Block], int]:
    """
    Find the block containing a global (1-based) program week.

    Blocks must already be in training order. Returns (block, week_in_block),
    or (None, 0) when the week lies past the last block.
    """
    weeks_so_far = 0
    for block in blocks:
        block_weeks = block.duration_weeks or 0
        if weeks_so_far + block_weeks >= week_number:
            return block, week_number - weeks_so_far
        weeks_so_far += block_weeks
    return None, 0


def select_phase(block: Block, week_in_block: int) -> Optional[Phase]:
    """
    Pick the phase for a week of a block.

    An authored phase for the exact week wins. Otherwise the block's phases
    repeat in week order: position (week_in_block - 1) mod phase count.
    """
    phases = block.sorted_phases()
    if not phases:
        return None

    for phase in phases:
        if phase.week_number == week_in_block:
            return phase

    cycle_position = (week_in_block - 1) % len(phases)
    return phases[cycle_position]


def _variant_suggestion(phase: Optional[Phase]) -> Optional[VariantSuggestion]:
    if phase is None or phase.variant is None:
        return None
    variant = phase.variant
    return VariantSuggestion(
        id=variant.id,
        name=variant.name,
        intensity_level=variant.intensity_level,
        routine_id=variant.routine_id,
        routine_name=variant.routine_name,
        intensity_modifier=phase.intensity_modifier,
        volume_modifier=phase.volume_modifier,
    )


def _last_training_info(last_session: Optional[LastSession], today: date) -> Optional[LastTrainingInfo]:
    if last_session is None or last_session.date is None:
        return None
    return LastTrainingInfo(
        id=last_session.id,
        date=last_session.date,
        days_since_last_training=days_between(last_session.date, today),
    )


# ============================================
# RESOLVER
# ============================================

def resolve(program: Program, today: date,
            last_session: Optional[LastSession] = None) -> ResolveResult:
    """
    Resolve the program position for `today`.

    Args:
        program: Program with its blocks and phases loaded
        today: The day to resolve for
        last_session: Most recent completed training, for context only

    Returns:
        NeedsStartDate, NotStartedYet, Completed or Suggestion
    """
    if program.start_date is None:
        return NeedsStartDate(program_id=program.id, program_name=program.name)

    days_elapsed = days_between(program.start_date, today)
    if days_elapsed < 0:
        return NotStartedYet(
            program_id=program.id,
            start_date=program.start_date,
            days_until_start=-days_elapsed,
        )

    current_week = days_elapsed // 7 + 1
    blocks = program.sorted_blocks()
    total_weeks = program.total_weeks()

    if current_week > total_weeks:
        return Completed(
            program_id=program.id,
            completed_on=program.start_date + timedelta(weeks=total_weeks),
            total_weeks=total_weeks,
        )

    block, week_in_block = locate_week(blocks, current_week)
    phase = select_phase(block, week_in_block) if block else None

    current_block = None
    if block is not None:
        current_block = BlockSummary(
            id=block.id,
            name=block.name,
            type=block.type_value,
            week_in_block=week_in_block,
            total_block_weeks=block.duration_weeks,
        )

    return Suggestion(
        program_id=program.id,
        program_name=program.name,
        current_week=current_week,
        total_weeks=total_weeks,
        current_block=current_block,
        suggested_variant=_variant_suggestion(phase),
        phase_notes=phase.notes if phase else None,
        last_training=_last_training_info(last_session, today),
    )
