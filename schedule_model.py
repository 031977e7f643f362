"""
Schedule Model
==============
Programs are made of ordered blocks, blocks of weekly phases, and phases
link a routine variant and the routines scheduled on concrete dates.

Rows come from the nested Supabase select in db_programs:

    training_programs
      -> training_blocks
           -> block_phases
                -> variant (routine_variants -> workout_routine)
                -> phase_routines
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Union

from schedule_dates import parse_date


class BlockType(str, Enum):
    """Training-phase category of a block."""
    STRENGTH = 'strength'
    HYPERTROPHY = 'hypertrophy'
    ENDURANCE = 'endurance'
    PEAKING = 'peaking'
    DELOAD = 'deload'
    POWER = 'power'


def _block_type(value: Optional[str]) -> Union[BlockType, str, None]:
    # Keep unknown stored values as-is so a block never fails to load
    if value is None:
        return None
    try:
        return BlockType(value)
    except ValueError:
        return value


def _block_type_value(value: Union[BlockType, str, None]) -> Optional[str]:
    if isinstance(value, BlockType):
        return value.value
    return value


def _modifier(value) -> float:
    if value is None:
        return 1.0
    return float(value)


def _parse_timestamp(value) -> Optional[datetime]:
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return datetime.fromisoformat(text)


@dataclass
class VariantRef:
    """The routine variant a phase points at."""
    id: str
    name: Optional[str] = None
    intensity_level: Optional[int] = None
    routine_id: Optional[str] = None
    routine_name: Optional[str] = None

    @classmethod
    def from_row(cls, row: Optional[Dict[str, Any]]) -> Optional['VariantRef']:
        if not row:
            return None
        routine = row.get('workout_routine') or {}
        return cls(
            id=row['id'],
            name=row.get('variant_name'),
            intensity_level=row.get('intensity_level'),
            routine_id=row.get('routine_id') or routine.get('id'),
            routine_name=routine.get('name'),
        )


@dataclass
class ScheduledRoutine:
    id: Optional[str]
    routine_variant_id: str
    scheduled_at: Optional[datetime]
    notes: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'ScheduledRoutine':
        return cls(
            id=row.get('id'),
            routine_variant_id=row.get('routine_variant_id'),
            scheduled_at=_parse_timestamp(row.get('scheduled_at')),
            notes=row.get('notes'),
        )


@dataclass
class Phase:
    """One week of a block. week_number is 1-based within the block."""
    id: Optional[str]
    week_number: int
    variant: Optional[VariantRef] = None
    intensity_modifier: float = 1.0
    volume_modifier: float = 1.0
    notes: Optional[str] = None
    scheduled_routines: List[ScheduledRoutine] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Phase':
        return cls(
            id=row.get('id'),
            week_number=int(row['week_number']),
            variant=VariantRef.from_row(row.get('variant')),
            intensity_modifier=_modifier(row.get('intensity_modifier')),
            volume_modifier=_modifier(row.get('volume_modifier')),
            notes=row.get('notes'),
            scheduled_routines=[
                ScheduledRoutine.from_row(r) for r in row.get('phase_routines') or []
            ],
        )


@dataclass
class Block:
    id: Optional[str]
    name: str
    block_type: Union[BlockType, str, None]
    order_index: int
    duration_weeks: int = 0
    notes: Optional[str] = None
    phases: List[Phase] = field(default_factory=list)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Block':
        return cls(
            id=row.get('id'),
            name=row.get('name') or '',
            block_type=_block_type(row.get('block_type')),
            order_index=int(row.get('order_index') or 0),
            duration_weeks=int(row.get('duration_weeks') or 0),
            notes=row.get('notes'),
            phases=[Phase.from_row(p) for p in row.get('block_phases') or []],
        )

    @property
    def type_value(self) -> Optional[str]:
        return _block_type_value(self.block_type)

    def sorted_phases(self) -> List[Phase]:
        return sorted(self.phases, key=lambda p: p.week_number)


@dataclass
class Program:
    id: Optional[str]
    name: str
    start_date: Optional[date] = None
    blocks: List[Block] = field(default_factory=list)
    description: Optional[str] = None
    goal: Optional[str] = None
    end_date: Optional[date] = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Program':
        return cls(
            id=row.get('id'),
            name=row.get('name') or '',
            start_date=parse_date(row.get('start_date')),
            blocks=[Block.from_row(b) for b in row.get('training_blocks') or []],
            description=row.get('description'),
            goal=row.get('goal'),
            end_date=parse_date(row.get('end_date')),
            is_active=row.get('is_active', True),
        )

    def sorted_blocks(self) -> List[Block]:
        """Blocks in the order they are trained."""
        return sorted(self.blocks, key=lambda b: b.order_index)

    def total_weeks(self) -> int:
        return sum(b.duration_weeks or 0 for b in self.blocks)


@dataclass
class LastSession:
    """The athlete's most recent logged training."""
    id: Optional[str]
    date: date

    @classmethod
    def from_row(cls, row: Optional[Dict[str, Any]]) -> Optional['LastSession']:
        if not row or not row.get('date'):
            return None
        return cls(id=row.get('id'), date=parse_date(row['date']))


def validate_phase_weeks(block: Block) -> List[Phase]:
    """Return the phases whose week_number falls outside [1, duration_weeks]."""
    return [
        p for p in block.phases
        if p.week_number < 1 or p.week_number > (block.duration_weeks or 0)
    ]
