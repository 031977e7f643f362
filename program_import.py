"""
Program Import
==============
Turns a free-text program into a stored training program.

The parser summarizes the text into a compact document where every
distinct routine is written once as a template and referenced by id from
the weeks it runs in:

    {
        "n": "Program name", "d": "description", "g": "goal",
        "t": {"t1": {"n": "Upper A", "d": "Mon",
                     "e": [["Bench Press", 3, 8, 10, 70, 8, "notes"], ...]}},
        "b": [{"n": "Hypertrophy", "w": 4,
               "s": [{"w": [1, 2], "r": ["t1"]}]}]
    }

Exercise rows are [name, sets, reps_min, reps_max, weight_percent, rpe, notes?].

expand() rebuilds the full block -> phase -> routine -> exercise -> set tree
without touching the database; persist_expanded_program() writes it.
Bad rows (unknown template ids, unknown exercises, a failing insert) are
logged and skipped so one bad row never discards the whole program.
"""
import logging
from dataclasses import dataclass, field, asdict
from datetime import date, datetime, time, timedelta
from typing import Optional, List, Dict, Any, Callable

from config import Config
from exercise_matching import ExerciseMatcher
from schedule_dates import next_monday, weekday_offset
from schedule_model import BlockType
import db
import db_programs
import program_parser

logger = logging.getLogger(__name__)


DEFAULT_PROGRAM_NAME = 'Imported Program'
DEFAULT_SET_COUNT = 3
DEFAULT_BLOCK_WEEKS = 4
WEEKS_PER_SCHEDULE_ENTRY = 2  # programs are usually written in two-week waves
RPE_SCALE_MAX = 10

# Checked in order, first hit wins
BLOCK_TYPE_KEYWORDS = [
    (('hypertrophy', 'hipertrofia'), BlockType.HYPERTROPHY),
    (('strength', 'fuerza'), BlockType.STRENGTH),
    (('adaptation', 'adaptacion'), BlockType.ENDURANCE),
    (('peak', 'pico'), BlockType.PEAKING),
]


class ProgramImportError(Exception):
    """The import cannot produce a program at all."""


# ============================================
# EXPANDED TREE
# ============================================

@dataclass
class SetTarget:
    set_number: int
    target_reps: Optional[int]
    target_weight_percent: Optional[float]
    target_rir: Optional[float]


@dataclass
class ExpandedExercise:
    exercise_id: str
    import_name: str
    order_index: int
    notes: Optional[str] = None
    sets: List[SetTarget] = field(default_factory=list)


@dataclass
class ExpandedRoutine:
    template_id: str
    name: str
    weekday: Optional[str]
    scheduled_at: datetime
    exercises: List[ExpandedExercise] = field(default_factory=list)


@dataclass
class ExpandedPhase:
    week_number: int
    routines: List[ExpandedRoutine] = field(default_factory=list)


@dataclass
class ExpandedBlock:
    name: str
    block_type: BlockType
    order_index: int
    duration_weeks: int
    phases: List[ExpandedPhase] = field(default_factory=list)


@dataclass
class ExpandedProgram:
    name: str
    description: Optional[str]
    goal: Optional[str]
    start_of_program: date
    blocks: List[ExpandedBlock] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ImportResult:
    """Counts of what was written, plus how many items were skipped."""
    program_id: str
    blocks: int = 0
    phases: int = 0
    routines: int = 0
    exercises: int = 0
    sets: int = 0
    scheduled: int = 0
    skipped: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ============================================
# HELPERS
# ============================================

def _as_number(value):
    """Numbers pass through and numeric strings are converted. Raises ValueError otherwise."""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValueError(f'Not a number: {value!r}')
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        number = float(value)
        return int(number) if number.is_integer() else number
    raise ValueError(f'Not a number: {value!r}')


def _week_number(value) -> Optional[int]:
    """A schedule week as a positive int, or None when it cannot be one."""
    try:
        number = _as_number(value)
        if number is None or number != int(number) or number < 1:
            return None
    except (ValueError, OverflowError):
        return None
    return int(number)


def classify_block_type(name: Optional[str]) -> BlockType:
    """Guess a block's training type from its (English or Spanish) name."""
    lowered = (name or '').lower()
    for keywords, block_type in BLOCK_TYPE_KEYWORDS:
        if any(k in lowered for k in keywords):
            return block_type
    return BlockType.HYPERTROPHY


def block_duration_weeks(block_entry: Dict[str, Any]) -> int:
    """Explicit duration, else two weeks per schedule entry, else four."""
    schedule = block_entry.get('s')
    return (
        _week_number(block_entry.get('w'))
        or (len(schedule) if isinstance(schedule, list) else 0) * WEEKS_PER_SCHEDULE_ENTRY
        or DEFAULT_BLOCK_WEEKS
    )


def rpe_to_rir(rpe) -> Optional[float]:
    rpe = _as_number(rpe)
    if not rpe:
        return None
    return RPE_SCALE_MAX - rpe


def scheduled_datetime(start_of_program: date, week_number: int, weekday: Optional[str]) -> datetime:
    """Midnight of the template's weekday in the given program week."""
    day = start_of_program + timedelta(days=(week_number - 1) * 7 + weekday_offset(weekday))
    return datetime.combine(day, time.min)


def _row_value(row: list, index: int):
    return row[index] if len(row) > index else None


def build_set_targets(row: list) -> List[SetTarget]:
    """
    Per-set targets for one exercise row; every set shares the row's targets.

    Raises:
        ValueError: a count or target is neither a number nor a numeric string
    """
    set_count = _as_number(_row_value(row, 1)) or DEFAULT_SET_COUNT
    reps_min = _as_number(_row_value(row, 2))
    weight_percent = _as_number(_row_value(row, 4))
    target_rir = rpe_to_rir(_row_value(row, 5))

    return [
        SetTarget(
            set_number=i,
            target_reps=reps_min,
            target_weight_percent=weight_percent,
            target_rir=target_rir,
        )
        for i in range(1, int(set_count) + 1)
    ]


def _skip(message: str, warnings: List[str]):
    logger.warning(message)
    warnings.append(message)


def _resolve_template_exercises(template_id: str, template: Dict[str, Any],
                                matcher: ExerciseMatcher, warnings: List[str]) -> List[ExpandedExercise]:
    rows = template.get('e')
    if not isinstance(rows, list):
        rows = []

    exercises = []
    for position, row in enumerate(rows, start=1):
        if not row:
            continue
        if not isinstance(row, list) or not isinstance(row[0], str):
            _skip(f"Malformed exercise row {position} in template {template_id}: {row!r}", warnings)
            continue

        import_name = row[0]
        exercise_id = matcher.match(import_name)
        if exercise_id is None:
            _skip(f"Exercise '{import_name}' in template {template_id} not found in catalog", warnings)
            continue

        try:
            sets = build_set_targets(row)
        except ValueError as e:
            _skip(f"Exercise '{import_name}' in template {template_id} has bad targets: {e}", warnings)
            continue

        exercises.append(ExpandedExercise(
            exercise_id=exercise_id,
            import_name=import_name,
            order_index=position,
            notes=_row_value(row, 6) or None,
            sets=sets,
        ))
    return exercises


# ============================================
# EXPANSION
# ============================================

def expand(import_doc: Dict[str, Any], known_exercises: List[Dict[str, Any]],
           today: date) -> ExpandedProgram:
    """
    Expand a compact import document into the full program tree.

    Args:
        import_doc: Parser output (see module docstring)
        known_exercises: Exercise catalog as {'id', 'name'} dicts
        today: Import day; week 1 starts on the next Monday from here

    Returns:
        ExpandedProgram ready to persist
    """
    templates = import_doc.get('t')
    if not isinstance(templates, dict):
        templates = {}
    matcher = ExerciseMatcher(known_exercises)
    start_of_program = next_monday(today)

    program = ExpandedProgram(
        name=import_doc.get('n') or DEFAULT_PROGRAM_NAME,
        description=import_doc.get('d'),
        goal=import_doc.get('g'),
        start_of_program=start_of_program,
    )

    # template id -> resolved exercises, computed on first use
    resolved_templates: Dict[str, List[ExpandedExercise]] = {}

    for position, block_entry in enumerate(import_doc.get('b') or [], start=1):
        if not isinstance(block_entry, dict):
            _skip(f"Malformed block {position}: {block_entry!r}", program.warnings)
            continue

        block_name = block_entry.get('n') or f'Block {position}'
        block = ExpandedBlock(
            name=block_name,
            block_type=classify_block_type(block_name),
            order_index=len(program.blocks) + 1,
            duration_weeks=block_duration_weeks(block_entry),
        )

        phases_by_week: Dict[int, ExpandedPhase] = {}
        for schedule_entry in block_entry.get('s') or []:
            if not isinstance(schedule_entry, dict):
                _skip(f"Malformed schedule entry in block '{block_name}': {schedule_entry!r}", program.warnings)
                continue

            template_ids = schedule_entry.get('r') or []
            weeks = schedule_entry.get('w') or []
            if not isinstance(template_ids, list) or not isinstance(weeks, list):
                _skip(f"Malformed schedule entry in block '{block_name}': {schedule_entry!r}", program.warnings)
                continue

            for raw_week in weeks:
                week_number = _week_number(raw_week)
                if week_number is None:
                    _skip(f"Bad week {raw_week!r} in block '{block_name}'", program.warnings)
                    continue

                phase = phases_by_week.get(week_number)
                if phase is None:
                    phase = phases_by_week[week_number] = ExpandedPhase(week_number=week_number)

                for template_id in template_ids:
                    template = templates.get(template_id) if isinstance(template_id, str) else None
                    if not isinstance(template, dict) or not template:
                        _skip(f"Template {template_id} not found (block '{block_name}', week {week_number})",
                              program.warnings)
                        continue

                    if template_id not in resolved_templates:
                        resolved_templates[template_id] = _resolve_template_exercises(
                            template_id, template, matcher, program.warnings
                        )

                    weekday = template.get('d') if isinstance(template.get('d'), str) else None
                    phase.routines.append(ExpandedRoutine(
                        template_id=template_id,
                        name=template.get('n') or template_id,
                        weekday=weekday,
                        scheduled_at=scheduled_datetime(start_of_program, week_number, weekday),
                        exercises=list(resolved_templates[template_id]),
                    ))

        block.phases = [phases_by_week[w] for w in sorted(phases_by_week)]
        program.blocks.append(block)

    return program


# ============================================
# PERSISTENCE
# ============================================

def _persist_routine(expanded_routine: ExpandedRoutine, phase_id: str, program_id: str,
                     user_id: str, result: ImportResult):
    """Write one scheduled routine with a fresh routine + default variant. Raises on insert errors."""
    routine = db_programs.insert_routine(user_id=user_id, name=expanded_routine.name, program_id=program_id)
    if not routine:
        logger.warning("No routine returned for template %s", expanded_routine.template_id)
        result.skipped += 1
        return
    result.routines += 1

    variant = db_programs.insert_variant(routine_id=routine['id'])
    if not variant:
        logger.warning("No variant returned for routine %s", routine['id'])
        result.skipped += 1
        return

    for exercise in expanded_routine.exercises:
        try:
            variant_exercise = db_programs.insert_variant_exercise(
                variant_id=variant['id'],
                exercise_id=exercise.exercise_id,
                order_index=exercise.order_index,
                notes=exercise.notes
            )
            if not variant_exercise:
                result.skipped += 1
                continue
            result.exercises += 1

            created_sets = db_programs.insert_sets(
                variant_exercise['id'],
                [asdict(s) for s in exercise.sets]
            )
            result.sets += len(created_sets)
        except Exception as e:
            logger.exception("Error adding exercise '%s' to variant %s: %s",
                             exercise.import_name, variant['id'], e)
            result.skipped += 1

    scheduled = db_programs.insert_scheduled_routine(
        phase_id=phase_id,
        routine_variant_id=variant['id'],
        scheduled_at=expanded_routine.scheduled_at
    )
    if not scheduled:
        logger.warning("No phase routine returned for variant %s in phase %s", variant['id'], phase_id)
        result.skipped += 1
        return
    result.scheduled += 1


def persist_expanded_program(expanded: ExpandedProgram, user_id: str) -> ImportResult:
    """
    Write an expanded program in dependency order:
    program -> block -> phase -> routine/variant/exercises/sets -> phase routine.

    Raises:
        ProgramImportError: if the program itself cannot be created
    """
    try:
        program = db_programs.insert_program(
            user_id=user_id,
            name=expanded.name,
            description=expanded.description,
            goal=expanded.goal,
            is_active=True
        )
    except Exception as e:
        raise ProgramImportError(f'Error creating program: {e}') from e

    if not program:
        raise ProgramImportError('Error creating program')

    result = ImportResult(program_id=program['id'])

    for expanded_block in expanded.blocks:
        try:
            block = db_programs.insert_block(
                program_id=program['id'],
                name=expanded_block.name,
                block_type=expanded_block.block_type.value,
                order_index=expanded_block.order_index,
                duration_weeks=expanded_block.duration_weeks
            )
        except Exception as e:
            logger.exception("Error creating block '%s': %s", expanded_block.name, e)
            block = None

        if not block:
            result.skipped += 1
            continue
        result.blocks += 1

        for expanded_phase in expanded_block.phases:
            try:
                phase = db_programs.insert_phase(block_id=block['id'], week_number=expanded_phase.week_number)
            except Exception as e:
                logger.exception("Error creating phase for week %s: %s", expanded_phase.week_number, e)
                phase = None

            if not phase:
                result.skipped += 1
                continue
            result.phases += 1

            for expanded_routine in expanded_phase.routines:
                try:
                    _persist_routine(expanded_routine, phase['id'], program['id'], user_id, result)
                except Exception as e:
                    logger.exception("Error importing template %s in week %s: %s",
                                     expanded_routine.template_id, expanded_phase.week_number, e)
                    result.skipped += 1

    logger.info("Imported program %s: %s", program['id'], result)
    return result


# ============================================
# USE CASE
# ============================================

def import_program(text: str, user_id: str, today: date = None,
                   parser: Callable[[str], Optional[Dict[str, Any]]] = None) -> ImportResult:
    """
    Parse, expand and store a free-text program.

    Raises:
        ValueError: text is empty or too short to describe a program
        ProgramImportError: the parser produced nothing or the program insert failed
    """
    if not text or len(text) < Config.IMPORT_MIN_TEXT_LENGTH:
        raise ValueError('Text is too short or empty')

    if parser is None:
        parser = program_parser.parse_training_program

    import_doc = parser(text)
    if import_doc is None:
        raise ProgramImportError('Failed to parse program')

    catalog = db.get_exercise_catalog()
    expanded = expand(import_doc, catalog, today or date.today())

    if expanded.warnings:
        logger.warning("Program '%s' imported with %d skipped item(s)", expanded.name, len(expanded.warnings))

    return persist_expanded_program(expanded, user_id)
