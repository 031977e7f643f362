"""
Database functions for training programs.
Programs own blocks, blocks own weekly phases, phases link routine variants
and the routines scheduled on concrete dates (phase_routines).
"""
import logging
from datetime import datetime
from db import get_supabase_client

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_WEEKS = 4


PROGRAM_TREE_SELECT = '''
    *,
    training_blocks (
        *,
        block_phases (
            *,
            variant:routine_variants (
                id,
                variant_name,
                intensity_level,
                routine_id,
                workout_routine:workout_routines (id, name)
            ),
            phase_routines (*)
        )
    )
'''


# ============================================
# PROGRAM QUERIES
# ============================================

def get_program_with_blocks_and_phases(program_id: str, user_id: str):
    """Get a program with its full block/phase tree, scoped to its owner."""
    supabase = get_supabase_client()

    response = supabase.table('training_programs')\
        .select(PROGRAM_TREE_SELECT)\
        .eq('id', program_id)\
        .eq('user_id', user_id)\
        .limit(1)\
        .execute()

    return response.data[0] if response.data else None


def get_user_programs(user_id: str, is_active: bool = None):
    """Get all programs for a user, newest first."""
    supabase = get_supabase_client()

    query = supabase.table('training_programs')\
        .select(PROGRAM_TREE_SELECT)\
        .eq('user_id', user_id)\
        .order('created_at', desc=True)

    if is_active is not None:
        query = query.eq('is_active', is_active)

    response = query.execute()
    return response.data or []


def insert_program(user_id: str, name: str, description: str = None, goal: str = None,
                   start_date: str = None, end_date: str = None, is_active: bool = True):
    """Create a program shell."""
    supabase = get_supabase_client()

    response = supabase.table('training_programs').insert({
        'user_id': user_id,
        'name': name,
        'description': description,
        'goal': goal,
        'start_date': start_date,
        'end_date': end_date,
        'is_active': is_active
    }).execute()

    return response.data[0] if response.data else None


def update_program(program_id: str, user_id: str, updates: dict):
    """Update program fields."""
    supabase = get_supabase_client()

    updates = dict(updates)
    updates['updated_at'] = datetime.utcnow().isoformat()

    response = supabase.table('training_programs')\
        .update(updates)\
        .eq('id', program_id)\
        .eq('user_id', user_id)\
        .execute()

    return response.data[0] if response.data else None


def delete_program(program_id: str, user_id: str):
    """Delete a program. Blocks, phases and phase routines cascade in storage."""
    supabase = get_supabase_client()

    response = supabase.table('training_programs')\
        .delete()\
        .eq('id', program_id)\
        .eq('user_id', user_id)\
        .execute()

    return response.data


def clone_program(program_id: str, new_name: str):
    """Clone a program through the clone_training_program database function. Returns the new id."""
    supabase = get_supabase_client()

    response = supabase.rpc('clone_training_program', {
        'source_program_id': program_id,
        'new_program_name': new_name
    }).execute()

    return response.data


# ============================================
# BLOCKS AND PHASES
# ============================================

def insert_block(program_id: str, name: str, block_type: str, order_index: int,
                 duration_weeks: int, notes: str = None):
    """Add a block to a program."""
    supabase = get_supabase_client()

    response = supabase.table('training_blocks').insert({
        'program_id': program_id,
        'name': name,
        'block_type': block_type,
        'order_index': order_index,
        'duration_weeks': duration_weeks,
        'notes': notes
    }).execute()

    return response.data[0] if response.data else None


def insert_phase(block_id: str, week_number: int, variant_id: str = None,
                 intensity_modifier: float = 1.0, volume_modifier: float = 1.0,
                 notes: str = None):
    """Add a weekly phase to a block."""
    supabase = get_supabase_client()

    response = supabase.table('block_phases').insert({
        'block_id': block_id,
        'week_number': week_number,
        'variant_id': variant_id,
        'intensity_modifier': intensity_modifier,
        'volume_modifier': volume_modifier,
        'notes': notes
    }).execute()

    return response.data[0] if response.data else None


def insert_phases(block_id: str, phases: list):
    """
    Bulk insert phases for a block in a single database call.

    Args:
        phases: List of dicts with week_number and optional variant_id,
                intensity_modifier, volume_modifier, notes
    """
    if not phases:
        return []

    supabase = get_supabase_client()

    insert_data = []
    for phase in phases:
        insert_data.append({
            'block_id': block_id,
            'week_number': phase['week_number'],
            'variant_id': phase.get('variant_id'),
            'intensity_modifier': phase.get('intensity_modifier') or 1.0,
            'volume_modifier': phase.get('volume_modifier') or 1.0,
            'notes': phase.get('notes')
        })

    response = supabase.table('block_phases').insert(insert_data).execute()

    return response.data or []


# ============================================
# ROUTINES, VARIANTS AND SET TARGETS
# ============================================

def insert_routine(user_id: str, name: str, program_id: str):
    """Create a gym routine owned by a program."""
    supabase = get_supabase_client()

    response = supabase.table('workout_routines').insert({
        'user_id': user_id,
        'name': name,
        'program_id': program_id,
        'type': 'gym',
        'is_active': True,
        'is_template': False
    }).execute()

    return response.data[0] if response.data else None


def insert_variant(routine_id: str, variant_name: str = 'Default', is_default: bool = True):
    """Create a routine variant."""
    supabase = get_supabase_client()

    response = supabase.table('routine_variants').insert({
        'routine_id': routine_id,
        'variant_name': variant_name,
        'is_default': is_default
    }).execute()

    return response.data[0] if response.data else None


def insert_variant_exercise(variant_id: str, exercise_id: str, order_index: int, notes: str = None):
    """Add an exercise to a routine variant."""
    supabase = get_supabase_client()

    response = supabase.table('variant_exercises').insert({
        'variant_id': variant_id,
        'exercise_id': exercise_id,
        'order_index': order_index,
        'notes': notes
    }).execute()

    return response.data[0] if response.data else None


def insert_sets(variant_exercise_id: str, sets: list):
    """
    Bulk insert per-set targets for a variant exercise.

    Args:
        sets: List of dicts with set_number, target_reps,
              target_weight_percent, target_rir
    """
    if not sets:
        return []

    supabase = get_supabase_client()

    insert_data = [{
        'variant_exercise_id': variant_exercise_id,
        'set_number': s['set_number'],
        'target_reps': s.get('target_reps'),
        'target_weight_percent': s.get('target_weight_percent'),
        'target_rir': s.get('target_rir')
    } for s in sets]

    response = supabase.table('variant_exercise_sets').insert(insert_data).execute()

    return response.data or []


def insert_scheduled_routine(phase_id: str, routine_variant_id: str, scheduled_at: datetime,
                             notes: str = None):
    """Place a routine variant on a date inside a phase."""
    supabase = get_supabase_client()

    data = {
        'phase_id': phase_id,
        'routine_variant_id': routine_variant_id,
        'scheduled_at': scheduled_at.isoformat()
    }
    if notes:
        data['notes'] = notes

    response = supabase.table('phase_routines').insert(data).execute()

    return response.data[0] if response.data else None


# ============================================
# AUTHORING
# ============================================

def _insert_blocks(program_id: str, blocks: list):
    """Insert authored blocks and their phases. A failing block is logged and skipped."""
    for i, block_data in enumerate(blocks or []):
        try:
            block = insert_block(
                program_id=program_id,
                name=block_data.get('name', f'Block {i + 1}'),
                block_type=block_data.get('block_type', 'hypertrophy'),
                order_index=block_data.get('order_index', i + 1),
                duration_weeks=block_data.get('duration_weeks') or DEFAULT_BLOCK_WEEKS,
                notes=block_data.get('notes')
            )
        except Exception as e:
            logger.exception("Error creating block %r: %s", block_data.get("name"), e)
            continue

        if block and block_data.get('phases'):
            try:
                insert_phases(block['id'], block_data['phases'])
            except Exception as e:
                logger.exception("Error creating phases for block %s: %s", block["id"], e)


def create_program_with_blocks(user_id: str, program_data: dict, blocks: list):
    """
    Create a program and its blocks/phases from an authoring form.

    A failing block is skipped so the rest of the program is still saved.
    Returns the created program row, or None if the program itself failed.
    """
    program = insert_program(
        user_id=user_id,
        name=program_data['name'],
        description=program_data.get('description'),
        goal=program_data.get('goal'),
        start_date=program_data.get('start_date'),
        end_date=program_data.get('end_date'),
        is_active=program_data.get('is_active', True)
    )

    if not program:
        return None

    _insert_blocks(program['id'], blocks)
    return program


def replace_program_blocks(program_id: str, blocks: list):
    """
    Swap a program's blocks for a new authored set.
    Existing blocks are deleted first; their phases and phase routines cascade.
    """
    supabase = get_supabase_client()

    supabase.table('training_blocks')\
        .delete()\
        .eq('program_id', program_id)\
        .execute()

    _insert_blocks(program_id, blocks)
