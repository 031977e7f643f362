import logging
from flask import Flask, jsonify, request, session
from functools import wraps
from config import Config
from datetime import date, datetime
import db
import db_programs
from db_programs import DEFAULT_BLOCK_WEEKS
import periodization
import program_import
from schedule_dates import program_end_date
from schedule_model import Program, LastSession, Block, validate_phase_weeks

logging.basicConfig(
    level=Config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s'
)
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config.from_object(Config)

# ============================================
# AUTH HELPERS
# ============================================

def get_current_user():
    """Get the current logged-in user from session."""
    return session.get('user')


def api_login_required(f):
    """Decorator returning 401 JSON when there is no session user."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not get_current_user():
            return jsonify({'error': 'Unauthorized'}), 401
        return f(*args, **kwargs)
    return decorated_function


def _parse_iso_date(value):
    """Parse YYYY-MM-DD from request data; raises ValueError on bad input."""
    if not value:
        return None
    if not isinstance(value, str):
        raise ValueError(f'Not a date string: {value!r}')
    return datetime.strptime(value, '%Y-%m-%d').date()


def _total_weeks(blocks):
    return sum(int(b.get('duration_weeks') or 0) for b in blocks or [])


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _prepare_blocks(blocks):
    """
    Apply the stored block defaults and check every phase falls inside its block.

    Returns (blocks, None) when valid, else (None, error body for a 400).
    """
    if not isinstance(blocks, list):
        return None, {'error': 'blocks must be a list'}

    prepared = []
    for i, block_data in enumerate(blocks):
        if not isinstance(block_data, dict):
            return None, {'error': f'Block {i + 1} must be an object'}

        duration_weeks = block_data.get('duration_weeks') or DEFAULT_BLOCK_WEEKS
        if not _is_int(duration_weeks) or duration_weeks < 1:
            return None, {'error': f'Block {i + 1} duration_weeks must be a positive integer'}

        phases = block_data.get('phases') or []
        if not isinstance(phases, list) or not all(
                isinstance(p, dict) and _is_int(p.get('week_number')) for p in phases):
            return None, {'error': f'Block {i + 1} phases need an integer week_number'}

        block_data = dict(block_data, duration_weeks=duration_weeks)
        block = Block.from_row({
            'name': block_data.get('name'),
            'duration_weeks': duration_weeks,
            'block_phases': phases
        })
        invalid = validate_phase_weeks(block)
        if invalid:
            return None, {
                'error': f"Block '{block.name}' has phases outside weeks 1-{block.duration_weeks}",
                'weeks': [p.week_number for p in invalid]
            }
        prepared.append(block_data)

    return prepared, None


# ============================================
# PROGRAM ROUTES
# ============================================

@app.route('/api/health')
def api_health():
    return jsonify({'status': 'ok'})


@app.route('/api/programs', methods=['GET'])
@api_login_required
def api_list_programs():
    """List the user's programs, optionally filtered by ?isActive=true|false."""
    user = get_current_user()

    is_active = request.args.get('isActive')
    if is_active is not None:
        is_active = is_active == 'true'

    try:
        programs = db_programs.get_user_programs(user['id'], is_active=is_active)
        return jsonify({'data': programs})
    except Exception as e:
        logger.exception("Error fetching programs: %s", e)
        return jsonify({'error': 'Error fetching programs'}), 500


@app.route('/api/programs', methods=['POST'])
@api_login_required
def api_create_program():
    """Create a program with blocks and phases from the authoring form."""
    user = get_current_user()
    data = request.get_json(silent=True) or {}

    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'Program name is required'}), 400

    blocks = data.get('blocks') or []

    try:
        start_date = _parse_iso_date(data.get('start_date'))
    except ValueError:
        return jsonify({'error': 'start_date must be YYYY-MM-DD'}), 400

    blocks, error = _prepare_blocks(blocks)
    if error:
        return jsonify(error), 400

    end_date = program_end_date(start_date, _total_weeks(blocks))

    try:
        program = db_programs.create_program_with_blocks(
            user_id=user['id'],
            program_data={
                'name': name,
                'description': (data.get('description') or '').strip() or None,
                'goal': (data.get('goal') or '').strip() or None,
                'start_date': start_date.isoformat() if start_date else None,
                'end_date': end_date.isoformat() if end_date else None
            },
            blocks=blocks
        )
    except Exception as e:
        logger.exception("Error creating program: %s", e)
        return jsonify({'error': 'Error creating program'}), 500

    if not program:
        return jsonify({'error': 'Error creating program'}), 500

    complete = db_programs.get_program_with_blocks_and_phases(program['id'], user['id'])
    return jsonify({'data': complete or program})


@app.route('/api/programs/<program_id>', methods=['GET'])
@api_login_required
def api_get_program(program_id):
    user = get_current_user()

    try:
        program = db_programs.get_program_with_blocks_and_phases(program_id, user['id'])
    except Exception as e:
        logger.exception("Error fetching program %s: %s", program_id, e)
        return jsonify({'error': 'Internal server error'}), 500

    if not program:
        return jsonify({'error': 'Program not found'}), 404
    return jsonify({'data': program})


@app.route('/api/programs/<program_id>', methods=['PUT'])
@api_login_required
def api_update_program(program_id):
    """
    Update program fields and optionally replace its blocks.
    Changing start_date or blocks recomputes end_date.
    """
    user = get_current_user()
    data = request.get_json(silent=True) or {}

    updates = {k: data[k] for k in ('name', 'description', 'goal', 'is_active') if k in data}
    if 'name' in updates and not (updates['name'] or '').strip():
        return jsonify({'error': 'Program name is required'}), 400

    blocks = None
    if 'blocks' in data:
        blocks, error = _prepare_blocks(data['blocks'] or [])
        if error:
            return jsonify(error), 400

    try:
        start_date = _parse_iso_date(data['start_date']) if 'start_date' in data else None
    except ValueError:
        return jsonify({'error': 'start_date must be YYYY-MM-DD'}), 400

    if not updates and 'start_date' not in data and blocks is None:
        return jsonify({'error': 'No updates provided'}), 400

    try:
        if 'start_date' in data or blocks is not None:
            existing = db_programs.get_program_with_blocks_and_phases(program_id, user['id'])
            if not existing:
                return jsonify({'error': 'Program not found'}), 404
            existing_program = Program.from_row(existing)

            if 'start_date' in data:
                updates['start_date'] = start_date.isoformat() if start_date else None
            else:
                start_date = existing_program.start_date

            total_weeks = _total_weeks(blocks) if blocks is not None else existing_program.total_weeks()
            end_date = program_end_date(start_date, total_weeks)
            updates['end_date'] = end_date.isoformat() if end_date else None

        program = db_programs.update_program(program_id, user['id'], updates)
        if not program:
            return jsonify({'error': 'Program not found'}), 404

        if blocks is not None:
            db_programs.replace_program_blocks(program_id, blocks)
    except Exception as e:
        logger.exception("Error updating program %s: %s", program_id, e)
        return jsonify({'error': 'Error updating program'}), 500

    complete = db_programs.get_program_with_blocks_and_phases(program_id, user['id'])
    return jsonify({'data': complete or program})


@app.route('/api/programs/<program_id>', methods=['DELETE'])
@api_login_required
def api_delete_program(program_id):
    user = get_current_user()

    try:
        db_programs.delete_program(program_id, user['id'])
        return jsonify({'success': True})
    except Exception as e:
        logger.exception("Error deleting program %s: %s", program_id, e)
        return jsonify({'error': 'Error deleting program'}), 500


@app.route('/api/programs/<program_id>/clone', methods=['POST'])
@api_login_required
def api_clone_program(program_id):
    user = get_current_user()
    data = request.get_json(silent=True) or {}

    name = (data.get('name') or '').strip()
    if not name:
        return jsonify({'error': 'New program name is required'}), 400

    try:
        new_program_id = db_programs.clone_program(program_id, name)
    except Exception as e:
        logger.exception("Error cloning program %s: %s", program_id, e)
        return jsonify({'error': 'Error cloning program'}), 500

    new_program = db_programs.get_program_with_blocks_and_phases(new_program_id, user['id'])
    if not new_program:
        return jsonify({'error': 'Program cloned but error fetching details'}), 500
    return jsonify({'data': new_program})


# ============================================
# SUGGESTION
# ============================================

@app.route('/api/programs/<program_id>/suggestion')
@api_login_required
def api_program_suggestion(program_id):
    """Which block, week and routine variant the athlete should train today."""
    user = get_current_user()

    try:
        today = _parse_iso_date(request.args.get('date')) or date.today()
    except ValueError:
        return jsonify({'error': 'date must be YYYY-MM-DD'}), 400

    try:
        row = db_programs.get_program_with_blocks_and_phases(program_id, user['id'])
        if not row:
            return jsonify({'error': 'Program not found'}), 404

        program = Program.from_row(row)
        last_session = None
        if program.start_date is not None:
            last_session = LastSession.from_row(db.get_last_completed_session(user['id']))

        result = periodization.resolve(program, today, last_session)
    except Exception as e:
        logger.exception("Error resolving suggestion for program %s: %s", program_id, e)
        return jsonify({'error': 'Internal server error'}), 500

    if isinstance(result, periodization.NeedsStartDate):
        return jsonify({
            'error': 'Program has no start date',
            'suggestion': None,
            'message': 'Set a start date for this program to get suggestions.'
        }), 400

    if isinstance(result, periodization.NotStartedYet):
        return jsonify({
            'suggestion': None,
            'message': f'The program starts on {result.start_date.isoformat()}',
            'daysUntilStart': result.days_until_start
        })

    if isinstance(result, periodization.Completed):
        return jsonify({
            'suggestion': None,
            'message': 'The program has finished.',
            'programCompleted': True,
            'completedOn': result.completed_on.isoformat()
        })

    return jsonify({'data': result.to_dict()})


# ============================================
# IMPORT
# ============================================

@app.route('/api/programs/import', methods=['POST'])
@api_login_required
def api_import_program():
    """Import a program from free text."""
    user = get_current_user()
    data = request.get_json(silent=True) or {}

    try:
        result = program_import.import_program(data.get('text') or '', user['id'])
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    except program_import.ProgramImportError as e:
        logger.error("Program import failed: %s", e)
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.exception("Error in program import: %s", e)
        return jsonify({'error': 'Internal server error'}), 500

    return jsonify({
        'success': True,
        'programId': result.program_id,
        'summary': result.to_dict()
    })


if __name__ == '__main__':
    app.run(debug=True, port=5000)
