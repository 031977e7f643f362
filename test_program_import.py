"""
Program Import Unit Tests
=========================
Run with: python -m pytest test_program_import.py -v
"""
import copy
import unittest
from unittest.mock import patch
from datetime import date, datetime

import program_import
from program_import import (
    expand,
    persist_expanded_program,
    import_program,
    classify_block_type,
    block_duration_weeks,
    build_set_targets,
    ProgramImportError,
)
from schedule_model import BlockType


CATALOG = [
    {'id': 'ex-bench', 'name': 'Bench Press'},
    {'id': 'ex-squat', 'name': 'Barbell Back Squat'},
    {'id': 'ex-row', 'name': 'Barbell Row'},
]

# Wednesday; the program's week 1 starts Monday 2024-01-08
IMPORT_DAY = date(2024, 1, 3)


def _doc():
    return {
        'n': 'Powerbuilding',
        'd': 'Eight weeks',
        'g': 'strength',
        't': {
            't1': {'n': 'Upper', 'd': 'Wed', 'e': [
                ['Bench Press', 3, 8, 10, 70, 8],
                ['Cable Fly Machine', 3, 12, 15, None, None],
                ['Barbell Row', 4, 6, 8, 75, 7.5, 'Pause at chest'],
            ]},
            't2': {'n': 'Lower', 'd': 'Mon', 'e': [
                ['Squat', None, 5, 5, 80, None],
            ]},
        },
        'b': [
            {'n': 'Fase de Hipertrofia', 'w': 4, 's': [
                {'w': [1, 3], 'r': ['t1']},
                {'w': [2, 4], 'r': ['t1', 't2']},
            ]},
            {'n': 'Peak', 's': [
                {'w': [1], 'r': ['t2', 'missing']},
            ]},
        ],
    }


class TestExpandScheduling(unittest.TestCase):
    """Dates and phase layout"""

    def test_week_one_starts_next_monday(self):
        expanded = expand(_doc(), CATALOG, IMPORT_DAY)

        self.assertEqual(expanded.start_of_program, date(2024, 1, 8))

    def test_import_on_monday_starts_same_day(self):
        expanded = expand(_doc(), CATALOG, date(2024, 1, 8))

        self.assertEqual(expanded.start_of_program, date(2024, 1, 8))

    def test_import_on_sunday_starts_next_day(self):
        expanded = expand(_doc(), CATALOG, date(2024, 1, 7))

        self.assertEqual(expanded.start_of_program, date(2024, 1, 8))

    def test_wednesday_template_weeks_one_and_three(self):
        doc = {'t': {'t1': {'n': 'Upper', 'd': 'Wed', 'e': []}},
               'b': [{'n': 'Block', 'w': 4, 's': [{'w': [1, 3], 'r': ['t1']}]}]}

        expanded = expand(doc, CATALOG, IMPORT_DAY)
        start = expanded.start_of_program
        dates = [r.scheduled_at for p in expanded.blocks[0].phases for r in p.routines]

        self.assertEqual(dates, [
            datetime(start.year, start.month, start.day + 2),
            datetime(start.year, start.month, start.day + 16),
        ])
        self.assertEqual(dates[0].time(), datetime.min.time())

    def test_one_phase_per_week_sorted(self):
        expanded = expand(_doc(), CATALOG, IMPORT_DAY)
        block = expanded.blocks[0]

        self.assertEqual([p.week_number for p in block.phases], [1, 2, 3, 4])
        self.assertEqual([r.template_id for r in block.phases[1].routines], ['t1', 't2'])

    def test_repeated_week_merges_into_one_phase(self):
        doc = {'t': {'t1': {'n': 'A', 'd': 'Mon', 'e': []}, 't2': {'n': 'B', 'd': 'Thu', 'e': []}},
               'b': [{'n': 'Block', 's': [{'w': [1], 'r': ['t1']}, {'w': [1], 'r': ['t2']}]}]}

        phases = expand(doc, CATALOG, IMPORT_DAY).blocks[0].phases

        self.assertEqual(len(phases), 1)
        self.assertEqual([r.name for r in phases[0].routines], ['A', 'B'])

    def test_unknown_weekday_defaults_to_monday(self):
        doc = {'t': {'t1': {'n': 'A', 'd': 'Someday', 'e': []}},
               'b': [{'n': 'Block', 's': [{'w': [2], 'r': ['t1']}]}]}

        routine = expand(doc, CATALOG, IMPORT_DAY).blocks[0].phases[0].routines[0]

        self.assertEqual(routine.scheduled_at, datetime(2024, 1, 15))


class TestExpandBlocks(unittest.TestCase):

    def test_program_defaults(self):
        expanded = expand({'b': []}, CATALOG, IMPORT_DAY)

        self.assertEqual(expanded.name, 'Imported Program')
        self.assertEqual(expanded.blocks, [])

    def test_order_index_is_sequential(self):
        expanded = expand(_doc(), CATALOG, IMPORT_DAY)

        self.assertEqual([b.order_index for b in expanded.blocks], [1, 2])

    def test_block_types_from_names(self):
        expanded = expand(_doc(), CATALOG, IMPORT_DAY)

        self.assertEqual(expanded.blocks[0].block_type, BlockType.HYPERTROPHY)
        self.assertEqual(expanded.blocks[1].block_type, BlockType.PEAKING)

    def test_duration_fallbacks(self):
        self.assertEqual(block_duration_weeks({'w': 5, 's': [{}]}), 5)
        self.assertEqual(block_duration_weeks({'s': [{}, {}, {}]}), 6)
        self.assertEqual(block_duration_weeks({'s': []}), 4)
        self.assertEqual(block_duration_weeks({}), 4)

    def test_classify_block_type(self):
        self.assertEqual(classify_block_type('Strength Phase'), BlockType.STRENGTH)
        self.assertEqual(classify_block_type('Bloque de FUERZA'), BlockType.STRENGTH)
        self.assertEqual(classify_block_type('Adaptacion anatomica'), BlockType.ENDURANCE)
        self.assertEqual(classify_block_type('Pico'), BlockType.PEAKING)
        self.assertEqual(classify_block_type('Hypertrophy 2'), BlockType.HYPERTROPHY)
        self.assertEqual(classify_block_type('Mystery block'), BlockType.HYPERTROPHY)
        self.assertEqual(classify_block_type(None), BlockType.HYPERTROPHY)

    def test_missing_template_is_skipped_with_warning(self):
        with self.assertLogs('program_import', level='WARNING') as logs:
            expanded = expand(_doc(), CATALOG, IMPORT_DAY)

        peak = expanded.blocks[1]
        self.assertEqual([r.template_id for r in peak.phases[0].routines], ['t2'])
        self.assertTrue(any('missing' in line for line in logs.output))
        self.assertTrue(any('missing' in w for w in expanded.warnings))


class TestExpandExercises(unittest.TestCase):

    def _upper(self):
        expanded = expand(_doc(), CATALOG, IMPORT_DAY)
        return expanded.blocks[0].phases[0].routines[0]

    def test_bench_press_set_targets(self):
        bench = self._upper().exercises[0]

        self.assertEqual(bench.exercise_id, 'ex-bench')
        self.assertEqual(len(bench.sets), 3)
        for i, s in enumerate(bench.sets, start=1):
            self.assertEqual(s.set_number, i)
            self.assertEqual(s.target_reps, 8)
            self.assertEqual(s.target_weight_percent, 70)
            self.assertEqual(s.target_rir, 2)

    def test_unmatched_exercise_is_dropped_keeping_positions(self):
        exercises = self._upper().exercises

        self.assertEqual([e.exercise_id for e in exercises], ['ex-bench', 'ex-row'])
        self.assertEqual([e.order_index for e in exercises], [1, 3])

    def test_row_notes_and_fractional_rpe(self):
        row = self._upper().exercises[1]

        self.assertEqual(row.notes, 'Pause at chest')
        self.assertEqual(row.sets[0].target_rir, 2.5)

    def test_substring_match_and_default_set_count(self):
        expanded = expand(_doc(), CATALOG, IMPORT_DAY)
        squat = expanded.blocks[0].phases[1].routines[1].exercises[0]

        self.assertEqual(squat.exercise_id, 'ex-squat')
        self.assertEqual(len(squat.sets), 3)
        self.assertIsNone(squat.sets[0].target_rir)

    def test_short_rows_are_padded(self):
        sets = build_set_targets(['Curl', 2])

        self.assertEqual(len(sets), 2)
        self.assertIsNone(sets[0].target_reps)
        self.assertIsNone(sets[0].target_weight_percent)
        self.assertIsNone(sets[0].target_rir)

    def test_expand_is_deterministic(self):
        doc = _doc()
        first = expand(doc, CATALOG, IMPORT_DAY).to_dict()
        second = expand(copy.deepcopy(doc), CATALOG, IMPORT_DAY).to_dict()

        self.assertEqual(first, second)


class TestExpandMalformedInput(unittest.TestCase):
    """Bad scalars from the parser drop one row or week, never the program"""

    def _doc(self, rows, weeks):
        return {'t': {'t1': {'n': 'Upper', 'd': 'Mon', 'e': rows}},
                'b': [{'n': 'Strength', 'w': 4, 's': [{'w': weeks, 'r': ['t1']}]}]}

    def test_numeric_strings_are_converted(self):
        doc = self._doc([['Bench Press', '4', '6', 8, '72.5', '8']], ['1', 2.0])

        expanded = expand(doc, CATALOG, IMPORT_DAY)

        phases = expanded.blocks[0].phases
        self.assertEqual([p.week_number for p in phases], [1, 2])
        bench = phases[0].routines[0].exercises[0]
        self.assertEqual(len(bench.sets), 4)
        self.assertEqual(bench.sets[0].target_reps, 6)
        self.assertEqual(bench.sets[0].target_weight_percent, 72.5)
        self.assertEqual(bench.sets[0].target_rir, 2)

    def test_non_numeric_rpe_drops_only_that_row(self):
        doc = self._doc([['Bench Press', 3, 8, 10, 70, 'hard'], ['Barbell Row', 3, 8, 10, 70, 8]], [1])

        with self.assertLogs('program_import', level='WARNING') as logs:
            expanded = expand(doc, CATALOG, IMPORT_DAY)

        exercises = expanded.blocks[0].phases[0].routines[0].exercises
        self.assertEqual([e.exercise_id for e in exercises], ['ex-row'])
        self.assertEqual(exercises[0].order_index, 2)
        self.assertTrue(any('Bench Press' in line for line in logs.output))
        self.assertEqual(len(expanded.warnings), 1)

    def test_bad_weeks_are_skipped(self):
        doc = self._doc([['Bench Press', 3, 8, 10, 70, 8]], ['one', 0, None, 3])

        with self.assertLogs('program_import', level='WARNING'):
            expanded = expand(doc, CATALOG, IMPORT_DAY)

        self.assertEqual([p.week_number for p in expanded.blocks[0].phases], [3])
        self.assertEqual(len(expanded.warnings), 3)

    def test_malformed_entries_are_skipped(self):
        doc = {'t': {'t1': {'n': 'Upper', 'e': [['Bench Press', 3, 8, 10, 70, 8]]}, 't2': ['not', 'a', 'dict']},
               'b': ['not a block',
                     {'n': 'Strength', 'w': '3', 's': ['bad', {'w': 1, 'r': ['t1']},
                                                      {'w': [1], 'r': ['t1', 't2', ['t1']]}]}]}

        with self.assertLogs('program_import', level='WARNING'):
            expanded = expand(doc, CATALOG, IMPORT_DAY)

        self.assertEqual(len(expanded.blocks), 1)
        block = expanded.blocks[0]
        self.assertEqual((block.order_index, block.duration_weeks), (1, 3))
        self.assertEqual([r.template_id for r in block.phases[0].routines], ['t1'])
        self.assertEqual(len(expanded.warnings), 5)

    def test_routines_do_not_share_exercise_lists(self):
        doc = self._doc([['Bench Press', 3, 8, 10, 70, 8]], [1, 2])
        expanded = expand(doc, CATALOG, IMPORT_DAY)
        week_one, week_two = [p.routines[0] for p in expanded.blocks[0].phases]

        week_one.exercises.clear()

        self.assertEqual(len(week_two.exercises), 1)


class TestPersistExpandedProgram(unittest.TestCase):
    """Writes go through db_programs; partial failures are skipped"""

    def _expanded(self):
        doc = {'n': 'Small', 't': {'t1': {'n': 'Upper', 'd': 'Mon', 'e': [['Bench Press', 3, 8, 10, 70, 8]]}},
               'b': [{'n': 'Strength', 'w': 4, 's': [{'w': [1, 3], 'r': ['t1']}]}]}
        return expand(doc, CATALOG, IMPORT_DAY)

    @patch('program_import.db_programs')
    def test_program_insert_failure_is_fatal(self, mock_db):
        mock_db.insert_program.return_value = None

        with self.assertRaises(ProgramImportError):
            persist_expanded_program(self._expanded(), 'user123')

        mock_db.insert_block.assert_not_called()

    @patch('program_import.db_programs')
    def test_program_insert_exception_is_fatal(self, mock_db):
        mock_db.insert_program.side_effect = RuntimeError('db down')

        with self.assertRaises(ProgramImportError):
            persist_expanded_program(self._expanded(), 'user123')

    @patch('program_import.db_programs')
    def test_writes_full_tree(self, mock_db):
        mock_db.insert_program.return_value = {'id': 'p1'}
        mock_db.insert_block.return_value = {'id': 'b1'}
        mock_db.insert_phase.side_effect = [{'id': 'ph1'}, {'id': 'ph3'}]
        mock_db.insert_routine.side_effect = [{'id': 'r1'}, {'id': 'r2'}]
        mock_db.insert_variant.side_effect = [{'id': 'v1'}, {'id': 'v2'}]
        mock_db.insert_variant_exercise.return_value = {'id': 've'}
        mock_db.insert_sets.return_value = [{}, {}, {}]
        mock_db.insert_scheduled_routine.return_value = {'id': 'sr'}

        result = persist_expanded_program(self._expanded(), 'user123')

        self.assertEqual(result.program_id, 'p1')
        self.assertEqual((result.blocks, result.phases, result.routines), (1, 2, 2))
        self.assertEqual((result.exercises, result.sets, result.scheduled), (2, 6, 2))
        self.assertEqual(result.skipped, 0)

        mock_db.insert_block.assert_called_once_with(
            program_id='p1', name='Strength', block_type='strength', order_index=1, duration_weeks=4
        )
        # a fresh routine per scheduled occurrence
        self.assertEqual(mock_db.insert_routine.call_count, 2)
        mock_db.insert_scheduled_routine.assert_called_with(
            phase_id='ph3', routine_variant_id='v2', scheduled_at=datetime(2024, 1, 22)
        )
        sets_arg = mock_db.insert_sets.call_args[0][1]
        self.assertEqual(sets_arg[0], {'set_number': 1, 'target_reps': 8,
                                       'target_weight_percent': 70, 'target_rir': 2})

    @patch('program_import.db_programs')
    def test_failing_template_is_skipped(self, mock_db):
        mock_db.insert_program.return_value = {'id': 'p1'}
        mock_db.insert_block.return_value = {'id': 'b1'}
        mock_db.insert_phase.side_effect = [{'id': 'ph1'}, {'id': 'ph3'}]
        mock_db.insert_routine.side_effect = [RuntimeError('insert failed'), {'id': 'r2'}]
        mock_db.insert_variant.return_value = {'id': 'v2'}
        mock_db.insert_variant_exercise.return_value = {'id': 've'}
        mock_db.insert_sets.return_value = [{}, {}, {}]
        mock_db.insert_scheduled_routine.return_value = {'id': 'sr'}

        with self.assertLogs('program_import', level='ERROR'):
            result = persist_expanded_program(self._expanded(), 'user123')

        self.assertEqual(result.routines, 1)
        self.assertEqual(result.scheduled, 1)
        self.assertEqual(result.skipped, 1)

    @patch('program_import.db_programs')
    def test_missing_phase_routine_is_counted_as_skipped(self, mock_db):
        mock_db.insert_program.return_value = {'id': 'p1'}
        mock_db.insert_block.return_value = {'id': 'b1'}
        mock_db.insert_phase.side_effect = [{'id': 'ph1'}, {'id': 'ph3'}]
        mock_db.insert_routine.side_effect = [{'id': 'r1'}, {'id': 'r2'}]
        mock_db.insert_variant.side_effect = [{'id': 'v1'}, {'id': 'v2'}]
        mock_db.insert_variant_exercise.return_value = {'id': 've'}
        mock_db.insert_sets.return_value = [{}, {}, {}]
        mock_db.insert_scheduled_routine.side_effect = [None, {'id': 'sr'}]

        with self.assertLogs('program_import', level='WARNING') as logs:
            result = persist_expanded_program(self._expanded(), 'user123')

        self.assertEqual(result.scheduled, 1)
        self.assertEqual(result.skipped, 1)
        self.assertTrue(any('v1' in line for line in logs.output))

    @patch('program_import.db_programs')
    def test_failing_block_skips_its_phases(self, mock_db):
        mock_db.insert_program.return_value = {'id': 'p1'}
        mock_db.insert_block.return_value = None

        result = persist_expanded_program(self._expanded(), 'user123')

        self.assertEqual(result.blocks, 0)
        self.assertEqual(result.skipped, 1)
        mock_db.insert_phase.assert_not_called()


class TestImportProgram(unittest.TestCase):

    LONG_TEXT = 'Week 1-4 hypertrophy: Monday bench press 3x8 at RPE 8, Wednesday squats 3x5.'

    def test_short_text_is_rejected(self):
        with self.assertRaises(ValueError):
            import_program('too short', 'user123', parser=lambda text: {'b': []})

    def test_parser_failure_is_fatal(self):
        with self.assertRaises(ProgramImportError):
            import_program(self.LONG_TEXT, 'user123', parser=lambda text: None)

    @patch('program_import.persist_expanded_program')
    @patch('program_import.db')
    def test_parses_expands_and_persists(self, mock_db, mock_persist):
        mock_db.get_exercise_catalog.return_value = CATALOG
        mock_persist.return_value = program_import.ImportResult(program_id='p1')

        result = import_program(self.LONG_TEXT, 'user123', today=IMPORT_DAY, parser=lambda text: _doc())

        self.assertEqual(result.program_id, 'p1')
        expanded, user_id = mock_persist.call_args[0]
        self.assertEqual(user_id, 'user123')
        self.assertEqual(expanded.name, 'Powerbuilding')
        self.assertEqual(expanded.start_of_program, date(2024, 1, 8))

    @patch('program_import.persist_expanded_program')
    @patch('program_import.db')
    @patch('program_import.program_parser')
    def test_uses_ai_parser_by_default(self, mock_parser, mock_db, mock_persist):
        mock_parser.parse_training_program.return_value = {'b': []}
        mock_db.get_exercise_catalog.return_value = []
        mock_persist.return_value = program_import.ImportResult(program_id='p1')

        import_program(self.LONG_TEXT, 'user123', today=IMPORT_DAY)

        mock_parser.parse_training_program.assert_called_once_with(self.LONG_TEXT)


if __name__ == '__main__':
    unittest.main(verbosity=2)
