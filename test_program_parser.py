"""
Program Parser Unit Tests
=========================
Run with: python -m pytest test_program_parser.py -v
"""
import json
import unittest
from unittest.mock import patch, MagicMock

import requests

import program_parser
from program_parser import parse_training_program, is_valid_import_doc


DOC = {
    'n': 'Imported',
    't': {'t1': {'n': 'Upper', 'd': 'Mon', 'e': [['Bench Press', 3, 8, 10, 70, 8]]}},
    'b': [{'n': 'Strength', 'w': 4, 's': [{'w': [1, 2], 'r': ['t1']}]}],
}


def _api_response(text, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.json.return_value = {'content': [{'type': 'text', 'text': text}]}
    return response


@patch.object(program_parser.Config, 'ANTHROPIC_API_KEY', 'test-key')
class TestParseTrainingProgram(unittest.TestCase):

    @patch('program_parser.requests.post')
    def test_returns_document(self, mock_post):
        mock_post.return_value = _api_response(json.dumps(DOC))

        result = parse_training_program('4 weeks of bench press')

        self.assertEqual(result, DOC)
        headers = mock_post.call_args.kwargs['headers']
        self.assertEqual(headers['x-api-key'], 'test-key')
        prompt = mock_post.call_args.kwargs['json']['messages'][0]['content']
        self.assertIn('4 weeks of bench press', prompt)

    @patch('program_parser.requests.post')
    def test_strips_markdown_fence(self, mock_post):
        mock_post.return_value = _api_response('```json\n' + json.dumps(DOC) + '\n```')

        self.assertEqual(parse_training_program('text'), DOC)

    @patch('program_parser.requests.post')
    def test_api_error_returns_none(self, mock_post):
        mock_post.return_value = _api_response('overloaded', status_code=529)

        with self.assertLogs('program_parser', level='ERROR'):
            self.assertIsNone(parse_training_program('text'))

    @patch('program_parser.requests.post')
    def test_invalid_json_returns_none(self, mock_post):
        mock_post.return_value = _api_response('Sorry, I cannot help with that.')

        with self.assertLogs('program_parser', level='ERROR'):
            self.assertIsNone(parse_training_program('text'))

    @patch('program_parser.requests.post')
    def test_wrong_shape_returns_none(self, mock_post):
        mock_post.return_value = _api_response(json.dumps({'blocks': []}))

        with self.assertLogs('program_parser', level='ERROR'):
            self.assertIsNone(parse_training_program('text'))

    @patch('program_parser.requests.post')
    def test_timeout_returns_none(self, mock_post):
        mock_post.side_effect = requests.exceptions.Timeout()

        with self.assertLogs('program_parser', level='ERROR'):
            self.assertIsNone(parse_training_program('text'))


class TestParserConfiguration(unittest.TestCase):

    @patch.object(program_parser.Config, 'ANTHROPIC_API_KEY', '')
    @patch('program_parser.requests.post')
    def test_missing_key_skips_api(self, mock_post):
        with self.assertLogs('program_parser', level='ERROR'):
            self.assertIsNone(parse_training_program('text'))

        mock_post.assert_not_called()


class TestIsValidImportDoc(unittest.TestCase):

    def test_valid(self):
        self.assertTrue(is_valid_import_doc(DOC))
        self.assertTrue(is_valid_import_doc({'b': []}))

    def test_invalid(self):
        self.assertFalse(is_valid_import_doc(None))
        self.assertFalse(is_valid_import_doc([]))
        self.assertFalse(is_valid_import_doc({'b': {}}))
        self.assertFalse(is_valid_import_doc({'b': [], 't': []}))
        self.assertFalse(is_valid_import_doc({'b': ['block']}))
        self.assertFalse(is_valid_import_doc({'b': [{'s': ['entry']}]}))


if __name__ == '__main__':
    unittest.main(verbosity=2)
