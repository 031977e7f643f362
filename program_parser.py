"""
Program Parser
==============
Uses Claude to summarize a free-text training program into the compact
import document consumed by program_import.expand().

Returns None whenever the text cannot be turned into a usable document;
the importer treats that as a hard failure.
"""
import json
import logging
import requests
from typing import Optional, Dict, Any

from config import Config

logger = logging.getLogger(__name__)


# ============================================
# CONFIGURATION
# ============================================

PARSER_CONFIG = {
    'api_url': 'https://api.anthropic.com/v1/messages',
    'anthropic_version': '2023-06-01',
    'max_tokens': 8000,
    'timeout_seconds': 60
}

PARSE_PROMPT = """You convert training programs into compact JSON.

Write every distinct workout ONCE as a template in "t" and reference it by id
from the weeks it is trained. Return ONLY JSON with this shape:

{{
  "n": "program name",
  "d": "short description",
  "g": "main goal",
  "t": {{
    "t1": {{
      "n": "workout name",
      "d": "Mon|Tue|Wed|Thu|Fri|Sat|Sun",
      "e": [["exercise name", sets, reps_min, reps_max, weight_percent_1rm_or_null, rpe_or_null, "notes (optional)"]]
    }}
  }},
  "b": [
    {{
      "n": "block name (e.g. Hypertrophy, Strength, Peaking)",
      "w": duration_in_weeks,
      "s": [{{"w": [week numbers inside the block], "r": ["template ids trained those weeks"]}}]
    }}
  ]
}}

Rules:
- Week numbers start at 1 at the beginning of EACH block.
- Group weeks that train exactly the same templates into one "s" entry.
- Use English exercise names as they appear in a typical gym exercise catalog.

PROGRAM:
{text}
"""


# ============================================
# VALIDATION
# ============================================

def is_valid_import_doc(doc: Any) -> bool:
    """Check the minimal shape the expander relies on."""
    if not isinstance(doc, dict):
        return False
    if not isinstance(doc.get('b'), list):
        return False
    if 't' in doc and doc['t'] is not None and not isinstance(doc['t'], dict):
        return False
    for block in doc['b']:
        if not isinstance(block, dict):
            return False
        for entry in block.get('s') or []:
            if not isinstance(entry, dict):
                return False
    return True


def _extract_json(content: str) -> Any:
    # Handle potential markdown code blocks
    content = content.strip()
    if content.startswith('```'):
        content = content.split('```')[1]
        if content.startswith('json'):
            content = content[4:]
    return json.loads(content)


# ============================================
# ANTHROPIC API
# ============================================

def parse_training_program(text: str) -> Optional[Dict[str, Any]]:
    """
    Parse a free-text program into the compact import document.

    Returns:
        The document, or None if the API is not configured, fails,
        or returns something that is not a valid document
    """
    api_key = Config.ANTHROPIC_API_KEY

    if not api_key:
        logger.error("Program parser: no Anthropic API key configured")
        return None

    try:
        response = requests.post(
            PARSER_CONFIG['api_url'],
            headers={
                'Content-Type': 'application/json',
                'x-api-key': api_key,
                'anthropic-version': PARSER_CONFIG['anthropic_version']
            },
            json={
                'model': Config.PROGRAM_PARSER_MODEL,
                'max_tokens': PARSER_CONFIG['max_tokens'],
                'messages': [{'role': 'user', 'content': PARSE_PROMPT.format(text=text)}]
            },
            timeout=PARSER_CONFIG['timeout_seconds']
        )

        if response.status_code != 200:
            logger.error("Program parser API error: %s - %s", response.status_code, response.text)
            return None

        result = response.json()
        content = (result.get('content') or [{}])[0].get('text', '')
        doc = _extract_json(content)

    except json.JSONDecodeError as e:
        logger.error("Program parser JSON parse error: %s", e)
        return None
    except requests.exceptions.Timeout:
        logger.error("Program parser API timeout")
        return None
    except requests.exceptions.RequestException as e:
        logger.error("Program parser request error: %s", e)
        return None

    if not is_valid_import_doc(doc):
        logger.error("Program parser returned an unexpected document shape")
        return None

    return doc
