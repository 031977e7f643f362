import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Supabase
    SUPABASE_URL = os.getenv('SUPABASE_URL', '')
    SUPABASE_KEY = os.getenv('SUPABASE_KEY', '')

    # Anthropic API (for parsing free-text programs)
    ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY', '')
    PROGRAM_PARSER_MODEL = os.getenv('PROGRAM_PARSER_MODEL', 'claude-sonnet-4-20250514')

    # Program import
    IMPORT_MIN_TEXT_LENGTH = int(os.getenv('IMPORT_MIN_TEXT_LENGTH', '50'))
