import uuid

from supabase import create_client, Client
from config import Config

def get_supabase_client() -> Client:
    """Get a Supabase client instance."""
    return create_client(Config.SUPABASE_URL, Config.SUPABASE_KEY)


# ============================================
# EXERCISE CATALOG QUERIES
# ============================================

def get_exercise_catalog():
    """Fetch id and name of every exercise, for name resolution on import."""
    supabase = get_supabase_client()
    response = supabase.table('exercises').select('id, name').execute()
    return response.data or []


def _is_uuid(value) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def find_exercise_by_id_or_name(value: str):
    """Look up one exercise by its id, falling back to a case-insensitive name match."""
    supabase = get_supabase_client()

    if _is_uuid(value):
        response = supabase.table('exercises')\
            .select('*')\
            .eq('id', value)\
            .limit(1)\
            .execute()

        if response.data:
            return response.data[0]

    response = supabase.table('exercises')\
        .select('*')\
        .ilike('name', value)\
        .limit(1)\
        .execute()

    return response.data[0] if response.data else None


# ============================================
# TRAINING SESSION QUERIES
# ============================================

def get_last_completed_session(user_id: str):
    """Get the user's most recent logged training (id, date, routine_id)."""
    supabase = get_supabase_client()

    response = supabase.table('gym_trainings')\
        .select('id, date, routine_id')\
        .eq('user_id', user_id)\
        .order('date', desc=True)\
        .limit(1)\
        .execute()

    return response.data[0] if response.data else None
