from supabase import create_client, Client
from ledgerlens.config import settings

def get_supabase_client() -> Client:
    """
    Create and return a Supabase client instance.
    Uses service role key; vendor mappings are written server-side only.
    """
    supabase: Client = create_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_KEY
    )
    return supabase
