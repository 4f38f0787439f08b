"""Supabase client shared by the API, the email processor and scripts"""
import os
from dotenv import load_dotenv
from supabase import create_client, Client

from utils.logger import log_error, log_info

load_dotenv()

SUPABASE_URL = os.environ.get('SUPABASE_URL')
# Prefer the service-role key when deployed; services scope every query by user_id
SUPABASE_KEY = os.environ.get('SUPABASE_SERVICE_ROLE_KEY') or os.environ.get('SUPABASE_ANON_KEY')

if not SUPABASE_URL or not SUPABASE_KEY:
    raise ValueError(
        "Missing required environment variables: SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY "
        "(or SUPABASE_ANON_KEY) must be set. Please configure these in your environment or .env file."
    )

_client = None


def get_supabase() -> Client:
    """Get the Supabase client, creating it on first use"""
    global _client
    if _client is None:
        try:
            _client = create_client(SUPABASE_URL, SUPABASE_KEY)
        except Exception as e:
            log_error("Error initializing Supabase client", error=e)
            raise
        log_info(f"Supabase client connected to {SUPABASE_URL}")
    return _client
