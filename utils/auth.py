"""Authentication utilities"""
from flask import request

from config.database import get_supabase
from utils.logger import log_warning


def get_bearer_token():
    """Return the bearer token from the Authorization header, if any"""
    header = request.headers.get('Authorization', '')
    if header.lower().startswith('bearer '):
        return header[7:].strip() or None
    return None


def get_user_id():
    """Resolve the Supabase auth user ID for the current request.

    The frontend sends the user ID in X-User-Id. Clients that only carry a
    Supabase session token are resolved through the auth API instead.
    """
    user_id = request.headers.get('X-User-Id') or request.headers.get('x-user-id')
    if user_id:
        return user_id

    token = get_bearer_token()
    if not token:
        return None

    try:
        response = get_supabase().auth.get_user(token)
    except Exception as e:
        log_warning(f"Could not resolve user from bearer token: {e}")
        return None

    user = getattr(response, 'user', None)
    return getattr(user, 'id', None)
