"""Rate limiting configuration for API endpoints"""
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import os

def get_rate_limit_key():
    """Rate limit per user when the request is authenticated, otherwise per IP"""
    from flask import request
    user_id = request.headers.get('X-User-Id')
    if user_id:
        return f"user:{user_id}"
    return get_remote_address()

def init_rate_limiter(app):
    """Initialize rate limiter with Flask app"""
    default_limit = os.environ.get('RATE_LIMIT_DEFAULT', '100 per minute')

    limiter = Limiter(
        app=app,
        key_func=get_rate_limit_key,
        default_limits=[default_limit],
        storage_uri=os.environ.get('RATE_LIMIT_STORAGE_URI', 'memory://'),
        headers_enabled=True,
        enabled=os.environ.get('RATE_LIMIT_ENABLED', 'true').lower() == 'true'
    )

    return limiter

# Rate limit presets for different endpoint types
RATE_LIMITS = {
    'strict': '10 per minute',      # OAuth exchanges, exports
    'moderate': '30 per minute',    # Writes
    'standard': '60 per minute',    # Reads
    'ai': '20 per minute',          # OpenAI-backed endpoints
    'generous': '120 per minute',   # Public question and sprint catalogs
}
