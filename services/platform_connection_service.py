"""Stored OAuth connections to project-management platforms"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from config.database import get_supabase
from utils.logger import log_info

SUPPORTED_PLATFORMS = ['asana', 'clickup', 'monday', 'notion', 'trello']

PLATFORM_NAMES = {
    'asana': 'Asana',
    'clickup': 'ClickUp',
    'monday': 'Monday.com',
    'notion': 'Notion',
    'trello': 'Trello',
}


class ConnectionRequired(Exception):
    """No active connection exists for the requested platform"""

    def __init__(self, platform: str):
        self.platform = platform
        super().__init__(f"{PLATFORM_NAMES.get(platform, platform)} is not connected")


def validate_platform(platform: str) -> str:
    platform = (platform or '').strip().lower()
    if platform not in SUPPORTED_PLATFORMS:
        raise ValueError(f"Unsupported platform: {platform or 'none'}")
    return platform


def _token_is_valid(connection: Dict[str, Any]) -> bool:
    if not connection.get('access_token'):
        return False
    expires_at = connection.get('expires_at')
    if not expires_at:
        return True
    try:
        expiry = datetime.fromisoformat(str(expires_at).replace('Z', '+00:00'))
    except ValueError:
        return False
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return expiry > datetime.now(timezone.utc)


def sanitize_connection(connection: Dict[str, Any]) -> Dict[str, Any]:
    """Connection fields safe to return to the client (no tokens)"""
    return {
        'id': connection.get('id'),
        'platform': connection.get('platform'),
        'platform_username': connection.get('platform_username'),
        'platform_workspace_id': connection.get('platform_workspace_id'),
        'platform_workspace_name': connection.get('platform_workspace_name'),
        'connected_at': connection.get('connected_at'),
        'last_used_at': connection.get('last_used_at'),
        'is_active': connection.get('is_active', True),
        'has_valid_token': _token_is_valid(connection),
        'token_expires': connection.get('expires_at'),
        'scope': connection.get('scope'),
    }


def list_connections(user_id: str, platform: Optional[str] = None) -> List[Dict[str, Any]]:
    supabase = get_supabase()
    query = supabase.table('platform_connections').select('*').eq('user_id', user_id).eq('is_active', True)
    if platform:
        query = query.eq('platform', validate_platform(platform))
    rows = query.order('connected_at', desc=True).execute().data or []
    return [sanitize_connection(row) for row in rows]


def save_connection(user_id: str, platform: str, token_data: Dict[str, Any],
                    profile: Dict[str, Any]) -> Dict[str, Any]:
    """Create or refresh the connection for this user and platform account"""
    now = datetime.now(timezone.utc)
    expires_at = None
    if token_data.get('expires_in'):
        expires_at = datetime.fromtimestamp(now.timestamp() + int(token_data['expires_in']), timezone.utc).isoformat()

    record = {
        'user_id': user_id,
        'platform': platform,
        'access_token': token_data['access_token'],
        'refresh_token': token_data.get('refresh_token'),
        'token_type': token_data.get('token_type') or 'Bearer',
        'expires_at': expires_at,
        'scope': token_data.get('scope'),
        'platform_user_id': str(profile.get('platform_user_id') or 'unknown'),
        'platform_username': profile.get('platform_username'),
        'platform_workspace_id': str(profile['platform_workspace_id']) if profile.get('platform_workspace_id') else None,
        'platform_workspace_name': profile.get('platform_workspace_name'),
        'is_active': True,
        'connected_at': now.isoformat(),
        'last_used_at': now.isoformat(),
        'updated_at': now.isoformat(),
    }

    supabase = get_supabase()
    result = supabase.table('platform_connections').upsert(
        record, on_conflict='user_id,platform,platform_user_id'
    ).execute()
    if not result.data:
        raise Exception(f"Failed to save {platform} connection")

    log_info(f"[CONNECTIONS] Saved {platform} connection for user {user_id}")
    return result.data[0]


def delete_connection(user_id: str, connection_id: Optional[str] = None,
                      platform: Optional[str] = None) -> int:
    """Remove one connection by id, or every connection to a platform"""
    if not connection_id and not platform:
        raise ValueError("Either connection id or platform is required")

    supabase = get_supabase()
    query = supabase.table('platform_connections').delete().eq('user_id', user_id)
    if connection_id:
        query = query.eq('id', connection_id)
    else:
        query = query.eq('platform', validate_platform(platform))
    deleted = query.execute().data or []

    if connection_id and not deleted:
        raise ValueError("Connection not found")

    log_info(f"[CONNECTIONS] Removed {len(deleted)} connection(s) for user {user_id}")
    return len(deleted)


def set_connection_active(user_id: str, connection_id: str, is_active: bool) -> Dict[str, Any]:
    if not connection_id:
        raise ValueError("Connection id is required")
    if not isinstance(is_active, bool):
        raise ValueError("is_active must be true or false")

    supabase = get_supabase()
    result = supabase.table('platform_connections').update({
        'is_active': is_active,
        'updated_at': datetime.now(timezone.utc).isoformat(),
    }).eq('id', connection_id).eq('user_id', user_id).execute()

    if not result.data:
        raise ValueError("Connection not found")
    return sanitize_connection(result.data[0])


def get_active_connection(user_id: str, platform: str) -> Dict[str, Any]:
    """Most recently used active connection, including its access token"""
    platform = validate_platform(platform)
    supabase = get_supabase()
    rows = supabase.table('platform_connections').select('*').eq('user_id', user_id).eq(
        'platform', platform).eq('is_active', True).order('last_used_at', desc=True).limit(1).execute().data
    if not rows or not rows[0].get('access_token'):
        raise ConnectionRequired(platform)
    return rows[0]


def touch_connection(connection_id: str) -> None:
    supabase = get_supabase()
    supabase.table('platform_connections').update({
        'last_used_at': datetime.now(timezone.utc).isoformat(),
    }).eq('id', connection_id).execute()
