"""
OAuth flows for connecting project-management platforms.

Asana, ClickUp, Monday.com and Notion use the authorization-code grant.
Trello uses its token authorize flow: the frontend reads the token from the
redirect fragment and posts it back to the callback with the state.
"""
import os
import secrets
import requests
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional, Tuple
from urllib.parse import urlencode

from config.database import get_supabase
from services.platform_connection_service import save_connection, sanitize_connection, validate_platform
from utils.logger import log_info, log_error, log_warning


OAUTH_REDIRECT_BASE_URL = os.getenv('OAUTH_REDIRECT_BASE_URL', 'http://localhost:5000').rstrip('/')
FRONTEND_URL = os.getenv('FRONTEND_URL', 'http://localhost:3000').rstrip('/')
STATE_TTL_MINUTES = 15
REQUEST_TIMEOUT = 30

CLIENT_CREDENTIALS = {
    'asana': (os.getenv('ASANA_CLIENT_ID', ''), os.getenv('ASANA_CLIENT_SECRET', '')),
    'clickup': (os.getenv('CLICKUP_CLIENT_ID', ''), os.getenv('CLICKUP_CLIENT_SECRET', '')),
    'monday': (os.getenv('MONDAY_CLIENT_ID', ''), os.getenv('MONDAY_CLIENT_SECRET', '')),
    'notion': (os.getenv('NOTION_CLIENT_ID', ''), os.getenv('NOTION_CLIENT_SECRET', '')),
    'trello': (os.getenv('TRELLO_API_KEY', ''), ''),
}

AUTH_URLS = {
    'asana': 'https://app.asana.com/-/oauth_authorize',
    'clickup': 'https://app.clickup.com/api',
    'monday': 'https://auth.monday.com/oauth2/authorize',
    'notion': 'https://api.notion.com/v1/oauth/authorize',
    'trello': 'https://trello.com/1/authorize',
}

TOKEN_URLS = {
    'asana': 'https://app.asana.com/-/oauth_token',
    'clickup': 'https://api.clickup.com/api/v2/oauth/token',
    'monday': 'https://auth.monday.com/oauth2/token',
    'notion': 'https://api.notion.com/v1/oauth/token',
}

SCOPES = {
    'asana': 'default',
    'monday': 'me:read boards:read boards:write',
    'trello': 'read,write',
}


def is_platform_configured(platform: str) -> bool:
    client_id, client_secret = CLIENT_CREDENTIALS.get(platform, ('', ''))
    if platform == 'trello':
        return bool(client_id)
    return bool(client_id and client_secret)


def get_redirect_uri(platform: str) -> str:
    return f"{OAUTH_REDIRECT_BASE_URL}/api/oauth/{platform}/callback"


def generate_oauth_state(user_id: str, platform: str) -> str:
    """
    Generate a state token for the OAuth flow and store it for the callback.

    Any earlier pending state for the same user and platform is discarded.
    """
    state = secrets.token_urlsafe(32)
    now = datetime.now(timezone.utc)

    supabase = get_supabase()
    supabase.table('oauth_states').delete().eq('user_id', user_id).eq('provider', platform).execute()
    supabase.table('oauth_states').insert({
        'state': state,
        'user_id': user_id,
        'provider': platform,
        'created_at': now.isoformat(),
        'expires_at': (now + timedelta(minutes=STATE_TTL_MINUTES)).isoformat(),
    }).execute()

    return state


def verify_oauth_state(state: str, platform: str) -> Optional[str]:
    """
    Verify a state token and return the user_id that started the flow.

    The state is single use; it is deleted whether or not it has expired.
    """
    if not state:
        return None

    supabase = get_supabase()
    result = supabase.table('oauth_states').select('*').eq('state', state).execute()
    if not result.data:
        return None

    record = result.data[0]
    supabase.table('oauth_states').delete().eq('state', state).execute()

    if record.get('provider') != platform:
        log_warning(f"OAuth state issued for {record.get('provider')} used on {platform} callback")
        return None

    expires_at = record.get('expires_at')
    if expires_at:
        expiry = datetime.fromisoformat(str(expires_at).replace('Z', '+00:00'))
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        if expiry < datetime.now(timezone.utc):
            log_warning(f"Expired OAuth state for user {record.get('user_id')}")
            return None

    return record.get('user_id')


def get_authorization_url(user_id: str, platform: str) -> Tuple[str, str]:
    """
    Build the platform's authorization URL.

    Returns:
        Tuple of (auth_url, state)
    """
    platform = validate_platform(platform)
    if not is_platform_configured(platform):
        raise ValueError(f"{platform} OAuth is not configured")

    state = generate_oauth_state(user_id, platform)
    client_id = CLIENT_CREDENTIALS[platform][0]

    if platform == 'trello':
        params = {
            'expiration': 'never',
            'name': 'Freedom Suite',
            'scope': SCOPES['trello'],
            'response_type': 'token',
            'key': client_id,
            'return_url': f"{FRONTEND_URL}/connections/trello?{urlencode({'state': state})}",
        }
    else:
        params = {
            'client_id': client_id,
            'redirect_uri': get_redirect_uri(platform),
            'response_type': 'code',
            'state': state,
        }
        if platform == 'notion':
            params['owner'] = 'user'
        if platform in SCOPES:
            params['scope'] = SCOPES[platform]

    return f"{AUTH_URLS[platform]}?{urlencode(params)}", state


def exchange_code_for_token(platform: str, code: str) -> Dict[str, Any]:
    """Exchange an authorization code for the platform's token response"""
    client_id, client_secret = CLIENT_CREDENTIALS[platform]

    if platform == 'notion':
        response = requests.post(
            TOKEN_URLS['notion'],
            json={
                'grant_type': 'authorization_code',
                'code': code,
                'redirect_uri': get_redirect_uri(platform),
            },
            auth=(client_id, client_secret),
            timeout=REQUEST_TIMEOUT
        )
    else:
        response = requests.post(
            TOKEN_URLS[platform],
            data={
                'grant_type': 'authorization_code',
                'code': code,
                'redirect_uri': get_redirect_uri(platform),
                'client_id': client_id,
                'client_secret': client_secret,
            },
            headers={
                'Content-Type': 'application/x-www-form-urlencoded',
            },
            timeout=REQUEST_TIMEOUT
        )

    if response.status_code != 200:
        log_error(f"{platform} token exchange failed: {response.text}")
        raise ValueError(f"Failed to exchange code for token: {response.text}")

    token_data = response.json()
    if not token_data.get('access_token'):
        raise ValueError(f"No access token received from {platform}")
    return token_data


def _get_json(url: str, platform: str, **kwargs) -> Dict[str, Any]:
    response = requests.get(url, timeout=REQUEST_TIMEOUT, **kwargs)
    if response.status_code != 200:
        log_error(f"{platform} profile fetch failed: {response.text}")
        raise ValueError(f"Failed to fetch {platform} profile: {response.text}")
    return response.json()


def get_platform_profile(platform: str, access_token: str,
                         token_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Platform account id, display name and workspace for a new connection"""
    token_data = token_data or {}

    if platform == 'asana':
        data = _get_json(
            'https://app.asana.com/api/1.0/users/me', platform,
            headers={'Authorization': f'Bearer {access_token}'},
        ).get('data', {})
        workspaces = data.get('workspaces') or [{}]
        return {
            'platform_user_id': data.get('gid'),
            'platform_username': data.get('name'),
            'platform_workspace_id': workspaces[0].get('gid'),
            'platform_workspace_name': workspaces[0].get('name'),
        }

    if platform == 'clickup':
        user = _get_json(
            'https://api.clickup.com/api/v2/user', platform,
            headers={'Authorization': access_token},
        ).get('user', {})
        return {
            'platform_user_id': user.get('id'),
            'platform_username': user.get('username') or user.get('email'),
            'platform_workspace_name': None,
        }

    if platform == 'monday':
        response = requests.post(
            'https://api.monday.com/v2',
            json={'query': 'query { me { id name email account { id name } } }'},
            headers={'Authorization': access_token, 'Content-Type': 'application/json'},
            timeout=REQUEST_TIMEOUT
        )
        if response.status_code != 200:
            log_error(f"monday profile fetch failed: {response.text}")
            raise ValueError(f"Failed to fetch monday profile: {response.text}")
        me = (response.json().get('data') or {}).get('me') or {}
        account = me.get('account') or {}
        return {
            'platform_user_id': me.get('id'),
            'platform_username': me.get('name') or me.get('email'),
            'platform_workspace_id': account.get('id'),
            'platform_workspace_name': account.get('name'),
        }

    if platform == 'notion':
        owner_user = (token_data.get('owner') or {}).get('user') or {}
        return {
            'platform_user_id': owner_user.get('id') or token_data.get('bot_id') or 'unknown',
            'platform_username': owner_user.get('name') or token_data.get('workspace_name') or 'Notion User',
            'platform_workspace_id': token_data.get('workspace_id'),
            'platform_workspace_name': token_data.get('workspace_name'),
        }

    if platform == 'trello':
        member = _get_json(
            'https://api.trello.com/1/members/me', platform,
            params={'key': CLIENT_CREDENTIALS['trello'][0], 'token': access_token},
        )
        return {
            'platform_user_id': member.get('id'),
            'platform_username': member.get('fullName') or member.get('username'),
            'platform_workspace_name': None,
        }

    raise ValueError(f"Unsupported platform: {platform}")


def handle_callback(platform: str, state: str, code: Optional[str] = None,
                    token: Optional[str] = None) -> Dict[str, Any]:
    """
    Complete the OAuth flow and store the connection.

    Args:
        platform: Platform the callback belongs to
        state: State token issued by get_authorization_url
        code: Authorization code (code-grant platforms)
        token: Access token (Trello)

    Returns:
        The stored connection without its tokens
    """
    platform = validate_platform(platform)

    user_id = verify_oauth_state(state, platform)
    if not user_id:
        raise ValueError("Invalid or expired OAuth state")

    if platform == 'trello':
        if not token:
            raise ValueError("Missing Trello token")
        token_data = {'access_token': token, 'token_type': 'Bearer', 'scope': SCOPES['trello']}
    else:
        if not code:
            raise ValueError("Missing authorization code")
        token_data = exchange_code_for_token(platform, code)

    profile = get_platform_profile(platform, token_data['access_token'], token_data)
    connection = save_connection(user_id, platform, token_data, profile)

    log_info(f"User {user_id} connected {platform} as {profile.get('platform_username')}")
    return sanitize_connection(connection)


def purge_expired_states() -> int:
    """Delete OAuth states whose callback never arrived"""
    supabase = get_supabase()
    deleted = supabase.table('oauth_states').delete().lt(
        'expires_at', datetime.now(timezone.utc).isoformat()).execute().data or []
    if deleted:
        log_info(f"Purged {len(deleted)} expired OAuth states")
    return len(deleted)
