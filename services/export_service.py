"""
Export workflow steps to connected project-management platforms.

Each exporter creates one task-like item per workflow step, sequentially.
A failure creating the container (Asana project) aborts the export; a failed
step is logged and skipped.
"""
import time
import requests
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from config.database import get_supabase
from services.oauth_service import CLIENT_CREDENTIALS
from services.platform_connection_service import (
    SUPPORTED_PLATFORMS, PLATFORM_NAMES, get_active_connection, touch_connection
)
from utils.logger import log_info, log_warning

REQUEST_TIMEOUT = 30
NOTION_VERSION = '2022-06-28'
EXPORT_FORMATS = ['native', 'json', 'csv']

MONDAY_CREATE_ITEM = """
mutation ($boardId: ID!, $itemName: String!) {
  create_item (board_id: $boardId, item_name: $itemName) {
    id
    name
    url
  }
}
"""


def _export_id(platform: str) -> str:
    return f"{platform}_{int(time.time() * 1000)}"


def _require(settings: Dict[str, Any], key: str, platform: str) -> str:
    value = settings.get(key)
    if not value:
        raise ValueError(f"{PLATFORM_NAMES[platform]} export requires platform_settings.{key}")
    return str(value)


def _post_step(platform: str, step: Dict[str, Any], url: str, **kwargs) -> Optional[Dict[str, Any]]:
    """POST one step; None when the platform rejects it"""
    tag = f"[EXPORT-{platform.upper()}]"
    try:
        response = requests.post(url, timeout=REQUEST_TIMEOUT, **kwargs)
    except requests.RequestException as e:
        log_warning(f"{tag} Failed to create item for step {step.get('step_name')}: {e}")
        return None
    if not response.ok:
        log_warning(f"{tag} Failed to create item for step {step.get('step_name')}: {response.status_code}")
        return None
    return response.json()


def export_to_asana(workflow, steps, settings):
    access_token = settings['access_token']
    headers = {'Authorization': f'Bearer {access_token}', 'Content-Type': 'application/json'}

    project_data = {
        'name': settings.get('project_name') or workflow.get('name'),
        'notes': workflow.get('description') or '',
        'public': False,
    }
    if settings.get('workspace_id'):
        project_data['workspace'] = settings['workspace_id']

    try:
        response = requests.post(
            'https://app.asana.com/api/1.0/projects',
            json={'data': project_data},
            headers=headers,
            timeout=REQUEST_TIMEOUT
        )
    except requests.RequestException as e:
        raise ValueError(f"Asana export failed: {e}")
    if not response.ok:
        raise ValueError(f"Asana export failed: Asana API error: {response.status_code} {response.text}")

    project = response.json().get('data', {})
    project_id = project.get('gid')

    tasks = []
    for step in steps:
        task = _post_step('asana', step, 'https://app.asana.com/api/1.0/tasks', headers=headers, json={
            'data': {
                'name': step.get('step_name'),
                'notes': step.get('description') or '',
                'projects': [project_id],
                'completed': False,
            }
        })
        if task:
            tasks.append(task)

    return {
        'export_id': _export_id('asana'),
        'platform_response': {'project': project, 'tasks': tasks, 'total_tasks': len(tasks)},
        'external_url': f"https://app.asana.com/0/{project_id}",
    }


def export_to_clickup(workflow, steps, settings):
    list_id = _require(settings, 'list_id', 'clickup')
    headers = {'Authorization': settings['access_token'], 'Content-Type': 'application/json'}

    tasks = []
    for step in steps:
        task = _post_step('clickup', step, f"https://api.clickup.com/api/v2/list/{list_id}/task",
                          headers=headers, json={
                              'name': step.get('step_name'),
                              'description': step.get('description') or '',
                              'status': 'to do',
                              'priority': step.get('priority') or 3,
                              'tags': ['workflow', workflow.get('category') or 'general'],
                          })
        if task:
            tasks.append(task)

    team_id = settings.get('team_id')
    external_url = f"https://app.clickup.com/{team_id}/v/li/{list_id}" if team_id else None
    return {
        'export_id': _export_id('clickup'),
        'platform_response': {'tasks': tasks, 'total_tasks': len(tasks)},
        'external_url': external_url,
    }


def export_to_monday(workflow, steps, settings):
    board_id = _require(settings, 'board_id', 'monday')
    headers = {'Authorization': settings['access_token'], 'Content-Type': 'application/json'}

    items = []
    for step in steps:
        result = _post_step('monday', step, 'https://api.monday.com/v2', headers=headers, json={
            'query': MONDAY_CREATE_ITEM,
            'variables': {'boardId': board_id, 'itemName': step.get('step_name')},
        })
        item = ((result or {}).get('data') or {}).get('create_item')
        if item:
            items.append(item)
        elif result is not None:
            log_warning(f"[EXPORT-MONDAY] No item created for step {step.get('step_name')}: {result.get('errors')}")

    return {
        'export_id': _export_id('monday'),
        'platform_response': {'items': items, 'total_items': len(items)},
        'external_url': f"https://view.monday.com/boards/{board_id}",
    }


def export_to_trello(workflow, steps, settings):
    list_id = _require(settings, 'list_id', 'trello')
    api_key = CLIENT_CREDENTIALS['trello'][0]
    if not api_key:
        raise ValueError("trello OAuth is not configured")
    params = {'key': api_key, 'token': settings['access_token']}

    cards = []
    for step in steps:
        card = _post_step('trello', step, 'https://api.trello.com/1/cards', params=params, json={
            'name': step.get('step_name'),
            'desc': step.get('description') or '',
            'idList': list_id,
            'pos': 'bottom',
        })
        if card:
            cards.append(card)

    board_id = settings.get('board_id')
    return {
        'export_id': _export_id('trello'),
        'platform_response': {'cards': cards, 'total_cards': len(cards)},
        'external_url': f"https://trello.com/b/{board_id}" if board_id else None,
    }


def export_to_notion(workflow, steps, settings):
    database_id = _require(settings, 'database_id', 'notion')
    headers = {
        'Authorization': f"Bearer {settings['access_token']}",
        'Content-Type': 'application/json',
        'Notion-Version': NOTION_VERSION,
    }

    pages = []
    for step in steps:
        page = _post_step('notion', step, 'https://api.notion.com/v1/pages', headers=headers, json={
            'parent': {'database_id': database_id},
            'properties': {
                'Name': {'title': [{'text': {'content': step.get('step_name') or ''}}]},
                'Status': {'select': {'name': 'Not started'}},
                'Description': {'rich_text': [{'text': {'content': step.get('description') or ''}}]},
            },
        })
        if page:
            pages.append(page)

    return {
        'export_id': _export_id('notion'),
        'platform_response': {'pages': pages, 'total_pages': len(pages)},
        'external_url': f"https://notion.so/{database_id.replace('-', '')}",
    }


EXPORTERS = {
    'asana': export_to_asana,
    'clickup': export_to_clickup,
    'monday': export_to_monday,
    'trello': export_to_trello,
    'notion': export_to_notion,
}


def export_to_platform(platform: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    exporter = EXPORTERS.get(platform)
    if not exporter:
        raise ValueError(f"Platform {platform} not implemented")
    return exporter(payload['workflow'], payload['steps'], payload['platform_settings'])


def _load_workflow(workflow_id: str, include_templates: bool):
    supabase = get_supabase()

    workflow = supabase.table('service_workflow_templates').select('*').eq('id', workflow_id).execute().data
    if not workflow:
        raise ValueError("Workflow not found")

    steps = supabase.table('service_workflow_steps').select('*').eq(
        'workflow_template_id', workflow_id).order('step_order').execute().data or []

    templates = []
    if include_templates:
        templates = supabase.table('service_template_assets').select('*').eq(
            'workflow_template_id', workflow_id).execute().data or []

    return workflow[0], steps, templates


def export_workflow(user_id: str, platform: str, workflow_id: str,
                    export_config: Optional[Dict[str, Any]] = None,
                    platform_settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Export a workflow's steps to one of the user's connected platforms.

    Raises:
        ValueError: unsupported platform, missing workflow or settings,
            or the platform rejected the export
        ConnectionRequired: the user has no active connection to the platform
    """
    platform = (platform or '').lower()
    if platform not in SUPPORTED_PLATFORMS:
        raise ValueError(f"Unsupported platform: {platform}. Supported platforms: {', '.join(SUPPORTED_PLATFORMS)}")
    if not workflow_id:
        raise ValueError("workflow_id is required")

    export_config = export_config or {}
    export_format = export_config.get('export_format') or 'native'
    if export_format not in EXPORT_FORMATS:
        raise ValueError(f"export_format must be one of: {', '.join(EXPORT_FORMATS)}")
    include_templates = bool(export_config.get('include_templates'))

    tag = f"[EXPORT-{platform.upper()}]"
    log_info(f"{tag} Starting export for workflow {workflow_id}")

    connection = get_active_connection(user_id, platform)
    workflow, steps, templates = _load_workflow(workflow_id, include_templates)

    settings = dict(platform_settings or {})
    settings['access_token'] = connection['access_token']
    if not settings.get('workspace_id'):
        settings['workspace_id'] = connection.get('platform_workspace_id')

    result = export_to_platform(platform, {
        'workflow': workflow,
        'steps': steps,
        'templates': templates,
        'export_config': export_config,
        'platform_settings': settings,
    })

    touch_connection(connection['id'])

    exported_at = datetime.now(timezone.utc).isoformat()
    supabase = get_supabase()
    supabase.table('export_history').insert({
        'user_id': user_id,
        'platform': platform,
        'workflow_id': workflow_id,
        'export_id': result['export_id'],
        'external_url': result.get('external_url'),
        'steps_exported': _count_exported(result['platform_response']),
        'exported_at': exported_at,
    }).execute()

    log_info(f"{tag} Export completed successfully")

    return {
        'export_id': result['export_id'],
        'platform': platform,
        'exported_at': exported_at,
        'summary': {
            'workflow_name': workflow.get('name'),
            'total_steps': len(steps),
            'templates_included': len(templates) if include_templates else 0,
            'export_format': export_format,
        },
        'platform_response': result['platform_response'],
        'external_url': result.get('external_url'),
    }


def _count_exported(platform_response: Dict[str, Any]) -> int:
    for key, value in platform_response.items():
        if key.startswith('total_'):
            return value
    return 0


def get_export_history(user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
    supabase = get_supabase()
    return supabase.table('export_history').select('*').eq('user_id', user_id).order(
        'exported_at', desc=True).limit(limit).execute().data or []
