"""Template library management"""
from datetime import datetime, timezone

from config.database import get_supabase
from utils.logger import log_info
from utils.validation import sanitize_string, validate_url

MAX_NAME_LENGTH = 200
MAX_CATEGORY_LENGTH = 100
MAX_CONTENT_LENGTH = 20000


def _clean_resource_url(resource_url):
    resource_url = sanitize_string(resource_url, max_length=2000)
    if not resource_url:
        return None
    if not validate_url(resource_url):
        raise ValueError("resource_url must be a valid http(s) URL")
    return resource_url


def add_template(template_name, category=None, content=None, resource_url=None):
    """Add a template to the library"""
    template_name = sanitize_string(template_name, max_length=MAX_NAME_LENGTH)
    if not template_name:
        raise ValueError("Template name is required")

    record = {
        'template_name': template_name,
        'category': sanitize_string(category, max_length=MAX_CATEGORY_LENGTH) or None,
        'content': sanitize_string(content, max_length=MAX_CONTENT_LENGTH) or None,
        'resource_link': _clean_resource_url(resource_url),
    }

    supabase = get_supabase()
    result = supabase.table('template_library').insert(record).execute()
    if not result.data:
        raise Exception("Failed to add template")

    log_info(f"[TEMPLATES] Added template '{template_name}'")
    return result.data[0]


def list_templates(category=None, search=None):
    supabase = get_supabase()
    query = supabase.table('template_library').select('*')
    if category:
        query = query.eq('category', category)
    if search:
        query = query.ilike('template_name', f"%{search}%")
    return query.order('template_name').execute().data or []


def get_template(template_id):
    supabase = get_supabase()
    result = supabase.table('template_library').select('*').eq('id', template_id).execute()
    if not result.data:
        raise ValueError("Template not found")
    return result.data[0]


def update_template(template_id, data):
    """Update name, category, content or resource_url"""
    get_template(template_id)
    data = data or {}

    update_data = {}
    if 'template_name' in data:
        name = sanitize_string(data['template_name'], max_length=MAX_NAME_LENGTH)
        if not name:
            raise ValueError("Template name cannot be empty")
        update_data['template_name'] = name
    if 'category' in data:
        update_data['category'] = sanitize_string(data['category'], max_length=MAX_CATEGORY_LENGTH) or None
    if 'content' in data:
        update_data['content'] = sanitize_string(data['content'], max_length=MAX_CONTENT_LENGTH) or None
    if 'resource_url' in data:
        update_data['resource_link'] = _clean_resource_url(data['resource_url'])

    if not update_data:
        raise ValueError("No fields to update")

    update_data['updated_at'] = datetime.now(timezone.utc).isoformat()

    supabase = get_supabase()
    result = supabase.table('template_library').update(update_data).eq('id', template_id).execute()
    return result.data[0]


def delete_template(template_id):
    get_template(template_id)
    supabase = get_supabase()
    supabase.table('template_library').delete().eq('id', template_id).execute()
    log_info(f"[TEMPLATES] Deleted template {template_id}")
    return True
