"""Business context questionnaire storage"""
from datetime import datetime, timezone

from config.database import get_supabase
from utils.logger import log_info
from utils.validation import sanitize_json_input

# column -> (request key, type, max length)
CONTEXT_FIELDS = {
    'business_name': ('businessName', 'string', 200),
    'business_model': ('businessModel', 'string', 500),
    'revenue_model': ('revenueModel', 'string', 500),
    'current_revenue': ('currentRevenue', 'string', 100),
    'team_size': ('teamSize', 'string', 100),
    'growth_stage': ('growthStage', 'string', 100),
    'target_market': ('targetMarket', 'string', 1000),
    'ideal_client_profile': ('idealClientProfile', 'string', 2000),
    'unique_value_proposition': ('uniqueValueProposition', 'string', 2000),
    'main_competitors': ('mainCompetitors', 'string', 1000),
    'competitive_advantage': ('competitiveAdvantage', 'string', 2000),
    'top_bottlenecks': ('topBottlenecks', 'list', 500),
    'biggest_challenge': ('biggestChallenge', 'string', 2000),
    'previous_frameworks': ('previousFrameworks', 'string', 1000),
    'primary_goal': ('primaryGoal', 'string', 1000),
    'success_metrics': ('successMetrics', 'string', 1000),
    'timeframe': ('timeframe', 'string', 100),
    'industry': ('industry', 'string', 200),
    'business_age': ('businessAge', 'string', 100),
    'website_url': ('websiteUrl', 'url', None),
    'additional_context': ('additionalContext', 'string', 5000),
}

CONTEXT_SCHEMA = {
    column: {'source': source, 'type': field_type, 'max_length': max_length, 'max_items': 20}
    for column, (source, field_type, max_length) in CONTEXT_FIELDS.items()
}


def save_business_context(user_id, context_data):
    """Create or replace the user's business context"""
    if not user_id:
        raise ValueError("user_id is required")
    if not context_data or not isinstance(context_data, dict):
        raise ValueError("Context data is required")

    record = sanitize_json_input(context_data, CONTEXT_SCHEMA)
    now = datetime.now(timezone.utc).isoformat()
    record.update({'user_id': user_id, 'updated_at': now})

    supabase = get_supabase()
    result = supabase.table('business_context').upsert(record, on_conflict='user_id').execute()

    if not result.data:
        raise Exception("Failed to save business context")

    log_info(f"[BUSINESS-CONTEXT] Saved context for user {user_id}")
    return result.data[0]


def get_business_context(user_id):
    """The user's business context row, or None"""
    supabase = get_supabase()
    result = supabase.table('business_context').select('*').eq('user_id', user_id).limit(1).execute()
    return result.data[0] if result.data else None
