"""Diagnostic questions, Freedom Diagnostic persistence and sprint lookup"""
import time
from datetime import datetime, timezone

from config.database import get_supabase
from services.assessment_service import COMPONENTS
from services.email_service import EmailService
from services.freedom_scoring import score_and_recommend, ANSWER_KEYS
from utils.logger import log_info, log_error, log_warning

MINUTES_PER_QUESTION = 2

SPRINT_KEY_NAMES = {
    'S1': 'profitable_service',
    'S2': 'smooth_path',
    'S3': 'sell_bottleneck',
    'S4': 'streamline_delivery',
    'S5': 'continuous_improve',
}

CATEGORY_SPRINT_KEYWORDS = {
    'lead_generation': 'sell',
    'delegation': 'improve',
    'pricing': 'zone',
    'clarity': 'zone',
    'sales_process': 'sell',
    'client_onboarding': 'path',
    'service_delivery': 'delivery',
    'revenue': 'zone',
    'fulfillment': 'zone',
}
DEFAULT_SPRINT_KEYWORD = 'zone'


def get_questions(category=None, component=None):
    """Get active diagnostic questions grouped by category"""
    supabase = get_supabase()

    query = supabase.table('diagnostic_questions').select('*').eq('is_active', True)
    if category:
        query = query.eq('category', category)
    if component:
        query = query.eq('component', component)

    questions = query.order('question_order').execute().data or []
    if not questions:
        raise ValueError("No questions found")

    questions_by_category = {}
    for question in questions:
        questions_by_category.setdefault(question.get('category'), []).append(question)

    return {
        'questions': questions,
        'questions_by_category': questions_by_category,
        'categories': list(questions_by_category.keys()),
        'total_questions': len(questions),
        'metadata': {
            'components': COMPONENTS,
            'scale_range': {'min': 1, 'max': 10},
            'estimated_time_minutes': len(questions) * MINUTES_PER_QUESTION,
        },
    }


def get_question(question_id):
    if not question_id:
        raise ValueError("question_id is required")

    supabase = get_supabase()
    result = supabase.table('diagnostic_questions').select('*').eq(
        'question_id', question_id).eq('is_active', True).execute()

    if not result.data:
        raise ValueError("Question not found")
    return result.data[0]


def get_freedom_questions():
    """The twelve Freedom Diagnostic questions in display order"""
    supabase = get_supabase()
    return supabase.table('freedom_diagnostic_questions').select('*').order('order_index').execute().data or []


def save_responses_and_calculate_score(answers, user_id=None, user_email=None):
    """
    Score a Freedom Diagnostic and save it.

    A failed save does not lose the score: the result is returned with a
    temporary id. The results email is queued only when the save succeeded.
    """
    score_result = score_and_recommend(answers)
    now = datetime.now(timezone.utc).isoformat()

    saved = None
    try:
        supabase = get_supabase()
        result = supabase.table('freedom_diagnostic_results').insert({
            'user_id': user_id,
            'responses': {key: answers[key] for key in ANSWER_KEYS},
            'score_result': score_result,
            'total_score': score_result['total_score'],
            'percent': score_result['percent'],
            'created_at': now,
        }).execute()
        saved = result.data[0] if result.data else None
    except Exception as e:
        log_error("[DIAGNOSTIC] Error saving diagnostic responses", error=e)

    if user_id and saved and user_email:
        try:
            EmailService().queue_diagnostic_results_email(user_email, score_result, user_id=user_id)
        except Exception as e:
            log_error("[DIAGNOSTIC] Error queueing results email", error=e)

    if saved:
        log_info(f"[DIAGNOSTIC] Saved result {saved['id']} ({score_result['percent']}%)")

    return {
        'id': saved['id'] if saved else f"temp-{int(time.time() * 1000)}",
        'user_id': user_id,
        'created_at': saved.get('created_at', now) if saved else now,
        'score_result': score_result,
    }


def get_user_responses(user_id):
    """Diagnostic history for a user, newest first, re-scored from the stored answers"""
    supabase = get_supabase()
    rows = supabase.table('freedom_diagnostic_results').select('*').eq(
        'user_id', user_id).order('created_at', desc=True).execute().data or []

    history = []
    for row in rows:
        responses = row.get('responses') or {key: row.get(key) for key in ANSWER_KEYS}
        try:
            score_result = score_and_recommend(responses)
        except ValueError as e:
            log_warning(f"[DIAGNOSTIC] Skipping unreadable result {row.get('id')}: {e}")
            continue
        history.append({
            'id': row['id'],
            'user_id': row.get('user_id'),
            'created_at': row.get('created_at'),
            'score_result': score_result,
        })
    return history


def get_sprints():
    supabase = get_supabase()
    return supabase.table('sprints').select('*').order('time_saved_hours').execute().data or []


def get_sprint_by_key(sprint_key):
    """Look up a sprint row by its S1..S5 diagnostic key"""
    sprint_name = SPRINT_KEY_NAMES.get(sprint_key)
    if not sprint_name:
        raise ValueError(f"Unknown sprint key: {sprint_key}")

    sprint = next((s for s in get_sprints() if s.get('name') == sprint_name), None)
    if not sprint:
        raise ValueError("Sprint not found")
    return sprint


def get_recommended_sprint(score):
    """Sprint whose min_score..max_score range contains the score, else the first sprint"""
    supabase = get_supabase()
    sprints = supabase.table('sprints').select('*').order('min_score').execute().data or []
    if not sprints:
        return None

    for sprint in sprints:
        low, high = sprint.get('min_score'), sprint.get('max_score')
        if low is not None and high is not None and low <= score <= high:
            return sprint
    return sprints[0]


def find_recommended_sprint(weakest_category):
    """Match a sprint by name, then by category keyword, then fall back to the first week"""
    supabase = get_supabase()

    if weakest_category:
        exact = supabase.table('sprints').select('*').ilike('name', f"%{weakest_category}%").execute().data
        if exact and len(exact) == 1:
            return exact[0]

    keyword = CATEGORY_SPRINT_KEYWORDS.get(weakest_category, DEFAULT_SPRINT_KEYWORD)
    matches = supabase.table('sprints').select('*').ilike('name', f"%{keyword}%").execute().data
    if matches and len(matches) == 1:
        return matches[0]

    fallback = supabase.table('sprints').select('*').order('week_number').limit(1).execute().data
    return fallback[0] if fallback else None
