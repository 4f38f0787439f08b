"""Sprint recommendation tracking for completed assessments"""
from datetime import datetime, timezone

from config.database import get_supabase
from services.assessment_service import COMPONENTS
from utils.logger import log_info

VALID_STATUSES = ['recommended', 'accepted', 'in_progress', 'completed', 'skipped', 'deferred']
VALID_ACTIONS = ['start', 'complete', 'skip', 'defer']
DIFFICULTY_LEVELS = ['beginner', 'intermediate', 'advanced']


def _get_owned_assessment(supabase, user_id, assessment_id):
    result = supabase.table('assessments').select('*').eq('assessment_id', assessment_id).execute()
    if not result.data:
        raise ValueError("Assessment not found")

    assessment = result.data[0]
    if user_id and assessment.get('user_id') != user_id:
        raise ValueError("Assessment not found")
    return assessment


def _attach_sprints(supabase, recommendations):
    sprint_ids = list({r['sprint_id'] for r in recommendations if r.get('sprint_id')})
    sprints = {}
    if sprint_ids:
        rows = supabase.table('sprints').select('*').in_('sprint_id', sprint_ids).execute().data or []
        sprints = {row['sprint_id']: row for row in rows}

    for recommendation in recommendations:
        recommendation['sprints'] = sprints.get(recommendation.get('sprint_id'))
    return recommendations


def get_recommendations(user_id, assessment_id):
    """Recommendations for an assessment, grouped by priority and progress"""
    if not assessment_id:
        raise ValueError("assessment_id is required")

    supabase = get_supabase()
    assessment = _get_owned_assessment(supabase, user_id, assessment_id)

    recommendations = supabase.table('recommendations').select('*').eq(
        'assessment_id', assessment_id).order('priority_rank').execute().data or []
    _attach_sprints(supabase, recommendations)

    grouped = {
        'high_priority': [r for r in recommendations if r['priority_rank'] <= 2],
        'medium_priority': [r for r in recommendations if 2 < r['priority_rank'] <= 4],
        'low_priority': [r for r in recommendations if r['priority_rank'] > 4],
        'in_progress': [r for r in recommendations if r.get('status') == 'in_progress'],
        'completed': [r for r in recommendations if r.get('status') == 'completed'],
    }

    return {
        'assessment': {
            'assessment_id': assessment['assessment_id'],
            'overall_score': assessment.get('overall_score'),
            'archetype': assessment.get('archetype'),
            'date_taken': assessment.get('completed_at') or assessment.get('created_at'),
            'component_scores': {c: assessment.get(f"{c}_score") for c in COMPONENTS},
        },
        'recommendations': recommendations,
        'grouped': grouped,
        'summary': {
            'total_recommendations': len(recommendations),
            'high_priority_count': len(grouped['high_priority']),
            'in_progress_count': len(grouped['in_progress']),
            'completed_count': len(grouped['completed']),
            'total_potential_impact': sum(r.get('estimated_impact_points') or 0 for r in recommendations),
            'estimated_total_time_hours': sum(
                (r['sprints'] or {}).get('estimated_time_hours') or 0 for r in recommendations
            ),
        },
    }


def update_recommendation(user_id, recommendation_id, status=None, user_notes=None, action=None):
    """Apply an action (start/complete/skip/defer) or a manual status/notes update"""
    if not recommendation_id:
        raise ValueError("recommendation_id is required")
    if status and status not in VALID_STATUSES:
        raise ValueError(f"Status must be one of: {', '.join(VALID_STATUSES)}")
    if action and action not in VALID_ACTIONS:
        raise ValueError(f"Action must be one of: {', '.join(VALID_ACTIONS)}")

    now = datetime.now(timezone.utc).isoformat()
    if action == 'start':
        update_data = {'status': 'in_progress', 'started_at': now}
    elif action == 'complete':
        update_data = {'status': 'completed', 'completed_at': now}
    elif action == 'skip':
        update_data = {'status': 'skipped'}
    elif action == 'defer':
        update_data = {'status': 'deferred'}
    else:
        update_data = {}
        if status:
            update_data['status'] = status
        if user_notes:
            update_data['user_notes'] = user_notes

    if not update_data:
        raise ValueError("No updates provided")

    supabase = get_supabase()
    existing = supabase.table('recommendations').select('*').eq('recommendation_id', recommendation_id).execute()
    if not existing.data:
        raise ValueError("Recommendation not found")
    _get_owned_assessment(supabase, user_id, existing.data[0]['assessment_id'])

    update_data['updated_at'] = now
    result = supabase.table('recommendations').update(update_data).eq(
        'recommendation_id', recommendation_id).execute()

    updated = _attach_sprints(supabase, result.data)[0]
    log_info(f"Recommendation {recommendation_id} updated to {update_data['status'] if 'status' in update_data else 'notes'}")
    return updated


def list_sprints():
    """Active sprints grouped by category"""
    supabase = get_supabase()
    sprints = supabase.table('sprints').select('*').eq('is_active', True).order('recommended_order').execute().data or []

    by_category = {}
    for sprint in sprints:
        by_category.setdefault(sprint.get('category'), []).append(sprint)

    return {
        'sprints': sprints,
        'sprints_by_category': by_category,
        'categories': list(by_category.keys()),
        'summary': {
            'total_sprints': len(sprints),
            'categories_count': len(by_category),
            'difficulty_breakdown': {
                level: len([s for s in sprints if s.get('difficulty_level') == level])
                for level in DIFFICULTY_LEVELS
            },
        },
    }
