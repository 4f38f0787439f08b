"""Dashboard freedom score tracking, trends, insights and recommendations"""
import math
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional

from config.database import get_supabase
from utils.logger import log_info
from utils.validation import validate_number

# Dashboard display order; tie-breaks in insights follow it
DASHBOARD_COMPONENTS = [
    'time_freedom',
    'money_freedom',
    'impact_freedom',
    'systems_freedom',
    'team_freedom',
    'stress_freedom',
]

PERIOD_DAYS = {'7d': 7, '30d': 30, '90d': 90, '1y': 365}
DEFAULT_PERIOD_DAYS = 30
NEXT_ASSESSMENT_DAYS = 7
TREND_THRESHOLD = 2

COMPONENT_ACTIONS = {
    'time_freedom': {
        'title': 'Optimize Time Management Systems',
        'description': 'Implement time-blocking, delegation, and automation tools',
        'estimated_impact': '15-25 point increase in time_freedom',
    },
    'money_freedom': {
        'title': 'Improve Revenue Streams',
        'description': 'Diversify income, raise prices, or reduce expenses',
        'estimated_impact': '10-20 point increase in money_freedom',
    },
    'impact_freedom': {
        'title': 'Amplify Your Impact',
        'description': 'Focus on high-leverage activities and meaningful work',
        'estimated_impact': '10-15 point increase in impact_freedom',
    },
    'systems_freedom': {
        'title': 'Build Better Systems',
        'description': 'Document processes, automate workflows, create templates',
        'estimated_impact': '15-25 point increase in systems_freedom',
    },
    'team_freedom': {
        'title': 'Strengthen Team Capabilities',
        'description': 'Hire specialists, improve training, delegate effectively',
        'estimated_impact': '10-20 point increase in team_freedom',
    },
    'stress_freedom': {
        'title': 'Reduce Stress & Burnout',
        'description': 'Implement boundaries, self-care routines, and workload management',
        'estimated_impact': '10-20 point increase in stress_freedom',
    },
}


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _overall(scores: Dict[str, float]) -> int:
    return _round_half_up(sum(scores[c] for c in DASHBOARD_COMPONENTS) / len(DASHBOARD_COMPONENTS))


def _components(record: Dict[str, Any]) -> Dict[str, float]:
    return {c: record.get(c) or 0 for c in DASHBOARD_COMPONENTS}


def _direction(diff: float) -> str:
    if diff > TREND_THRESHOLD:
        return 'improving'
    if diff < -TREND_THRESHOLD:
        return 'declining'
    return 'stable'


def _label(component: str) -> str:
    return component.replace('_', ' ', 1)


def _highest(scores: Dict[str, float]):
    best = None
    for component in DASHBOARD_COMPONENTS:
        if best is None or not best[1] > scores[component]:
            best = (component, scores[component])
    return best


def _lowest(scores: Dict[str, float]):
    worst = None
    for component in DASHBOARD_COMPONENTS:
        if worst is None or not worst[1] < scores[component]:
            worst = (component, scores[component])
    return worst


def generate_insights(scores: Dict[str, float]) -> List[Dict[str, str]]:
    insights = []

    highest = _highest(scores)
    lowest = _lowest(scores)

    if highest[1] >= 80:
        insights.append({
            'type': 'positive',
            'message': f"Your {_label(highest[0])} is excellent at {highest[1]:g}%. This is a major strength.",
            'priority': 'medium',
        })

    if lowest[1] <= 50:
        insights.append({
            'type': 'warning',
            'message': f"Your {_label(lowest[0])} needs attention at {lowest[1]:g}%. Focus here for quick wins.",
            'priority': 'high',
        })

    overall = _overall(scores)
    if overall >= 80:
        insights.append({
            'type': 'positive',
            'message': f"Outstanding overall freedom score of {overall}%! You're operating at a high level.",
            'priority': 'low',
        })
    elif overall <= 60:
        insights.append({
            'type': 'action',
            'message': f"Your freedom score of {overall}% has room for improvement. Focus on your lowest-scoring areas.",
            'priority': 'high',
        })

    if not insights:
        insights.append({
            'type': 'info',
            'message': 'Your freedom assessment is complete. Review recommendations below for improvement opportunities.',
            'priority': 'low',
        })
    return insights


def generate_recommendations(scores: Dict[str, float]) -> List[Dict[str, Any]]:
    recommendations = []

    lowest = _lowest(scores)
    if lowest[1] < 70:
        action = COMPONENT_ACTIONS[lowest[0]]
        recommendations.append({'sprint_key': 'S1', 'priority': 1, **action})

    # primary target excluded even when scores tie
    ranked = [c for c in sorted(DASHBOARD_COMPONENTS, key=lambda c: scores[c]) if c != lowest[0]]
    second_lowest = ranked[0]
    if scores[second_lowest] < 75:
        action = COMPONENT_ACTIONS[second_lowest]
        recommendations.append({'sprint_key': 'S2', 'priority': 2, **action})

    return recommendations


def calculate_trends(history: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Direction and velocity from the first to the last point in the period"""
    if len(history) < 2:
        return {}

    first, last = history[0], history[-1]
    diff = last['score'] - first['score']
    velocity = diff / len(history)

    trends = {
        'overall': {
            'direction': _direction(diff),
            'velocity': round(velocity, 2),
            'consistency': 'stable' if abs(velocity) < 1 else 'variable',
        },
        'components': {},
    }
    for component in DASHBOARD_COMPONENTS:
        component_diff = last['components'][component] - first['components'][component]
        trends['components'][component] = {
            'direction': _direction(component_diff),
            'velocity': round(component_diff / len(history), 2),
        }
    return trends


def _empty_dashboard() -> Dict[str, Any]:
    return {
        'current_score': None,
        'history': [],
        'trends': {},
        'insights': [{
            'type': 'info',
            'message': 'No freedom score assessments recorded yet. Complete your first assessment to see insights.',
            'priority': 'low',
        }],
        'recommendations': [{
            'sprint_key': 'S1',
            'title': 'Complete Your First Freedom Assessment',
            'description': 'Record your current freedom levels across all 6 components',
            'priority': 1,
            'estimated_impact': 'Establish baseline for tracking progress',
        }],
    }


def get_freedom_score(user_id: str, period: str = '30d', include_history: bool = False,
                      include_trends: bool = False) -> Dict[str, Any]:
    supabase = get_supabase()

    latest = supabase.table('freedom_scores').select('*').eq('user_id', user_id).order(
        'assessment_date', desc=True).limit(1).execute().data
    if not latest:
        return _empty_dashboard()

    latest = latest[0]
    scores = _components(latest)
    overall = _overall(scores)

    days = PERIOD_DAYS.get(period, DEFAULT_PERIOD_DAYS)
    from_date = (date.today() - timedelta(days=days)).isoformat()

    history = []
    if include_history or include_trends:
        rows = supabase.table('freedom_scores').select('*').eq('user_id', user_id).gte(
            'assessment_date', from_date).order('assessment_date').execute().data or []
        history = [
            {'date': row['assessment_date'], 'score': _overall(_components(row)), 'components': _components(row)}
            for row in rows
        ]

    trends = calculate_trends(history) if include_trends else {}

    points_changed = 0
    percentage_change = 0
    trend = 'stable'
    if len(history) > 1:
        previous = history[-2]['score']
        points_changed = overall - previous
        percentage_change = round(points_changed / previous * 100, 2) if previous else 0
        trend = _direction(points_changed)

    data = {
        'current_score': {
            'overall': overall,
            'score_date': latest['assessment_date'],
            'components': scores,
            'trend': trend,
            'points_changed': points_changed,
            'percentage_change': percentage_change,
        },
        'insights': generate_insights(scores),
        'recommendations': generate_recommendations(scores),
    }
    if include_history:
        data['history'] = history
    if include_trends:
        data['trends'] = trends
    return data


def record_freedom_score(user_id: str, assessment_date: str, scores: Dict[str, Any],
                         method: str = 'dashboard_update', notes: Optional[str] = None) -> Dict[str, Any]:
    """Save a dashboard self-assessment and compare it with the previous one"""
    if not assessment_date or not scores:
        raise ValueError("assessment_date and scores are required")

    try:
        parsed_date = datetime.strptime(assessment_date, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValueError("assessment_date must be in YYYY-MM-DD format")

    validated = {
        component: validate_number(scores.get(component), 0, 100, field_name=component)
        for component in DASHBOARD_COMPONENTS
    }
    overall = _overall(validated)

    supabase = get_supabase()
    previous = supabase.table('freedom_scores').select('overall_score, assessment_date').eq(
        'user_id', user_id).order('assessment_date', desc=True).limit(1).execute().data
    previous_score = previous[0]['overall_score'] if previous else None

    result = supabase.table('freedom_scores').insert({
        'user_id': user_id,
        'assessment_date': parsed_date.isoformat(),
        **validated,
        'overall_score': overall,
        'assessment_method': method or 'dashboard_update',
        'notes': notes or None,
    }).execute()

    if not result.data:
        raise Exception("Failed to save freedom score")

    score_id = result.data[0]['id']
    log_info(f"[FREEDOM-SCORE] Saved score {score_id} for user {user_id}: {overall}")

    return {
        'score_id': score_id,
        'calculated_overall_score': overall,
        'previous_score': previous_score,
        'improvement': overall - previous_score if previous_score is not None else 0,
        'new_recommendations': generate_recommendations(validated),
        'next_assessment_date': (parsed_date + timedelta(days=NEXT_ASSESSMENT_DAYS)).isoformat(),
    }
