"""Freedom assessment service: component weighting, archetype detection and sprint recommendations"""
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from config.database import get_supabase
from utils.logger import log_info, log_warning
from utils.validation import validate_number

COMPONENTS = [
    'money_freedom',
    'systems_freedom',
    'team_freedom',
    'stress_freedom',
    'time_freedom',
    'impact_freedom',
]

COMPONENT_LABELS = {
    'money_freedom': 'Money Freedom',
    'systems_freedom': 'Systems Freedom',
    'team_freedom': 'Team Freedom',
    'stress_freedom': 'Stress Freedom',
    'time_freedom': 'Time Freedom',
    'impact_freedom': 'Impact Freedom',
}

ARCHETYPES = {
    'scattered_starter': {
        'name': 'Scattered Starter',
        'confidence': 0.9,
        'description': "You're building your foundation. Focus on systems and processes first.",
    },
    'steady_operator': {
        'name': 'Steady Operator',
        'confidence': 0.85,
        'description': 'You have solid fundamentals but room to optimize and scale.',
    },
    'freedom_achiever': {
        'name': 'Freedom Achiever',
        'confidence': 0.95,
        'description': "You've mastered business freedom. Time to focus on growth and impact.",
    },
}

MIN_CONFIDENCE = 0.5
MAX_CONFIDENCE = 0.95


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def calculate_component_scores(questions: List[Dict[str, Any]], responses: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Weight each 1-10 response by its question and average per component.

    Args:
        questions: Rows from diagnostic_questions (question_id, component, weight)
        responses: [{'question_id': ..., 'score': 1-10}, ...]

    Returns:
        {'scores': {component: 0-100}, 'unanswered_components': [...], 'questions_answered': int}
    """
    question_map = {question['question_id']: question for question in questions}

    weighted_totals = {component: 0.0 for component in COMPONENTS}
    weight_totals = {component: 0.0 for component in COMPONENTS}
    answered = 0

    for response in responses or []:
        question = question_map.get(response.get('question_id'))
        if not question or question.get('component') not in weighted_totals:
            log_warning(f"Ignoring response for unknown question {response.get('question_id')}")
            continue

        score = validate_number(response.get('score'), 1, 10, field_name=f"score for {response['question_id']}")
        weight = question.get('weight')
        weight = 1.0 if weight is None else float(weight)

        weighted_totals[question['component']] += score * weight
        weight_totals[question['component']] += weight
        answered += 1

    scores = {}
    unanswered = []
    for component in COMPONENTS:
        if weight_totals[component] > 0:
            scores[component] = round(weighted_totals[component] / weight_totals[component] * 10, 2)
        else:
            scores[component] = 0
            unanswered.append(component)

    return {
        'scores': scores,
        'unanswered_components': unanswered,
        'questions_answered': answered,
    }


def calculate_overall_score(component_scores: Dict[str, float], unanswered_components: Optional[List[str]] = None) -> int:
    """Mean of the answered components, rounded half-up"""
    skipped = set(unanswered_components or [])
    values = [score for component, score in component_scores.items() if component not in skipped]
    if not values:
        return 0
    return int(_round_half_up(sum(values) / len(values)))


def detect_archetype(component_scores: Dict[str, float], unanswered_components: Optional[List[str]] = None) -> Dict[str, Any]:
    """Classify the business by its overall freedom score"""
    overall = calculate_overall_score(component_scores, unanswered_components)

    if overall < 50:
        archetype = ARCHETYPES['scattered_starter']
    elif overall > 80:
        archetype = ARCHETYPES['freedom_achiever']
    else:
        archetype = ARCHETYPES['steady_operator']

    skipped = set(unanswered_components or [])
    ranked = {c: s for c, s in component_scores.items() if c not in skipped} or component_scores

    return {
        'name': archetype['name'],
        'confidence': archetype['confidence'],
        'description': archetype['description'],
        'overall_score': overall,
        'strongest_component': max(ranked, key=ranked.get) if ranked else None,
        'weakest_component': min(ranked, key=ranked.get) if ranked else None,
    }


def _confidence_for(score: float) -> float:
    confidence = MIN_CONFIDENCE + (100 - score) / 100 * (MAX_CONFIDENCE - MIN_CONFIDENCE)
    return round(min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, confidence)), 2)


def _reasoning_for(component: str, score: float, sprint: Dict[str, Any]) -> str:
    label = COMPONENT_LABELS.get(component, component)
    title = sprint.get('sprint_title') or sprint.get('title') or 'This sprint'
    if score < 50:
        return f"{label} is your biggest constraint at {score:g}/100. {title} targets it directly."
    if score < 75:
        return f"{label} scored {score:g}/100. {title} closes the remaining gaps."
    return f"{label} is already strong at {score:g}/100. {title} keeps it that way as you scale."


def generate_sprint_recommendations(component_scores: Dict[str, float], sprints: List[Dict[str, Any]],
                                    limit: int = 3) -> List[Dict[str, Any]]:
    """Rank active sprints by the score of the component they improve, weakest first"""
    candidates = [
        sprint for sprint in sprints
        if sprint.get('is_active', True) and sprint.get('primary_component') in component_scores
    ]

    candidates.sort(key=lambda sprint: (
        component_scores[sprint['primary_component']],
        sprint.get('recommended_order') if sprint.get('recommended_order') is not None else 999,
    ))

    recommendations = []
    for rank, sprint in enumerate(candidates[:limit], start=1):
        score = component_scores[sprint['primary_component']]
        hours = sprint.get('estimated_time_hours')
        recommendations.append({
            'sprint_id': sprint.get('sprint_id') or sprint.get('id'),
            'priority_rank': rank,
            'confidence_score': _confidence_for(score),
            'reasoning': _reasoning_for(sprint['primary_component'], score, sprint),
            'estimated_impact_points': sprint.get('expected_score_improvement') or 0,
            'estimated_time_to_complete': f"{hours} hours" if hours else None,
        })

    return recommendations


def submit_assessment(user_id: str, responses: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Score a set of responses and persist the assessment, responses and recommendations"""
    if not responses or not isinstance(responses, list):
        raise ValueError("responses must be a non-empty list")

    supabase = get_supabase()

    questions = supabase.table('diagnostic_questions').select('*').eq('is_active', True).execute().data or []
    if not questions:
        raise ValueError("No questions found")

    calculated = calculate_component_scores(questions, responses)
    if calculated['questions_answered'] == 0:
        raise ValueError("None of the responses match an active question")

    scores = calculated['scores']
    unanswered = calculated['unanswered_components']
    archetype = detect_archetype(scores, unanswered)
    now = datetime.now(timezone.utc).isoformat()

    assessment_id = str(uuid.uuid4())
    assessment_row = {
        'assessment_id': assessment_id,
        'user_id': user_id,
        'overall_score': archetype['overall_score'],
        'archetype': archetype['name'],
        'archetype_confidence': archetype['confidence'],
        'completion_status': 'completed' if not unanswered else 'partial',
        'total_questions': len(questions),
        'questions_answered': calculated['questions_answered'],
        'completed_at': now,
    }
    for component in COMPONENTS:
        assessment_row[f"{component}_score"] = scores[component]

    assessment = supabase.table('assessments').insert(assessment_row).execute().data[0]

    question_ids = {question['question_id'] for question in questions}
    response_rows = [
        {
            'assessment_id': assessment_id,
            'question_id': response['question_id'],
            'score': response['score'],
            'response_time_seconds': response.get('response_time_seconds'),
        }
        for response in responses
        if response.get('question_id') in question_ids
    ]
    supabase.table('diagnostic_responses').insert(response_rows).execute()

    sprints = supabase.table('sprints').select('*').eq('is_active', True).execute().data or []
    answered_scores = {c: s for c, s in scores.items() if c not in unanswered}
    recommendations = generate_sprint_recommendations(answered_scores, sprints)

    saved_recommendations = []
    if recommendations:
        rows = [
            {**recommendation, 'recommendation_id': str(uuid.uuid4()), 'assessment_id': assessment_id,
             'status': 'recommended'}
            for recommendation in recommendations
        ]
        saved_recommendations = supabase.table('recommendations').insert(rows).execute().data or []

    sprint_map = {sprint.get('sprint_id') or sprint.get('id'): sprint for sprint in sprints}
    for recommendation in saved_recommendations:
        sprint = sprint_map.get(recommendation['sprint_id'], {})
        recommendation['title'] = sprint.get('sprint_title')
        recommendation['description'] = sprint.get('description')
        recommendation['category'] = sprint.get('category')
        recommendation['difficulty_level'] = sprint.get('difficulty_level')

    log_info(f"Assessment {assessment_id} saved for user {user_id}: {archetype['name']} ({archetype['overall_score']})")

    return {
        'assessment': assessment,
        'component_scores': scores,
        'archetype': {
            'name': archetype['name'],
            'confidence': archetype['confidence'],
            'description': archetype['description'],
        },
        'recommendations': saved_recommendations,
        'summary': {
            'overall_score': archetype['overall_score'],
            'questions_answered': calculated['questions_answered'],
            'strongest_component': archetype['strongest_component'],
            'weakest_component': archetype['weakest_component'],
            'unanswered_components': unanswered,
        },
    }


def get_assessment(user_id: str, assessment_id: Optional[str] = None) -> Dict[str, Any]:
    """Get one assessment (or the user's latest) with its recommendations"""
    supabase = get_supabase()

    query = supabase.table('assessments').select('*').eq('user_id', user_id)
    if assessment_id:
        query = query.eq('assessment_id', assessment_id)
    result = query.order('created_at', desc=True).limit(1).execute()

    if not result.data:
        raise ValueError("Assessment not found")

    assessment = result.data[0]
    recommendations = supabase.table('recommendations').select('*').eq(
        'assessment_id', assessment['assessment_id']).order('priority_rank').execute().data or []

    return {
        'assessment': assessment,
        'component_scores': {c: assessment.get(f"{c}_score") or 0 for c in COMPONENTS},
        'recommendations': recommendations,
    }
