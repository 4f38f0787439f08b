"""Tests for component weighting, archetype detection and sprint recommendations."""
import pytest

from services.assessment_service import (
    COMPONENTS,
    calculate_component_scores,
    calculate_overall_score,
    detect_archetype,
    generate_sprint_recommendations,
    get_assessment,
    submit_assessment,
)


QUESTIONS = [
    {'question_id': 'q-money-1', 'component': 'money_freedom', 'weight': 1, 'is_active': True},
    {'question_id': 'q-money-2', 'component': 'money_freedom', 'weight': 2, 'is_active': True},
    {'question_id': 'q-systems', 'component': 'systems_freedom', 'weight': 1, 'is_active': True},
    {'question_id': 'q-team', 'component': 'team_freedom', 'weight': None, 'is_active': True},
    {'question_id': 'q-stress', 'component': 'stress_freedom', 'weight': 1, 'is_active': True},
    {'question_id': 'q-time', 'component': 'time_freedom', 'weight': 1, 'is_active': True},
    {'question_id': 'q-impact', 'component': 'impact_freedom', 'weight': 1, 'is_active': True},
]

SPRINTS = [
    {'sprint_id': 'sp-systems', 'sprint_title': 'Systems Sprint', 'primary_component': 'systems_freedom',
     'recommended_order': 1, 'is_active': True, 'estimated_time_hours': 6, 'expected_score_improvement': 15,
     'category': 'operations', 'difficulty_level': 'beginner', 'description': 'Document your core processes'},
    {'sprint_id': 'sp-money', 'sprint_title': 'Money Sprint', 'primary_component': 'money_freedom',
     'recommended_order': 2, 'is_active': True, 'estimated_time_hours': 4, 'expected_score_improvement': 10,
     'category': 'finance', 'difficulty_level': 'intermediate', 'description': 'Fix your pricing'},
    {'sprint_id': 'sp-team', 'sprint_title': 'Team Sprint', 'primary_component': 'team_freedom',
     'recommended_order': 3, 'is_active': True, 'estimated_time_hours': None, 'expected_score_improvement': 12,
     'category': 'people', 'difficulty_level': 'advanced', 'description': 'Delegate delivery'},
    {'sprint_id': 'sp-old', 'sprint_title': 'Retired Sprint', 'primary_component': 'stress_freedom',
     'recommended_order': 4, 'is_active': False},
]


def all_responses(score):
    return [{'question_id': q['question_id'], 'score': score} for q in QUESTIONS]


class TestCalculateComponentScores:
    def test_weighted_average_scaled_to_100(self):
        responses = [
            {'question_id': 'q-money-1', 'score': 8},
            {'question_id': 'q-money-2', 'score': 5},
        ]
        result = calculate_component_scores(QUESTIONS, responses)

        # (8 * 1 + 5 * 2) / 3 = 6.0
        assert result['scores']['money_freedom'] == 60.0
        assert result['questions_answered'] == 2

    def test_missing_weight_counts_as_one(self):
        result = calculate_component_scores(QUESTIONS, [{'question_id': 'q-team', 'score': 7}])
        assert result['scores']['team_freedom'] == 70.0

    def test_unanswered_components_are_reported(self):
        result = calculate_component_scores(QUESTIONS, [{'question_id': 'q-time', 'score': 9}])

        assert result['scores']['time_freedom'] == 90.0
        assert set(result['unanswered_components']) == set(COMPONENTS) - {'time_freedom'}
        assert result['scores']['money_freedom'] == 0

    def test_unknown_question_is_ignored(self):
        result = calculate_component_scores(QUESTIONS, [{'question_id': 'nope', 'score': 3}])
        assert result['questions_answered'] == 0

    def test_out_of_range_score_rejected(self):
        with pytest.raises(ValueError):
            calculate_component_scores(QUESTIONS, [{'question_id': 'q-time', 'score': 0}])


class TestOverallAndArchetype:
    def test_overall_skips_unanswered(self):
        scores = {c: 0 for c in COMPONENTS}
        scores['money_freedom'] = 80
        scores['time_freedom'] = 61
        unanswered = [c for c in COMPONENTS if c not in ('money_freedom', 'time_freedom')]

        # 70.5 rounds half up
        assert calculate_overall_score(scores, unanswered) == 71

    def test_overall_is_zero_when_nothing_answered(self):
        assert calculate_overall_score({c: 0 for c in COMPONENTS}, list(COMPONENTS)) == 0

    @pytest.mark.parametrize('score,expected', [
        (40, 'Scattered Starter'),
        (50, 'Steady Operator'),
        (80, 'Steady Operator'),
        (81, 'Freedom Achiever'),
    ])
    def test_archetype_thresholds(self, score, expected):
        archetype = detect_archetype({c: score for c in COMPONENTS})
        assert archetype['name'] == expected

    def test_strongest_and_weakest_components(self):
        scores = {c: 60 for c in COMPONENTS}
        scores['stress_freedom'] = 20
        scores['impact_freedom'] = 95

        archetype = detect_archetype(scores)
        assert archetype['strongest_component'] == 'impact_freedom'
        assert archetype['weakest_component'] == 'stress_freedom'
        assert archetype['confidence'] == 0.85


class TestSprintRecommendations:
    def test_weakest_component_first(self):
        scores = {'money_freedom': 30, 'systems_freedom': 70, 'team_freedom': 50}
        recommendations = generate_sprint_recommendations(scores, SPRINTS)

        assert [r['sprint_id'] for r in recommendations] == ['sp-money', 'sp-team', 'sp-systems']
        assert [r['priority_rank'] for r in recommendations] == [1, 2, 3]

    def test_confidence_scales_with_gap(self):
        scores = {'money_freedom': 40}
        recommendation = generate_sprint_recommendations(scores, SPRINTS)[0]

        # 0.5 + 0.6 * 0.45
        assert recommendation['confidence_score'] == 0.77
        assert recommendation['estimated_time_to_complete'] == '4 hours'
        assert recommendation['estimated_impact_points'] == 10
        assert 'biggest constraint' in recommendation['reasoning']

    def test_confidence_bounds(self):
        low = generate_sprint_recommendations({'money_freedom': 100}, SPRINTS)[0]
        high = generate_sprint_recommendations({'money_freedom': 0}, SPRINTS)[0]
        assert low['confidence_score'] == 0.5
        assert high['confidence_score'] == 0.95

    def test_inactive_sprints_excluded(self):
        assert generate_sprint_recommendations({'stress_freedom': 10}, SPRINTS) == []

    def test_recommended_order_breaks_score_ties(self):
        scores = {'money_freedom': 50, 'systems_freedom': 50}
        recommendations = generate_sprint_recommendations(scores, SPRINTS)
        assert [r['sprint_id'] for r in recommendations] == ['sp-systems', 'sp-money']

    def test_limit(self):
        scores = {'money_freedom': 30, 'systems_freedom': 70, 'team_freedom': 50}
        assert len(generate_sprint_recommendations(scores, SPRINTS, limit=1)) == 1


class TestSubmitAssessment:
    @pytest.fixture
    def seeded_db(self, fake_db):
        fake_db.tables['diagnostic_questions'] = [dict(q) for q in QUESTIONS]
        fake_db.tables['sprints'] = [dict(s) for s in SPRINTS]
        return fake_db

    def test_saves_assessment_responses_and_recommendations(self, seeded_db):
        responses = all_responses(4)
        responses[0]['score'] = 2

        result = submit_assessment('user-1', responses)

        assessment = seeded_db.rows('assessments')[0]
        assert assessment['user_id'] == 'user-1'
        assert assessment['completion_status'] == 'completed'
        assert assessment['archetype'] == 'Scattered Starter'
        assert len(seeded_db.rows('diagnostic_responses')) == len(QUESTIONS)
        assert len(seeded_db.rows('recommendations')) == 3

        assert result['archetype']['name'] == 'Scattered Starter'
        assert result['recommendations'][0]['title'] == 'Money Sprint'
        assert result['summary']['weakest_component'] == 'money_freedom'

    def test_partial_assessment(self, seeded_db):
        result = submit_assessment('user-1', [{'question_id': 'q-time', 'score': 9}])

        assert seeded_db.rows('assessments')[0]['completion_status'] == 'partial'
        assert result['summary']['overall_score'] == 90
        assert result['recommendations'] == []

    def test_requires_responses(self, seeded_db):
        with pytest.raises(ValueError, match='non-empty list'):
            submit_assessment('user-1', [])

    def test_rejects_responses_matching_no_question(self, seeded_db):
        with pytest.raises(ValueError, match='None of the responses'):
            submit_assessment('user-1', [{'question_id': 'unknown', 'score': 5}])

    def test_get_assessment_is_scoped_to_user(self, seeded_db):
        submitted = submit_assessment('user-1', all_responses(7))
        assessment_id = submitted['assessment']['assessment_id']

        fetched = get_assessment('user-1', assessment_id)
        assert fetched['assessment']['assessment_id'] == assessment_id
        assert len(fetched['recommendations']) == 3

        with pytest.raises(ValueError, match='Assessment not found'):
            get_assessment('someone-else', assessment_id)
