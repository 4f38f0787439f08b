"""Tests for recommendation progress tracking and the sprint catalog."""
import pytest

from services import recommendation_service


@pytest.fixture
def seeded_db(fake_db):
    fake_db.tables['assessments'] = [
        {'assessment_id': 'a-1', 'user_id': 'user-1', 'overall_score': 45, 'archetype': 'Scattered Starter',
         'money_freedom_score': 30, 'created_at': '2026-01-01T00:00:00+00:00'},
    ]
    fake_db.tables['recommendations'] = [
        {'recommendation_id': 'r-1', 'assessment_id': 'a-1', 'sprint_id': 'sp-1', 'priority_rank': 1,
         'status': 'recommended', 'estimated_impact_points': 10},
        {'recommendation_id': 'r-2', 'assessment_id': 'a-1', 'sprint_id': 'sp-2', 'priority_rank': 3,
         'status': 'in_progress', 'estimated_impact_points': 8},
        {'recommendation_id': 'r-3', 'assessment_id': 'a-1', 'sprint_id': 'sp-1', 'priority_rank': 5,
         'status': 'completed', 'estimated_impact_points': 5},
    ]
    fake_db.tables['sprints'] = [
        {'sprint_id': 'sp-1', 'sprint_title': 'Money Sprint', 'estimated_time_hours': 4, 'category': 'finance',
         'difficulty_level': 'beginner', 'is_active': True, 'recommended_order': 2},
        {'sprint_id': 'sp-2', 'sprint_title': 'Systems Sprint', 'estimated_time_hours': 6, 'category': 'operations',
         'difficulty_level': 'advanced', 'is_active': True, 'recommended_order': 1},
        {'sprint_id': 'sp-3', 'sprint_title': 'Old Sprint', 'category': 'finance', 'is_active': False,
         'recommended_order': 3},
    ]
    return fake_db


class TestGetRecommendations:
    def test_groups_and_summarizes(self, seeded_db):
        result = recommendation_service.get_recommendations('user-1', 'a-1')

        assert [r['recommendation_id'] for r in result['grouped']['high_priority']] == ['r-1']
        assert [r['recommendation_id'] for r in result['grouped']['medium_priority']] == ['r-2']
        assert [r['recommendation_id'] for r in result['grouped']['low_priority']] == ['r-3']
        assert result['summary']['total_potential_impact'] == 23
        assert result['summary']['estimated_total_time_hours'] == 14
        assert result['recommendations'][0]['sprints']['sprint_title'] == 'Money Sprint'
        assert result['assessment']['component_scores']['money_freedom'] == 30

    def test_other_users_assessment_is_hidden(self, seeded_db):
        with pytest.raises(ValueError, match='Assessment not found'):
            recommendation_service.get_recommendations('user-2', 'a-1')

    def test_assessment_id_required(self, seeded_db):
        with pytest.raises(ValueError, match='assessment_id is required'):
            recommendation_service.get_recommendations('user-1', None)


class TestUpdateRecommendation:
    def test_start_sets_status_and_timestamp(self, seeded_db):
        updated = recommendation_service.update_recommendation('user-1', 'r-1', action='start')

        assert updated['status'] == 'in_progress'
        assert updated['started_at']
        assert updated['sprints']['sprint_id'] == 'sp-1'

    def test_complete(self, seeded_db):
        updated = recommendation_service.update_recommendation('user-1', 'r-2', action='complete')
        assert updated['status'] == 'completed'
        assert updated['completed_at']

    def test_manual_status_and_notes(self, seeded_db):
        updated = recommendation_service.update_recommendation(
            'user-1', 'r-1', status='deferred', user_notes='After launch'
        )
        assert updated['status'] == 'deferred'
        assert updated['user_notes'] == 'After launch'

    def test_action_wins_over_status(self, seeded_db):
        updated = recommendation_service.update_recommendation('user-1', 'r-1', status='completed', action='skip')
        assert updated['status'] == 'skipped'

    @pytest.mark.parametrize('kwargs,message', [
        ({'status': 'done'}, 'Status must be one of'),
        ({'action': 'archive'}, 'Action must be one of'),
        ({}, 'No updates provided'),
    ])
    def test_invalid_updates(self, seeded_db, kwargs, message):
        with pytest.raises(ValueError, match=message):
            recommendation_service.update_recommendation('user-1', 'r-1', **kwargs)

    def test_unknown_recommendation(self, seeded_db):
        with pytest.raises(ValueError, match='Recommendation not found'):
            recommendation_service.update_recommendation('user-1', 'r-404', action='start')

    def test_cannot_update_another_users_recommendation(self, seeded_db):
        with pytest.raises(ValueError, match='Assessment not found'):
            recommendation_service.update_recommendation('user-2', 'r-1', action='start')
        assert seeded_db.rows('recommendations')[0]['status'] == 'recommended'


class TestListSprints:
    def test_active_sprints_by_category(self, seeded_db):
        result = recommendation_service.list_sprints()

        assert [s['sprint_id'] for s in result['sprints']] == ['sp-2', 'sp-1']
        assert result['categories'] == ['operations', 'finance']
        assert result['summary']['difficulty_breakdown'] == {'beginner': 1, 'intermediate': 0, 'advanced': 1}
