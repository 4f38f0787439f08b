"""Tests for dashboard freedom score tracking."""
from datetime import date, timedelta

import pytest

from services import freedom_score_service
from services.freedom_score_service import DASHBOARD_COMPONENTS


SCORES = {
    'time_freedom': 90,
    'money_freedom': 40,
    'impact_freedom': 70,
    'systems_freedom': 60,
    'team_freedom': 50,
    'stress_freedom': 80,
}


def score_row(user_id, days_ago, value):
    row = {c: value for c in DASHBOARD_COMPONENTS}
    row.update({
        'user_id': user_id,
        'assessment_date': (date.today() - timedelta(days=days_ago)).isoformat(),
        'overall_score': value,
    })
    return row


class TestInsights:
    def test_strength_and_weakness(self):
        insights = freedom_score_service.generate_insights(SCORES)

        assert insights[0] == {
            'type': 'positive',
            'message': 'Your time freedom is excellent at 90%. This is a major strength.',
            'priority': 'medium',
        }
        assert insights[1]['type'] == 'warning'
        assert 'money freedom needs attention at 40%' in insights[1]['message']
        assert len(insights) == 2

    def test_low_overall_score_prompts_action(self):
        insights = freedom_score_service.generate_insights({c: 55 for c in DASHBOARD_COMPONENTS})
        assert [i['type'] for i in insights] == ['action']

    def test_outstanding_overall(self):
        insights = freedom_score_service.generate_insights({c: 85 for c in DASHBOARD_COMPONENTS})
        assert [i['type'] for i in insights] == ['positive', 'positive']

    def test_default_insight(self):
        insights = freedom_score_service.generate_insights({c: 70 for c in DASHBOARD_COMPONENTS})
        assert [i['type'] for i in insights] == ['info']

    def test_recommendations_target_two_lowest(self):
        recommendations = freedom_score_service.generate_recommendations(SCORES)

        assert [r['sprint_key'] for r in recommendations] == ['S1', 'S2']
        assert recommendations[0]['title'] == 'Improve Revenue Streams'
        assert recommendations[1]['title'] == 'Strengthen Team Capabilities'

    def test_tied_lowest_scores_give_distinct_recommendations(self):
        scores = {c: 90 for c in DASHBOARD_COMPONENTS}
        scores.update(money_freedom=40, team_freedom=40)

        recommendations = freedom_score_service.generate_recommendations(scores)

        assert [r['title'] for r in recommendations] == [
            'Strengthen Team Capabilities', 'Improve Revenue Streams',
        ]

    def test_no_recommendations_for_strong_scores(self):
        assert freedom_score_service.generate_recommendations({c: 90 for c in DASHBOARD_COMPONENTS}) == []


class TestTrends:
    def test_needs_two_points(self):
        assert freedom_score_service.calculate_trends([{'score': 50, 'components': {}}]) == {}

    def test_direction_and_velocity(self):
        history = [
            {'score': 50, 'components': {c: 50 for c in DASHBOARD_COMPONENTS}},
            {'score': 60, 'components': {**{c: 50 for c in DASHBOARD_COMPONENTS}, 'money_freedom': 40}},
        ]
        trends = freedom_score_service.calculate_trends(history)

        assert trends['overall'] == {'direction': 'improving', 'velocity': 5.0, 'consistency': 'variable'}
        assert trends['components']['money_freedom']['direction'] == 'declining'
        assert trends['components']['time_freedom']['direction'] == 'stable'


class TestGetFreedomScore:
    def test_empty_dashboard(self, fake_db):
        dashboard = freedom_score_service.get_freedom_score('user-1')

        assert dashboard['current_score'] is None
        assert dashboard['recommendations'][0]['title'] == 'Complete Your First Freedom Assessment'

    def test_current_score_with_history_and_trends(self, fake_db):
        fake_db.tables['freedom_scores'] = [
            score_row('user-1', 10, 50),
            score_row('user-1', 2, 60),
            score_row('user-1', 200, 20),
            score_row('user-2', 1, 99),
        ]

        dashboard = freedom_score_service.get_freedom_score(
            'user-1', period='30d', include_history=True, include_trends=True
        )

        current = dashboard['current_score']
        assert current['overall'] == 60
        assert current['points_changed'] == 10
        assert current['percentage_change'] == 20.0
        assert current['trend'] == 'improving'
        assert [point['score'] for point in dashboard['history']] == [50, 60]
        assert dashboard['trends']['overall']['direction'] == 'improving'

    def test_history_omitted_unless_requested(self, fake_db):
        fake_db.tables['freedom_scores'] = [score_row('user-1', 1, 70)]

        dashboard = freedom_score_service.get_freedom_score('user-1')

        assert 'history' not in dashboard
        assert dashboard['current_score']['trend'] == 'stable'


class TestRecordFreedomScore:
    def test_records_and_compares_with_previous(self, fake_db):
        fake_db.tables['freedom_scores'] = [score_row('user-1', 30, 60)]

        result = freedom_score_service.record_freedom_score('user-1', '2026-01-10', SCORES, notes='Q1 check-in')

        assert result['calculated_overall_score'] == 65
        assert result['previous_score'] == 60
        assert result['improvement'] == 5
        assert result['next_assessment_date'] == '2026-01-17'
        assert [r['sprint_key'] for r in result['new_recommendations']] == ['S1', 'S2']

        saved = [row for row in fake_db.rows('freedom_scores') if row['assessment_date'] == '2026-01-10'][0]
        assert saved['overall_score'] == 65
        assert saved['assessment_method'] == 'dashboard_update'

    def test_first_score_has_no_improvement(self, fake_db):
        result = freedom_score_service.record_freedom_score('user-1', '2026-01-10', SCORES)
        assert result['previous_score'] is None
        assert result['improvement'] == 0

    def test_bad_date(self, fake_db):
        with pytest.raises(ValueError, match='YYYY-MM-DD'):
            freedom_score_service.record_freedom_score('user-1', '10/01/2026', SCORES)

    def test_component_out_of_range(self, fake_db):
        with pytest.raises(ValueError, match='stress_freedom'):
            freedom_score_service.record_freedom_score('user-1', '2026-01-10', {**SCORES, 'stress_freedom': 120})

    def test_missing_component(self, fake_db):
        scores = dict(SCORES)
        del scores['team_freedom']
        with pytest.raises(ValueError, match='team_freedom'):
            freedom_score_service.record_freedom_score('user-1', '2026-01-10', scores)
