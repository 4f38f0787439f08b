"""Tests for the assessment PDF report."""
from unittest.mock import patch

import pytest

from services import report_service


@pytest.fixture
def report_db(fake_db):
    fake_db.tables['assessments'] = [
        {'assessment_id': 'a-1', 'user_id': 'user-1', 'overall_score': 58, 'archetype': 'Scattered Starter',
         'money_freedom_score': 40, 'time_freedom_score': 72.5, 'completed_at': '2026-03-04T10:00:00+00:00'},
    ]
    fake_db.tables['recommendations'] = [
        {'recommendation_id': 'r-1', 'assessment_id': 'a-1', 'sprint_id': 'sp-1', 'priority_rank': 1,
         'status': 'in_progress', 'reasoning': 'Cash flow is <tight> & unpredictable',
         'estimated_time_to_complete': '2 weeks'},
    ]
    fake_db.tables['sprints'] = [{'sprint_id': 'sp-1', 'sprint_title': 'Pricing & Offers'}]
    fake_db.tables['business_context'] = [{'user_id': 'user-1', 'business_name': 'Ana & Co'}]
    return fake_db


class TestScoreBand:
    @pytest.mark.parametrize('score,band', [
        (None, 'Not answered'), (10, 'Needs attention'), (50, 'Developing'), (75, 'Strong'),
    ])
    def test_bands(self, score, band):
        assert report_service._score_band(score) == band


class TestReport:
    def test_generates_pdf(self, report_db):
        buffer = report_service.generate_assessment_report('user-1', 'a-1')

        content = buffer.read()
        assert content.startswith(b'%PDF')
        assert len(content) > 1000

    def test_uses_business_name(self, report_db):
        with patch.object(report_service, 'build_report_pdf', wraps=report_service.build_report_pdf) as build:
            report_service.generate_assessment_report('user-1', 'a-1')

        assert build.call_args.kwargs['business_name'] == 'Ana & Co'

    def test_report_without_recommendations(self, report_db):
        report_db.tables['recommendations'] = []
        report_db.tables['business_context'] = []

        assert report_service.generate_assessment_report('user-1', 'a-1').read(4) == b'%PDF'

    def test_other_users_assessment(self, report_db):
        with pytest.raises(ValueError, match='Assessment not found'):
            report_service.generate_assessment_report('user-2', 'a-1')
