"""Tests for the Flask routes: auth, status codes and response shapes."""
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pytest

from services import oauth_service
from services.freedom_scoring import ANSWER_KEYS
from services.strategist_service import StrategistUnavailable
from tests.fakes import FakeUser


class TestHealth:
    def test_home(self, app_client):
        assert app_client.get('/').get_json()['status'] == 'running'

    def test_health(self, app_client):
        response = app_client.get('/health')
        assert response.status_code == 200
        assert response.get_json()['status'] == 'healthy'


class TestAuth:
    @pytest.mark.parametrize('method,path', [
        ('get', '/api/assessments/latest'),
        ('get', '/api/freedom-score'),
        ('get', '/api/strategist/history'),
        ('get', '/api/business-context'),
        ('get', '/api/platform-connections'),
        ('get', '/api/export/history'),
        ('post', '/api/export/asana'),
    ])
    def test_requires_user(self, app_client, method, path):
        response = getattr(app_client, method)(path, json={})
        assert response.status_code == 401
        assert response.get_json() == {"error": "User ID required"}

    def test_bearer_token_resolves_user(self, app_client, fake_db):
        fake_db.auth.tokens['session-token'] = FakeUser('user-9')
        fake_db.tables['business_context'] = [{'user_id': 'user-9', 'business_name': 'Nine'}]

        response = app_client.get('/api/business-context', headers={'Authorization': 'Bearer session-token'})

        assert response.status_code == 200
        assert response.get_json()['context']['business_name'] == 'Nine'

    def test_invalid_bearer_token(self, app_client):
        response = app_client.get('/api/business-context', headers={'Authorization': 'Bearer nope'})
        assert response.status_code == 401


class TestFreedomDiagnostic:
    def test_anonymous_submit(self, app_client, fake_db):
        response = app_client.post('/api/freedom-diagnostic/submit',
                                   json={'answers': {key: 5 for key in ANSWER_KEYS}})

        assert response.status_code == 201
        body = response.get_json()
        assert body['user_id'] is None
        assert body['score_result']['percent'] == 50
        assert fake_db.rows('freedom_diagnostic_results')[0]['total_score'] == 30.0

    def test_missing_answers(self, app_client):
        response = app_client.post('/api/freedom-diagnostic/submit', json={'answers': [1, 2]})
        assert response.status_code == 400

    def test_incomplete_answers(self, app_client):
        response = app_client.post('/api/freedom-diagnostic/submit', json={'answers': {'M1_Q1': 5}})
        assert response.status_code == 400
        assert 'Missing answers' in response.get_json()['error']

    def test_recommended_sprint_needs_parameter(self, app_client):
        assert app_client.get('/api/freedom-diagnostic/recommended-sprint').status_code == 400

    def test_recommended_sprint_by_score(self, app_client, fake_db):
        fake_db.tables['sprints'] = [
            {'id': 1, 'name': 'a', 'min_score': 0, 'max_score': 40},
            {'id': 2, 'name': 'b', 'min_score': 41, 'max_score': 100},
        ]
        response = app_client.get('/api/freedom-diagnostic/recommended-sprint?score=55')
        assert response.get_json()['id'] == 2

    def test_unknown_sprint_key(self, app_client, fake_db):
        assert app_client.get('/api/freedom-diagnostic/sprints/s9').status_code == 404


class TestRecommendations:
    def test_assessment_id_required(self, app_client, auth_headers):
        response = app_client.get('/api/recommendations', headers=auth_headers)
        assert response.status_code == 400

    def test_unknown_recommendation_is_404(self, app_client, fake_db, auth_headers):
        response = app_client.put('/api/recommendations/r-404', json={'action': 'start'}, headers=auth_headers)
        assert response.status_code == 404

    def test_invalid_action_is_400(self, app_client, fake_db, auth_headers):
        response = app_client.put('/api/recommendations/r-1', json={'action': 'archive'}, headers=auth_headers)
        assert response.status_code == 400

    def test_report_download(self, app_client, fake_db, auth_headers):
        fake_db.tables['assessments'] = [
            {'assessment_id': 'a-1', 'user_id': 'user-123', 'overall_score': 70, 'archetype': 'Builder'},
        ]

        response = app_client.get('/api/assessments/a-1/report', headers=auth_headers)

        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert response.data.startswith(b'%PDF')
        assert 'freedom-score-a-1.pdf' in response.headers['Content-Disposition']

    def test_report_for_missing_assessment(self, app_client, fake_db, auth_headers):
        assert app_client.get('/api/assessments/nope/report', headers=auth_headers).status_code == 404


class TestFreedomScore:
    def test_dashboard(self, app_client, fake_db, auth_headers):
        response = app_client.get('/api/freedom-score?period=bogus', headers=auth_headers)
        assert response.status_code == 200
        assert response.get_json()['current_score'] is None

    def test_record_validation_error(self, app_client, fake_db, auth_headers):
        response = app_client.post('/api/freedom-score', json={'assessment_date': '2026-01-10', 'scores': {}},
                                   headers=auth_headers)
        assert response.status_code == 400


class TestStrategist:
    def test_chat(self, app_client, fake_db, auth_headers):
        reply = {'reply': 'Raise your prices.', 'language': 'en', 'personality': 'strategic'}
        with patch('app.strategist_service.chat', return_value=reply) as chat:
            response = app_client.post('/api/strategist/chat', json={'message': ' Help '}, headers=auth_headers)

        assert response.status_code == 200
        assert response.get_json() == reply
        assert chat.call_args.args == ('user-123', 'Help')

    def test_unavailable_is_503(self, app_client, fake_db, auth_headers):
        with patch('app.strategist_service.chat', side_effect=StrategistUnavailable('down')):
            response = app_client.post('/api/strategist/chat', json={'message': 'Help'}, headers=auth_headers)
        assert response.status_code == 503

    def test_freedom_score_must_be_object(self, app_client, auth_headers):
        response = app_client.post('/api/strategist/chat', json={'message': 'Hi', 'freedom_score': 50},
                                   headers=auth_headers)
        assert response.status_code == 400

    @pytest.mark.parametrize('freedom_score', [
        {'recommended_order': [{'sprint_key': 'S1'}]},
        {'recommended_order': 'S1'},
        {'module_averages': {'M1': 'low'}},
    ])
    def test_malformed_freedom_score_is_400(self, app_client, fake_db, auth_headers, freedom_score):
        with patch('app.strategist_service._get_client') as get_client:
            response = app_client.post('/api/strategist/chat',
                                       json={'message': 'What next?', 'freedom_score': freedom_score},
                                       headers=auth_headers)

        assert response.status_code == 400
        assert 'freedom_score' in response.get_json()['error']
        get_client.assert_not_called()

    def test_non_string_personality_is_400(self, app_client, fake_db, auth_headers):
        with patch('app.strategist_service._get_client') as get_client:
            response = app_client.post('/api/strategist/chat',
                                       json={'message': 'What next?', 'personality': ['strategic']},
                                       headers=auth_headers)

        assert response.status_code == 400
        assert 'personality must be one of' in response.get_json()['error']
        get_client.assert_not_called()

    def test_tts_returns_audio(self, app_client, auth_headers):
        with patch('app.strategist_service.text_to_speech', return_value=b'ID3data'):
            response = app_client.post('/api/strategist/tts', json={'text': 'Hi'}, headers=auth_headers)

        assert response.status_code == 200
        assert response.mimetype == 'audio/mpeg'
        assert response.data == b'ID3data'


class TestTemplates:
    def test_create_requires_user(self, app_client):
        assert app_client.post('/api/templates', json={'template_name': 'x'}).status_code == 401

    def test_create_and_list(self, app_client, fake_db, auth_headers):
        created = app_client.post('/api/templates', json={'template_name': 'SOP', 'category': 'ops'},
                                  headers=auth_headers)
        assert created.status_code == 201

        listed = app_client.get('/api/templates?category=ops').get_json()['templates']
        assert [t['template_name'] for t in listed] == ['SOP']

    def test_missing_template(self, app_client, fake_db):
        assert app_client.get('/api/templates/nope').status_code == 404


class TestConnectionsAndOAuth:
    def test_delete_without_target(self, app_client, fake_db, auth_headers):
        assert app_client.delete('/api/platform-connections', headers=auth_headers).status_code == 400

    def test_authorize_unconfigured(self, app_client, fake_db, auth_headers, monkeypatch):
        monkeypatch.setitem(oauth_service.CLIENT_CREDENTIALS, 'asana', ('', ''))
        response = app_client.get('/api/oauth/asana/authorize', headers=auth_headers)
        assert response.status_code == 400

    def test_callback_with_bad_state_redirects_with_error(self, app_client, fake_db):
        response = app_client.get('/api/oauth/asana/callback?state=forged&code=abc')

        assert response.status_code == 302
        query = parse_qs(urlparse(response.headers['Location']).query)
        assert query['error'] == ['Invalid or expired OAuth state']
        assert query['platform'] == ['asana']

    def test_callback_provider_denied(self, app_client):
        response = app_client.get('/api/oauth/notion/callback?error=access_denied')
        assert 'error=access_denied' in response.headers['Location']

    def test_callback_success_redirects(self, app_client):
        with patch('app.oauth_service.handle_callback', return_value={'id': 'c1'}):
            response = app_client.get('/api/oauth/asana/callback?state=s&code=c')

        assert response.status_code == 302
        assert response.headers['Location'].endswith('/connections?connected=asana')

    def test_token_callback(self, app_client):
        with patch('app.oauth_service.handle_callback', return_value={'id': 'c1'}) as handle:
            response = app_client.post('/api/oauth/trello/callback', json={'state': 's', 'token': 't'})

        assert response.get_json() == {'success': True, 'connection': {'id': 'c1'}}
        assert handle.call_args.kwargs['token'] == 't'


class TestExport:
    def test_requires_connection(self, app_client, fake_db, auth_headers):
        response = app_client.post('/api/export/notion', json={'workflow_id': 'wf-1'}, headers=auth_headers)

        assert response.status_code == 401
        body = response.get_json()
        assert body['requires_connection'] is True
        assert body['platform'] == 'notion'

    def test_unsupported_platform(self, app_client, fake_db, auth_headers):
        response = app_client.post('/api/export/jira', json={'workflow_id': 'wf-1'}, headers=auth_headers)
        assert response.status_code == 400

    def test_unknown_workflow_is_404(self, app_client, fake_db, auth_headers):
        fake_db.tables['platform_connections'] = [
            {'id': 'c1', 'user_id': 'user-123', 'platform': 'asana', 'access_token': 't', 'is_active': True},
        ]
        response = app_client.post('/api/export/asana', json={'workflow_id': 'missing'}, headers=auth_headers)
        assert response.status_code == 404

    def test_success_body(self, app_client, auth_headers):
        result = {'export_id': 'asana_1', 'platform': 'asana', 'external_url': 'https://app.asana.com/0/1'}
        with patch('app.export_service.export_workflow', return_value=result):
            response = app_client.post('/api/export/asana', json={'workflow_id': 'wf-1'}, headers=auth_headers)

        assert response.get_json() == {'success': True, **result}

    def test_settings_must_be_objects(self, app_client, auth_headers):
        response = app_client.post('/api/export/asana', json={'workflow_id': 'wf-1', 'platform_settings': 'x'},
                                   headers=auth_headers)
        assert response.status_code == 400
