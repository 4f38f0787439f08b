"""Flask application with route handlers"""
from flask import Flask, jsonify, request, redirect, send_file
from flask_cors import CORS
import io
import os
import traceback
from urllib.parse import urlencode

from utils.auth import get_user_id
from utils.validation import sanitize_string, validate_integer, validate_enum
from utils.logger import log_error, log_warning, log_info
from utils.rate_limit import init_rate_limiter, RATE_LIMITS
from services import diagnostic_service, assessment_service, recommendation_service, freedom_score_service
from services import strategist_service, business_context_service, template_service
from services import platform_connection_service, oauth_service, export_service, report_service
from services.email_service import EmailService
from services.platform_connection_service import ConnectionRequired
from services.strategist_service import StrategistUnavailable

app = Flask(__name__)

CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get('CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000').split(',')
    if origin.strip()
]
CORS(app, resources={
    r"/*": {
        "origins": CORS_ORIGINS,
        "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        "allow_headers": ["Content-Type", "Authorization", "X-User-Id", "X-User-Email"],
        "supports_credentials": True
    }
})

# Initialize rate limiter
limiter = init_rate_limiter(app)


def _server_error(message, e):
    error_trace = traceback.format_exc()
    log_error(message, error=e, traceback_str=error_trace)
    error_response = {"error": str(e)}
    if app.debug:
        error_response["traceback"] = error_trace
    return jsonify(error_response), 500


def _flag(name, default='false'):
    return request.args.get(name, default).lower() == 'true'


@app.route('/')
def home():
    return jsonify({
        "message": "Freedom Suite API",
        "status": "running",
        "version": "1.0.0"
    })

@app.route('/health')
@limiter.exempt
def health_check():
    return jsonify({
        "status": "healthy",
        "message": "API is running successfully"
    })

# ---------------------------------------------------------------------------
# Diagnostic questions and the 12-question Freedom Diagnostic
# ---------------------------------------------------------------------------

@app.route('/api/diagnostic/questions', methods=['GET'])
@limiter.limit(RATE_LIMITS['generous'])
def get_diagnostic_questions():
    """Active assessment questions, optionally filtered by category or component"""
    try:
        category = sanitize_string(request.args.get('category'), max_length=100) or None
        component = sanitize_string(request.args.get('component'), max_length=100) or None
        return jsonify(diagnostic_service.get_questions(category=category, component=component))
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        return _server_error("Error in get_diagnostic_questions", e)

@app.route('/api/diagnostic/questions/<question_id>', methods=['GET'])
def get_diagnostic_question(question_id):
    try:
        return jsonify(diagnostic_service.get_question(question_id))
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        return _server_error("Error in get_diagnostic_question", e)

@app.route('/api/freedom-diagnostic/questions', methods=['GET'])
@limiter.limit(RATE_LIMITS['generous'])
def get_freedom_diagnostic_questions():
    try:
        return jsonify({"questions": diagnostic_service.get_freedom_questions()})
    except Exception as e:
        return _server_error("Error in get_freedom_diagnostic_questions", e)

@app.route('/api/freedom-diagnostic/submit', methods=['POST'])
@limiter.limit(RATE_LIMITS['moderate'])
def submit_freedom_diagnostic():
    """Score the 12 answers; signed-in users get the result saved and emailed"""
    try:
        data = request.get_json()
        if not data or not isinstance(data.get('answers'), dict):
            return jsonify({"error": "answers object is required"}), 400

        user_id = get_user_id()
        user_email = sanitize_string(request.headers.get('X-User-Email'), max_length=320) or None

        result = diagnostic_service.save_responses_and_calculate_score(
            data['answers'], user_id=user_id, user_email=user_email
        )
        return jsonify(result), 201
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        return _server_error("Error in submit_freedom_diagnostic", e)

@app.route('/api/freedom-diagnostic/history', methods=['GET'])
@limiter.limit(RATE_LIMITS['standard'])
def get_freedom_diagnostic_history():
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        return jsonify({"results": diagnostic_service.get_user_responses(user_id)})
    except Exception as e:
        return _server_error("Error in get_freedom_diagnostic_history", e)

@app.route('/api/freedom-diagnostic/sprints', methods=['GET'])
@limiter.limit(RATE_LIMITS['generous'])
def get_diagnostic_sprints():
    try:
        return jsonify({"sprints": diagnostic_service.get_sprints()})
    except Exception as e:
        return _server_error("Error in get_diagnostic_sprints", e)

@app.route('/api/freedom-diagnostic/sprints/<sprint_key>', methods=['GET'])
def get_diagnostic_sprint(sprint_key):
    try:
        return jsonify(diagnostic_service.get_sprint_by_key(sprint_key.upper()))
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        return _server_error("Error in get_diagnostic_sprint", e)

@app.route('/api/freedom-diagnostic/recommended-sprint', methods=['GET'])
def get_recommended_sprint():
    """Sprint for a score (?score=) or for the weakest category (?category=)"""
    try:
        category = sanitize_string(request.args.get('category'), max_length=100)
        if category:
            sprint = diagnostic_service.find_recommended_sprint(category)
        else:
            score = validate_integer(request.args.get('score'), min_value=0, max_value=100)
            if score is None:
                return jsonify({"error": "score or category parameter required"}), 400
            sprint = diagnostic_service.get_recommended_sprint(score)

        if not sprint:
            return jsonify({"error": "No sprints available"}), 404
        return jsonify(sprint)
    except Exception as e:
        return _server_error("Error in get_recommended_sprint", e)

# ---------------------------------------------------------------------------
# Assessments, recommendations and sprints
# ---------------------------------------------------------------------------

@app.route('/api/assessments', methods=['POST'])
@limiter.limit(RATE_LIMITS['moderate'])
def submit_assessment():
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        data = request.get_json()
        if not data:
            return jsonify({"error": "No data provided"}), 400

        result = assessment_service.submit_assessment(user_id, data.get('responses'))

        user_email = sanitize_string(request.headers.get('X-User-Email'), max_length=320)
        if user_email:
            try:
                EmailService().queue_assessment_results_email(user_email, result, user_id=user_id)
            except Exception as e:
                log_warning(f"Could not queue assessment email for {user_id}: {e}")

        return jsonify(result), 201
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        return _server_error("Error in submit_assessment", e)

@app.route('/api/assessments/latest', methods=['GET'])
def get_latest_assessment():
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        return jsonify(assessment_service.get_assessment(user_id))
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        return _server_error("Error in get_latest_assessment", e)

@app.route('/api/assessments/<assessment_id>', methods=['GET'])
def get_assessment(assessment_id):
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        return jsonify(assessment_service.get_assessment(user_id, assessment_id))
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        return _server_error("Error in get_assessment", e)

@app.route('/api/assessments/<assessment_id>/report', methods=['GET'])
@limiter.limit(RATE_LIMITS['moderate'])
def download_assessment_report(assessment_id):
    """Assessment results as a PDF download"""
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        pdf_buffer = report_service.generate_assessment_report(user_id, assessment_id)
        return send_file(
            pdf_buffer,
            mimetype='application/pdf',
            as_attachment=True,
            download_name=f"freedom-score-{assessment_id}.pdf"
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        return _server_error("Error in download_assessment_report", e)

@app.route('/api/recommendations', methods=['GET'])
@limiter.limit(RATE_LIMITS['standard'])
def get_recommendations():
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        assessment_id = sanitize_string(request.args.get('assessment_id'), max_length=100)
        if not assessment_id:
            return jsonify({"error": "assessment_id parameter required"}), 400

        return jsonify(recommendation_service.get_recommendations(user_id, assessment_id))
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        return _server_error("Error in get_recommendations", e)

@app.route('/api/recommendations/<recommendation_id>', methods=['PUT'])
@limiter.limit(RATE_LIMITS['moderate'])
def update_recommendation(recommendation_id):
    """Start, complete, skip or defer a recommendation, or set status and notes"""
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        data = request.get_json()
        if not data:
            return jsonify({"error": "No data provided"}), 400

        recommendation = recommendation_service.update_recommendation(
            user_id,
            recommendation_id,
            status=sanitize_string(data.get('status'), max_length=50) or None,
            user_notes=sanitize_string(data.get('user_notes'), max_length=5000) or None,
            action=sanitize_string(data.get('action'), max_length=50) or None,
        )
        return jsonify(recommendation)
    except ValueError as e:
        status_code = 404 if 'not found' in str(e) else 400
        return jsonify({"error": str(e)}), status_code
    except Exception as e:
        return _server_error("Error in update_recommendation", e)

@app.route('/api/sprints', methods=['GET'])
@limiter.limit(RATE_LIMITS['generous'])
def list_sprints():
    try:
        return jsonify(recommendation_service.list_sprints())
    except Exception as e:
        return _server_error("Error in list_sprints", e)

# ---------------------------------------------------------------------------
# Dashboard freedom score
# ---------------------------------------------------------------------------

@app.route('/api/freedom-score', methods=['GET'])
@limiter.limit(RATE_LIMITS['standard'])
def get_freedom_score():
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        period = validate_enum(request.args.get('period', '30d'),
                               list(freedom_score_service.PERIOD_DAYS.keys())) or '30d'

        dashboard = freedom_score_service.get_freedom_score(
            user_id,
            period=period,
            include_history=_flag('include_history'),
            include_trends=_flag('include_trends'),
        )
        return jsonify(dashboard)
    except Exception as e:
        return _server_error("Error in get_freedom_score", e)

@app.route('/api/freedom-score', methods=['POST'])
@limiter.limit(RATE_LIMITS['moderate'])
def record_freedom_score():
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        data = request.get_json()
        if not data:
            return jsonify({"error": "No data provided"}), 400

        result = freedom_score_service.record_freedom_score(
            user_id,
            data.get('assessment_date'),
            data.get('scores'),
            method=sanitize_string(data.get('assessment_method'), max_length=50) or 'dashboard_update',
            notes=sanitize_string(data.get('notes'), max_length=2000) or None,
        )
        return jsonify(result), 201
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        return _server_error("Error in record_freedom_score", e)

# ---------------------------------------------------------------------------
# AI strategist
# ---------------------------------------------------------------------------

@app.route('/api/strategist/chat', methods=['POST'])
@limiter.limit(RATE_LIMITS['ai'])
def strategist_chat():
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        data = request.get_json()
        if not data:
            return jsonify({"error": "No data provided"}), 400

        freedom_score = data.get('freedom_score')
        if freedom_score is not None and not isinstance(freedom_score, dict):
            return jsonify({"error": "freedom_score must be an object"}), 400

        result = strategist_service.chat(
            user_id,
            sanitize_string(data.get('message')),
            freedom_score=freedom_score,
            is_fresh_start=bool(data.get('is_fresh_start')),
            file_context=sanitize_string(data.get('file_context'), max_length=20000) or None,
            user_name=sanitize_string(data.get('user_name'), max_length=100) or None,
            personality=sanitize_string(data.get('personality'), max_length=50) or strategist_service.DEFAULT_PERSONALITY,
        )
        return jsonify(result)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except StrategistUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception as e:
        return _server_error("Error in strategist_chat", e)

@app.route('/api/strategist/history', methods=['GET'])
@limiter.limit(RATE_LIMITS['standard'])
def get_strategist_history():
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        limit = validate_integer(request.args.get('limit', 50), min_value=1, max_value=200) or 50
        return jsonify({"history": strategist_service.get_chat_history(user_id, limit=limit)})
    except Exception as e:
        return _server_error("Error in get_strategist_history", e)

@app.route('/api/strategist/history', methods=['DELETE'])
@limiter.limit(RATE_LIMITS['moderate'])
def clear_strategist_history():
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        deleted = strategist_service.clear_chat_history(user_id)
        return jsonify({"success": True, "deleted": deleted})
    except Exception as e:
        return _server_error("Error in clear_strategist_history", e)

@app.route('/api/strategist/tts', methods=['POST'])
@limiter.limit(RATE_LIMITS['ai'])
def strategist_text_to_speech():
    """Render a strategist reply as MP3 audio"""
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        data = request.get_json()
        if not data:
            return jsonify({"error": "No data provided"}), 400

        audio = strategist_service.text_to_speech(
            sanitize_string(data.get('text')),
            voice=data.get('voice') or strategist_service.DEFAULT_VOICE,
        )
        return send_file(io.BytesIO(audio), mimetype='audio/mpeg', download_name='speech.mp3')
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except StrategistUnavailable as e:
        return jsonify({"error": str(e)}), 503
    except Exception as e:
        return _server_error("Error in strategist_text_to_speech", e)

# ---------------------------------------------------------------------------
# Business context
# ---------------------------------------------------------------------------

@app.route('/api/business-context', methods=['GET'])
def get_business_context():
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        return jsonify({"context": business_context_service.get_business_context(user_id)})
    except Exception as e:
        return _server_error("Error in get_business_context", e)

@app.route('/api/business-context', methods=['POST'])
@limiter.limit(RATE_LIMITS['moderate'])
def save_business_context():
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        data = request.get_json()
        if not data:
            return jsonify({"error": "No data provided"}), 400

        context = business_context_service.save_business_context(user_id, data)
        return jsonify({"success": True, "context": context})
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        return _server_error("Error in save_business_context", e)

# ---------------------------------------------------------------------------
# Template library
# ---------------------------------------------------------------------------

@app.route('/api/templates', methods=['GET'])
def list_templates():
    try:
        category = sanitize_string(request.args.get('category'), max_length=100) or None
        search = sanitize_string(request.args.get('search'), max_length=200) or None
        return jsonify({"templates": template_service.list_templates(category=category, search=search)})
    except Exception as e:
        return _server_error("Error in list_templates", e)

@app.route('/api/templates', methods=['POST'])
@limiter.limit(RATE_LIMITS['moderate'])
def add_template():
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        data = request.get_json()
        if not data:
            return jsonify({"error": "No data provided"}), 400

        template = template_service.add_template(
            data.get('template_name'),
            category=data.get('category'),
            content=data.get('content'),
            resource_url=data.get('resource_url'),
        )
        return jsonify(template), 201
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        return _server_error("Error in add_template", e)

@app.route('/api/templates/<template_id>', methods=['GET'])
def get_template(template_id):
    try:
        return jsonify(template_service.get_template(template_id))
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        return _server_error("Error in get_template", e)

@app.route('/api/templates/<template_id>', methods=['PUT'])
@limiter.limit(RATE_LIMITS['moderate'])
def update_template(template_id):
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        data = request.get_json()
        if not data:
            return jsonify({"error": "No data provided"}), 400

        return jsonify(template_service.update_template(template_id, data))
    except ValueError as e:
        status_code = 404 if 'not found' in str(e) else 400
        return jsonify({"error": str(e)}), status_code
    except Exception as e:
        return _server_error("Error in update_template", e)

@app.route('/api/templates/<template_id>', methods=['DELETE'])
@limiter.limit(RATE_LIMITS['moderate'])
def delete_template(template_id):
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        template_service.delete_template(template_id)
        return jsonify({"success": True})
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        return _server_error("Error in delete_template", e)

# ---------------------------------------------------------------------------
# Platform connections and OAuth
# ---------------------------------------------------------------------------

@app.route('/api/platform-connections', methods=['GET'])
@limiter.limit(RATE_LIMITS['standard'])
def list_platform_connections():
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        platform = request.args.get('platform') or None
        connections = platform_connection_service.list_connections(user_id, platform=platform)
        return jsonify({"connections": connections})
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        return _server_error("Error in list_platform_connections", e)

@app.route('/api/platform-connections', methods=['DELETE'])
@limiter.limit(RATE_LIMITS['moderate'])
def delete_platform_connection():
    """Disconnect by ?id= or every connection to ?platform="""
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        deleted = platform_connection_service.delete_connection(
            user_id,
            connection_id=request.args.get('id') or None,
            platform=request.args.get('platform') or None,
        )
        return jsonify({"success": True, "deleted": deleted})
    except ValueError as e:
        status_code = 404 if 'not found' in str(e) else 400
        return jsonify({"error": str(e)}), status_code
    except Exception as e:
        return _server_error("Error in delete_platform_connection", e)

@app.route('/api/platform-connections', methods=['PUT'])
@limiter.limit(RATE_LIMITS['moderate'])
def update_platform_connection():
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        data = request.get_json()
        if not data:
            return jsonify({"error": "No data provided"}), 400

        connection = platform_connection_service.set_connection_active(
            user_id, data.get('id'), data.get('is_active')
        )
        return jsonify({"success": True, "connection": connection})
    except ValueError as e:
        status_code = 404 if 'not found' in str(e) else 400
        return jsonify({"error": str(e)}), status_code
    except Exception as e:
        return _server_error("Error in update_platform_connection", e)

@app.route('/api/oauth/<platform>/authorize', methods=['GET'])
@limiter.limit(RATE_LIMITS['strict'])
def oauth_authorize(platform):
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        auth_url, state = oauth_service.get_authorization_url(user_id, platform)
        return jsonify({"auth_url": auth_url, "state": state})
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        return _server_error("Error in oauth_authorize", e)

@app.route('/api/oauth/<platform>/callback', methods=['GET'])
@limiter.limit(RATE_LIMITS['strict'])
def oauth_callback(platform):
    """Provider redirect target; sends the browser back to the frontend"""
    connections_url = f"{oauth_service.FRONTEND_URL}/connections"

    provider_error = request.args.get('error')
    if provider_error:
        log_warning(f"{platform} OAuth denied: {provider_error}")
        return redirect(f"{connections_url}?{urlencode({'error': provider_error, 'platform': platform})}")

    try:
        oauth_service.handle_callback(
            platform,
            request.args.get('state'),
            code=request.args.get('code'),
        )
        return redirect(f"{connections_url}?{urlencode({'connected': platform})}")
    except ValueError as e:
        return redirect(f"{connections_url}?{urlencode({'error': str(e), 'platform': platform})}")
    except Exception as e:
        log_error(f"Error in {platform} OAuth callback", error=e, traceback_str=traceback.format_exc())
        return redirect(f"{connections_url}?{urlencode({'error': 'connection_failed', 'platform': platform})}")

@app.route('/api/oauth/<platform>/callback', methods=['POST'])
@limiter.limit(RATE_LIMITS['strict'])
def oauth_token_callback(platform):
    """Frontend-completed flows (Trello posts the token from the redirect fragment)"""
    try:
        data = request.get_json()
        if not data:
            return jsonify({"error": "No data provided"}), 400

        connection = oauth_service.handle_callback(
            platform,
            data.get('state'),
            code=data.get('code'),
            token=data.get('token'),
        )
        return jsonify({"success": True, "connection": connection})
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        return _server_error("Error in oauth_token_callback", e)

# ---------------------------------------------------------------------------
# Workflow export
# ---------------------------------------------------------------------------

@app.route('/api/export/<platform>', methods=['POST'])
@limiter.limit(RATE_LIMITS['strict'])
def export_workflow(platform):
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        data = request.get_json()
        if not data:
            return jsonify({"error": "No data provided"}), 400

        export_config = data.get('export_config') or {}
        platform_settings = data.get('platform_settings') or {}
        if not isinstance(export_config, dict) or not isinstance(platform_settings, dict):
            return jsonify({"error": "export_config and platform_settings must be objects"}), 400

        result = export_service.export_workflow(
            user_id,
            platform,
            sanitize_string(data.get('workflow_id'), max_length=100),
            export_config=export_config,
            platform_settings=platform_settings,
        )
        return jsonify({"success": True, **result})
    except ConnectionRequired as e:
        return jsonify({
            "error": f"No active {e.platform} connection found. Please connect to {e.platform} first.",
            "requires_connection": True,
            "platform": e.platform,
        }), 401
    except ValueError as e:
        status_code = 404 if 'not found' in str(e) else 400
        return jsonify({"error": str(e)}), status_code
    except Exception as e:
        return _server_error(f"Error exporting to {platform}", e)

@app.route('/api/export/history', methods=['GET'])
@limiter.limit(RATE_LIMITS['standard'])
def get_export_history():
    try:
        user_id = get_user_id()
        if not user_id:
            return jsonify({"error": "User ID required"}), 401

        limit = validate_integer(request.args.get('limit', 20), min_value=1, max_value=100) or 20
        return jsonify({"exports": export_service.get_export_history(user_id, limit=limit)})
    except Exception as e:
        return _server_error("Error in get_export_history", e)


log_info("Freedom Suite API initialized")

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    debug = os.environ.get('FLASK_ENV') == 'development'
    app.run(host='0.0.0.0', port=port, debug=debug)
