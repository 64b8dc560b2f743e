"""Flask API server for queueing job applications."""

import logging

from flask import Flask, request, jsonify
from flask_cors import CORS

from config.settings import FLASK_PORT, FLASK_DEBUG, LOG_LEVEL
from src.errors import DuplicateApplicationError, QueueUnavailableError, ValidationError
from src.services.ai_provider import AIProvider
from src.services.application_repository import ApplicationRepository
from src.services.application_service import ApplicationService
from src.services.apply_service import ApplyService, DailyLimitExceededError
from src.services.job_queue import JobQueue

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create Flask app
app = Flask(__name__)
CORS(app)  # Enable CORS for the dashboard

# Service singletons, created on first use
application_service = None
job_queue = None
apply_service = None
ai_provider = None


def get_application_service() -> ApplicationService:
    global application_service
    if application_service is None:
        repository = ApplicationRepository()
        repository.create_schema()
        application_service = ApplicationService(repository)
    return application_service


def get_job_queue() -> JobQueue:
    global job_queue
    if job_queue is None:
        logger.info("Connecting to job queue")
        job_queue = JobQueue()
        job_queue.create_schema()
    return job_queue


def get_apply_service() -> ApplyService:
    global apply_service
    if apply_service is None:
        apply_service = ApplyService(get_application_service(), get_job_queue())
    return apply_service


def get_ai_provider() -> AIProvider:
    global ai_provider
    if ai_provider is None:
        ai_provider = AIProvider.from_settings()
    return ai_provider


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint.

    Returns:
        JSON response with database, queue and AI provider status. 503 when
        the database or the queue cannot be reached.
    """
    checks = {}

    try:
        get_application_service().ping()
        checks["database"] = "connected"
    except Exception as error:
        logger.error(f"Database health check failed: {error}")
        checks["database"] = "disconnected"

    try:
        checks["queue"] = "connected" if get_job_queue().ping() else "disconnected"
    except Exception as error:
        logger.error(f"Queue health check failed: {error}")
        checks["queue"] = "disconnected"

    try:
        checks["ai"] = get_ai_provider().get_status()
    except Exception as error:
        logger.error(f"AI provider status failed: {error}")
        checks["ai"] = {"error": str(error)}

    healthy = checks["database"] == "connected" and checks["queue"] == "connected"
    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "service": "apply-agent",
        "checks": checks,
    }), 200 if healthy else 503


@app.route('/api/apply/bulk', methods=['POST'])
def bulk_apply():
    """Queue several applications for one user.

    Request JSON:
        {
            "user_id": "...",
            "cv_snapshot": {...},
            "resume_asset_ref": "https://.../resume.pdf",
            "jobs": [{"job_id": "...", "job_posting": {...}}]
        }

    Returns:
        Per-job results; 429 once the daily limit is used up
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"success": False, "error": "No JSON data provided"}), 400

    try:
        outcome = get_apply_service().bulk_apply(
            data.get("user_id"),
            data.get("cv_snapshot"),
            data.get("jobs"),
            data.get("resume_asset_ref") or "",
        )
    except ValidationError as error:
        return jsonify({"success": False, "error": str(error)}), 400
    except DailyLimitExceededError as error:
        return jsonify({
            "success": False,
            "error": str(error),
            "daily_limit": error.daily_limit,
            "applied_today": error.applied_today,
        }), 429

    logger.info(f"Bulk apply for user {data.get('user_id')}: {outcome['applied']} queued")
    return jsonify({"success": True, **outcome}), 200


@app.route('/api/apply/<job_id>', methods=['POST'])
def apply_to_job(job_id: str):
    """Queue one application.

    Request JSON:
        {
            "user_id": "...",
            "cv_snapshot": {"full_name": "...", "email": "...", ...},
            "job_posting": {"title": "...", "company": "...", "application_url": "..."},
            "resume_asset_ref": "https://.../resume.pdf",
            "delay_ms": 5000,
            "priority": 1
        }

    Returns:
        200 with the application id, 400 on bad input, 409 on a duplicate,
        503 when the queue is down
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"success": False, "error": "No JSON data provided"}), 400

    options = {key: data[key] for key in ("delay_ms", "priority") if data.get(key) is not None}

    try:
        outcome = get_apply_service().apply(
            data.get("user_id"),
            job_id,
            data.get("cv_snapshot"),
            data.get("job_posting"),
            data.get("resume_asset_ref") or "",
            **options,
        )
    except ValidationError as error:
        return jsonify({"success": False, "error": str(error)}), 400
    except DuplicateApplicationError as error:
        return jsonify({
            "success": False,
            "error": str(error),
            "application_id": error.application_id,
            "status": error.status,
        }), 409
    except QueueUnavailableError as error:
        logger.error(f"Queue unavailable while applying to {job_id}: {error}")
        return jsonify({
            "success": False,
            "error": "Queue system unavailable",
            "application_id": getattr(error, "application_id", None),
        }), 503

    return jsonify({
        "success": True,
        "message": "Application queued",
        **outcome,
    }), 200


@app.route('/api/apply/status/<application_id>', methods=['GET'])
def get_application_status(application_id: str):
    """Return one application record."""
    record = get_application_service().get(application_id)
    if record is None:
        return jsonify({"success": False, "error": "Application not found"}), 404
    return jsonify({"success": True, "application": record.to_dict()}), 200


@app.route('/api/apply/user/<user_id>', methods=['GET'])
def list_user_applications(user_id: str):
    """Return a user's applications, newest first."""
    records = get_application_service().list_for_user(user_id)
    return jsonify({
        "success": True,
        "count": len(records),
        "applications": [record.to_dict() for record in records],
    }), 200


@app.route('/api/queue/stats', methods=['GET'])
def queue_stats():
    """Return job counts per queue state."""
    queue = get_job_queue()
    try:
        counts = queue.get_job_counts()
    except Exception as error:
        queue.error_log.error("Error getting queue stats: %s", error)
        return jsonify({"success": False, "error": "Queue system unavailable"}), 503
    return jsonify({"success": True, "queue": queue.name, "counts": counts}), 200


@app.errorhandler(404)
def not_found(error):
    """Handle 404 errors."""
    return jsonify({
        "error": "Endpoint not found",
        "success": False
    }), 404


@app.errorhandler(500)
def internal_error(error):
    """Handle 500 errors."""
    logger.error(f"Internal server error: {error}")
    return jsonify({
        "error": "Internal server error",
        "success": False
    }), 500


def run_server():
    """Run the Flask server."""
    # Check critical configuration
    from config.settings import DATABASE_URL, OPENAI_API_KEY, PERPLEXITY_API_KEY

    logger.info("=" * 60)
    logger.info("Configuration Check:")
    logger.info(f"OpenAI API Key: {'✓ Configured' if OPENAI_API_KEY else '✗ MISSING'}")
    logger.info(f"Perplexity API Key: {'✓ Configured' if PERPLEXITY_API_KEY else '✗ MISSING'}")
    logger.info(f"Database: {DATABASE_URL}")
    logger.info("=" * 60)

    if not OPENAI_API_KEY and not PERPLEXITY_API_KEY:
        logger.warning("No AI provider is configured! Generic form analysis will fail.")

    get_apply_service()

    # Log registered routes for debugging
    logger.info("=" * 60)
    logger.info("Registered Routes:")
    for rule in app.url_map.iter_rules():
        methods = ','.join(sorted(rule.methods - {'HEAD', 'OPTIONS'}))
        logger.info(f"  {rule.rule:50s} [{methods}]")
    logger.info("=" * 60)

    logger.info(f"Starting Flask server on port {FLASK_PORT}")
    app.run(
        host='0.0.0.0',
        port=FLASK_PORT,
        debug=FLASK_DEBUG,
        threaded=True
    )


if __name__ == '__main__':
    run_server()
