"""API routes for Feedback Collector."""

import logging

from flask import Blueprint, g, jsonify, request

from .. import get_app_config
from ..exceptions import AggregationError, JobCancelled
from ..models.feedback import Feedback, Sentiment
from ..models.report_run import ReportRun
from ..services.aggregator import Aggregator
from ..services.asana_client import AsanaClient
from ..services.job_context import JobContext
from ..services.report_store import SQLAlchemyReportStore

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__, url_prefix="/api")


@api_bp.route("/health")
def health():
    """Health check with a JSON body, for API clients."""
    return jsonify({"status": "healthy"})


@api_bp.route("/run-analysis", methods=["POST"])
def run_analysis():
    """Run the daily feedback aggregation.

    This endpoint is called by Cloud Scheduler once a day, or can be
    triggered manually. Calling it again on the same day is a no-op.
    """
    config = get_app_config()

    # Validate required configuration
    missing = config.validate_analysis()
    if missing:
        return jsonify({
            "success": False,
            "error": f"Missing configuration: {', '.join(missing)}",
        }), 500

    asana = AsanaClient(
        token=config.ASANA_TOKEN,
        workspace_gid=config.ASANA_WORKSPACE_GID,
        project_gid=config.ASANA_PROJECT_GID,
        base_url=config.ASANA_BASE_URL,
        timeout=config.ASANA_TIMEOUT_SECONDS,
    )
    context = JobContext(timeout=config.ANALYSIS_TIMEOUT_SECONDS)
    aggregator = Aggregator(
        store=SQLAlchemyReportStore(g.db, context=context),
        task_client=asana,
    )

    try:
        result = aggregator.run(context)
    except JobCancelled as e:
        logger.warning(f"Feedback analysis did not complete: {e}")
        return jsonify({
            "success": False,
            "error": str(e),
        }), 503
    except AggregationError as e:
        logger.error(f"Feedback analysis failed: {e}", exc_info=True)
        return jsonify({
            "success": False,
            "error": str(e),
        }), 500

    logger.info(f"Analysis endpoint called: {result.to_dict()}")

    response = result.to_dict()
    response["success"] = True
    return jsonify(response)


@api_bp.route("/reports")
def reports():
    """Get recent report runs."""
    limit = request.args.get("limit", 20, type=int)
    limit = min(limit, 100)  # Cap at 100

    runs = (
        g.db.query(ReportRun)
        .order_by(ReportRun.report_date.desc())
        .limit(limit)
        .all()
    )

    return jsonify({
        "reports": [r.to_dict() for r in runs],
    })


@api_bp.route("/stats")
def stats():
    """Get feedback statistics."""
    from sqlalchemy import func

    total_feedback = g.db.query(func.count(Feedback.id)).scalar() or 0
    positive_count = (
        g.db.query(func.count(Feedback.id))
        .filter(Feedback.sentiment == Sentiment.POSITIVE.value)
        .scalar()
        or 0
    )
    negative_count = (
        g.db.query(func.count(Feedback.id))
        .filter(Feedback.sentiment == Sentiment.NEGATIVE.value)
        .scalar()
        or 0
    )
    report_count = g.db.query(func.count(ReportRun.id)).scalar() or 0

    return jsonify({
        "total_feedback": total_feedback,
        "positive_count": positive_count,
        "negative_count": negative_count,
        "report_count": report_count,
    })
