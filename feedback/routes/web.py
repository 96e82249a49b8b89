"""Feedback form routes."""

import logging

from flask import (
    Blueprint,
    abort,
    g,
    redirect,
    render_template,
    request,
    send_from_directory,
    url_for,
)
from sqlalchemy.exc import SQLAlchemyError

from .. import get_app_config
from ..models.feedback import Feedback, Sentiment

logger = logging.getLogger(__name__)

web_bp = Blueprint("web", __name__)


def contains_hidden_path(path: str) -> bool:
    """Check if any path component starts with a dot."""
    parts = path.replace("\\", "/").split("/")
    return any(part.startswith(".") and part != "." for part in parts)


def render_form_with_error(error: str):
    """Render the form with an error message and a 400 status."""
    config = get_app_config()
    return (
        render_template(
            "feedback.html",
            error=error,
            max_message_length=config.MAX_MESSAGE_LENGTH,
        ),
        400,
    )


@web_bp.route("/")
def index():
    """Show the feedback form."""
    config = get_app_config()
    return render_template(
        "feedback.html", max_message_length=config.MAX_MESSAGE_LENGTH
    )


@web_bp.route("/submit", methods=["POST"])
def submit():
    """Validate and store a feedback submission."""
    config = get_app_config()

    sentiment = Sentiment.parse(request.form.get("sentiment", ""))
    if sentiment is None:
        return render_form_with_error("Please select a valid sentiment")

    # Message is optional
    message = request.form.get("message", "").strip()
    if len(message) > config.MAX_MESSAGE_LENGTH:
        return render_form_with_error(
            f"Message is too long (max {config.MAX_MESSAGE_LENGTH} characters)"
        )

    try:
        feedback = Feedback.create(g.db, sentiment, message)
        g.db.commit()
    except SQLAlchemyError as e:
        g.db.rollback()
        logger.error(f"Failed to save feedback: {e}", exc_info=True)
        return render_form_with_error(
            "Failed to save feedback. Please try again. If the problem persists, "
            "please report this error to the system administrator."
        )

    logger.info(f"Feedback saved successfully: id={feedback.id} sentiment={sentiment.value}")

    return redirect(url_for("web.thanks"), code=303)


@web_bp.route("/thanks")
def thanks():
    """Thank you page."""
    return render_template("thanks.html")


@web_bp.route("/static/<path:filename>")
def static_files(filename: str):
    """Serve static files, refusing hidden files and directory traversal."""
    if contains_hidden_path(filename):
        logger.warning(f"Blocked request for hidden static path: {filename}")
        abort(404)

    config = get_app_config()
    return send_from_directory(config.STATIC_PATH, filename)


@web_bp.route("/health")
def health():
    """Plain text liveness check for load balancers."""
    return "OK\n", 200, {"Content-Type": "text/plain; charset=utf-8"}
