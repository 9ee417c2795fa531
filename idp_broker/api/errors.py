"""Error handlers for the application."""
from flask import jsonify, render_template, request
from werkzeug.exceptions import HTTPException

ERROR_TEMPLATE = "errors/broker_error.html"


def register_error_handlers(app):
    """Register error handlers with the Flask app."""

    @app.errorhandler(400)
    def bad_request(error):
        """Handle 400 Bad Request errors."""
        message = getattr(error, "description", None) or "Invalid request"
        if _wants_json():
            return jsonify({"error": "Bad Request", "message": str(message)}), 400
        return render_template(ERROR_TEMPLATE, title="Bad Request", message=message), 400

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 Not Found errors."""
        if _wants_json():
            return jsonify({"error": "Not Found", "message": "Resource not found"}), 404
        return render_template(ERROR_TEMPLATE, title="Not Found", message="Resource not found"), 404

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 Internal Server Error."""
        app.logger.error(f"Internal error: {error}", exc_info=True)
        return _internal_error_response(app)

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        # Pass through HTTP errors
        if isinstance(error, HTTPException):
            return error

        app.logger.error(f"Unhandled exception: {error}", exc_info=True)
        return _internal_error_response(app)


def _internal_error_response(app):
    import traceback

    if _wants_json():
        return jsonify({"error": "Internal Server Error", "message": "An unexpected error occurred"}), 500

    # Show traceback ONLY in debug/demo mode
    show_details = app.debug or app.config.get("DEMO_MODE", False)
    return render_template(
        ERROR_TEMPLATE,
        title="Internal Server Error",
        message="An unexpected error occurred",
        error_message=traceback.format_exc() if show_details else None,
        show_debug=show_details,
    ), 500


def _wants_json():
    """Check if the client wants a JSON response."""
    return request.accept_mimetypes.accept_json and \
           not request.accept_mimetypes.accept_html
