"""Social identity-provider broker.

To use the Flask app:
    from idp_broker.flask_app import create_app

To drive a callback without Flask:
    from idp_broker.core.callback import CallbackStateMachine
"""
# Note: We don't import flask_app by default so the core state machine
# stays usable without a Flask application context
