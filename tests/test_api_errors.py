from types import SimpleNamespace

import pytest
from flask import Flask, abort
from jinja2 import DictLoader

from idp_broker.api.errors import register_error_handlers


@pytest.fixture()
def flask_client():
    app = Flask(__name__)
    app.config["TESTING"] = True
    app.jinja_loader = DictLoader({"errors/broker_error.html": "{{ title }} - {{ message }}"})
    app.logger = SimpleNamespace(error=lambda *args, **kwargs: None)

    register_error_handlers(app)

    @app.route("/crash")
    def crash():
        raise RuntimeError("boom")

    @app.route("/bad")
    def bad():
        abort(400, "invalid payload")

    with app.test_client() as client:
        yield client


def test_unhandled_exception_json_payload_hides_detail(flask_client):
    response = flask_client.get("/crash", headers={"Accept": "application/json"})
    assert response.status_code == 500
    payload = response.get_json()
    assert payload == {"error": "Internal Server Error", "message": "An unexpected error occurred"}


def test_unhandled_exception_html_page(flask_client):
    response = flask_client.get("/crash", headers={"Accept": "text/html"})
    assert response.status_code == 500
    body = response.get_data(as_text=True)
    assert "Internal Server Error" in body
    assert "boom" not in body


def test_bad_request_json_message(flask_client):
    response = flask_client.get("/bad", headers={"Accept": "application/json"})
    assert response.status_code == 400
    assert response.get_json() == {"error": "Bad Request", "message": "invalid payload"}


def test_bad_request_html_uses_template(flask_client):
    response = flask_client.get("/bad", headers={"Accept": "text/html"})
    assert response.status_code == 400
    assert response.get_data(as_text=True) == "Bad Request - invalid payload"


def test_not_found_json(flask_client):
    response = flask_client.get("/missing", headers={"Accept": "application/json"})
    assert response.status_code == 404
    assert response.get_json()["error"] == "Not Found"
