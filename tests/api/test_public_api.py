"""
API tests for the public rendering, validate and submit endpoints.
"""

from fastapi.testclient import TestClient

from form_plant.constants.error import ERROR
from form_plant.models.submission_model import Submission
from form_plant.services.submission_record_service import decode_payload

FIELDS = [
    {"type": "text", "name": "name", "label": "Name", "required": True},
    {"type": "email", "name": "email", "label": "Email", "required": True},
    {"type": "checkbox", "name": "topics", "label": "Topics", "options": ["sales", "support"]},
    {"type": "date_select", "name": "visit", "label": "Visit date"},
    {"type": "file", "name": "photo", "label": "Photo", "allowed_types": ["png"]},
]


class TestRendering:
    """Config and HTML endpoints"""

    def test_config(self, client, make_form):
        """Test the client configuration payload"""
        form = make_form(FIELDS, settings={"use_confirmation": True})

        body = client.get(f"/public/forms/{form.id}/config").json()

        assert body["success"] is True
        assert body["data"]["id"] == form.id
        assert body["data"]["useConfirmation"] is True
        assert body["recaptcha"]["enabled"] is False

    def test_html_with_url_params(self, client, make_form):
        """Test the rendered form and URL prefill"""
        form = make_form(
            [{"type": "email", "name": "email", "label": "Email", "default": "{email}"}],
            settings={"allow_url_params": True},
        )

        response = client.get(f"/public/forms/{form.id}/html?email=jane@example.com")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert 'value="jane@example.com"' in response.text

    def test_missing_and_trashed_forms(self, client, make_form):
        """Test both read as not found"""
        trashed = make_form(FIELDS, status="trash")

        missing = client.get("/public/forms/999/config")

        assert missing.status_code == 404
        assert missing.json() == {"success": False, "message": ERROR.FORM_NOT_FOUND}
        assert client.get(f"/public/forms/{trashed.id}/html").status_code == 404

    def test_unexpected_failure_keeps_success_flag(self, client, make_form, monkeypatch):
        """Test an internal error on a visitor endpoint is a generic failure result"""
        form = make_form(FIELDS)

        def explode(*args, **kwargs):
            raise RuntimeError("template store offline")

        monkeypatch.setattr("form_plant.routes.public_router.client_config", explode)

        response = TestClient(client.app, raise_server_exceptions=False).get(f"/public/forms/{form.id}/config")

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": ERROR.INTERNAL_ERROR}


class TestSubmit:
    """POST /public/forms/{id}/submit"""

    def test_json_submit(self, client, make_form, test_db):
        """Test a JSON body is accepted and stored"""
        form = make_form(FIELDS)

        response = client.post(
            f"/public/forms/{form.id}/submit",
            json={"data": {"name": "Jane", "email": "jane@example.com", "topics": ["sales"]}},
            headers={"User-Agent": "api-test", "X-Forwarded-For": "203.0.113.77"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Submission completed"

        row = test_db.query(Submission).one()
        payload = decode_payload(row.submission_data)
        assert payload.form_data["topics"] == ["sales"]
        assert payload.ip_address == "203.0.113.77"
        assert payload.user_agent == "api-test"

    def test_multipart_submit(self, client, make_form, test_db, storage, sample_files):
        """Test browser-style keys and a file upload"""
        form = make_form(FIELDS)

        response = client.post(
            f"/public/forms/{form.id}/submit",
            data={
                "name": "Jane",
                "email": "jane@example.com",
                "topics[]": ["sales", "support"],
                "visit[year]": "2024",
                "visit[month]": "06",
                "visit[day]": "15",
            },
            files={"photo": ("me.png", sample_files["png"], "image/png")},
        )

        assert response.status_code == 200, response.text
        payload = decode_payload(test_db.query(Submission).one().submission_data)
        assert payload.form_data["topics"] == ["sales", "support"]
        assert payload.form_data["visit"] == "2024-06-15"
        assert payload.form_data["photo"]["filename"] == "me.png"
        assert len(storage.files) == 1

    def test_validation_errors(self, client, make_form):
        """Test field errors come back with a 400"""
        form = make_form(FIELDS)

        response = client.post(f"/public/forms/{form.id}/submit", json={"data": {"email": "bad"}})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == ERROR.VALIDATION_FAILED
        assert set(body["errors"]) == {"name", "email"}

    def test_malformed_json(self, client, make_form):
        """Test a body that is not a submission object"""
        form = make_form(FIELDS)

        response = client.post(
            f"/public/forms/{form.id}/submit",
            content=b"[1, 2",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"success": False, "message": ERROR.INVALID_REQUEST}

    def test_non_integer_form_id(self, client):
        """Test a bad path parameter still answers with the success flag"""
        response = client.post("/public/forms/abc/submit", json={"data": {}})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["message"] == ERROR.INVALID_REQUEST
        assert "form_id" in body["errors"]
        assert "statusCode" not in body

    def test_unknown_form(self, client):
        """Test submitting to a missing form"""
        response = client.post("/public/forms/4242/submit", json={"data": {}})

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": ERROR.FORM_NOT_FOUND}


class TestConfirmation:
    """validate then submit"""

    def test_preview_then_finalize_with_token(self, client, make_form, test_db):
        """Test the token from validate is accepted by submit"""
        form = make_form(FIELDS, settings={"use_confirmation": True, "confirmation_token_required": True})
        data = {"name": "Jane", "email": "jane@example.com"}

        preview = client.post(f"/public/forms/{form.id}/validate", json={"data": data})

        assert preview.status_code == 200
        preview_body = preview.json()
        assert preview_body["message"] == "Validation successful"
        assert "fplant-confirmation" in preview_body["confirmation_html"]
        assert test_db.query(Submission).count() == 0

        missing = client.post(f"/public/forms/{form.id}/submit", json={"data": data})
        assert missing.status_code == 400
        assert missing.json()["message"] == ERROR.CONFIRMATION_TOKEN_INVALID

        changed = client.post(
            f"/public/forms/{form.id}/submit",
            json={"data": {**data, "name": "John"}, "confirmation_token": preview_body["confirmation_token"]},
        )
        assert changed.status_code == 409

        final = client.post(
            f"/public/forms/{form.id}/submit",
            json={"data": data, "confirmation_token": preview_body["confirmation_token"]},
        )
        assert final.status_code == 200
        assert test_db.query(Submission).count() == 1

    def test_multipart_token_field(self, client, make_form):
        """Test the token can travel as a form field"""
        form = make_form(
            [{"type": "text", "name": "name", "label": "Name", "required": True}],
            settings={"use_confirmation": True, "confirmation_token_required": True},
        )
        token = client.post(f"/public/forms/{form.id}/validate", data={"name": "Jane"}).json()["confirmation_token"]

        response = client.post(
            f"/public/forms/{form.id}/submit",
            data={"name": "Jane", "confirmation_token": token, "form_id": str(form.id)},
        )

        assert response.status_code == 200
