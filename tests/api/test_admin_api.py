"""
API tests for the authenticated form and submission endpoints.
"""

from form_plant.config.env_config import settings
from form_plant.schema.submission_schema import SubmissionPayload
from form_plant.services.submission_record_service import insert_submission
from form_plant.utils.auth_utils import generate_confirmation_token, generate_jwt

FIELDS = [
    {"type": "text", "name": "name", "label": "Name", "required": True},
    {"type": "email", "name": "email", "label": "Email"},
]


class TestAuthentication:
    """auth_middleware on admin routes"""

    def test_missing_token(self, client):
        """Test requests without a bearer token are rejected"""
        response = client.get("/forms")

        assert response.status_code == 401
        assert response.json()["statusCode"] == 401

    def test_garbage_and_expired_tokens(self, client):
        """Test unreadable and expired tokens are rejected"""
        expired = generate_jwt({"id": "a"}, expire_minutes=-1, secret_key=settings.SECRET_KEY, algorithm=settings.ALGORITHM)

        assert client.get("/forms", headers={"Authorization": "Bearer nope"}).status_code == 401
        assert client.get("/forms", headers={"Authorization": f"Bearer {expired}"}).status_code == 401

    def test_confirmation_token_is_not_a_login(self, client):
        """Test a token issued by the confirmation flow cannot authenticate"""
        token = generate_confirmation_token(1, {}, 5, settings.SECRET_KEY, settings.ALGORITHM)

        assert client.get("/forms", headers={"Authorization": f"Bearer {token}"}).status_code == 401

    def test_health_is_public(self, client):
        """Test the health check needs no token"""
        assert client.get("/health").json()["statusCode"] == 200


class TestFormEndpoints:
    """CRUD over /forms"""

    def test_create_get_update(self, client, admin_headers):
        """Test the happy path through create, read and update"""
        created = client.post("/forms", json={"title": "Contact", "fields": FIELDS}, headers=admin_headers)

        assert created.status_code == 200
        body = created.json()
        assert body["statusCode"] == 201
        form_id = body["data"]["id"]
        assert [field["name"] for field in body["data"]["fields"]] == ["name", "email"]

        fetched = client.get(f"/forms/{form_id}", headers=admin_headers).json()
        assert fetched["data"]["title"] == "Contact"
        assert fetched["data"]["status"] == "draft"

        updated = client.put(f"/forms/{form_id}", json={"status": "published"}, headers=admin_headers).json()
        assert updated["data"]["status"] == "published"

    def test_create_rejects_bad_fields(self, client, admin_headers):
        """Test invalid field definitions are a 400"""
        response = client.post(
            "/forms", json={"title": "Bad", "fields": [{"type": "text", "name": "bad name"}]}, headers=admin_headers,
        )

        assert response.status_code == 400
        assert "alphanumeric" in response.json()["message"]

    def test_request_validation_shape(self, client, admin_headers):
        """Test schema errors use the validation error envelope"""
        response = client.post("/forms", json={"fields": []}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed"
        assert response.json()["errors"][0]["field"] == "title"

    def test_meta_section(self, client, admin_headers, make_form):
        """Test saving one metadata section"""
        form = make_form(FIELDS)

        response = client.put(
            f"/forms/{form.id}/meta/spam_protection", json={"honeypot": True}, headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["spam_protection"]["honeypot"] is True

    def test_unknown_meta_section(self, client, admin_headers, make_form):
        """Test only known sections are addressable"""
        form = make_form(FIELDS)

        response = client.put(f"/forms/{form.id}/meta/secrets", json={}, headers=admin_headers)

        assert response.status_code == 400

    def test_trash_restore_duplicate_delete(self, client, admin_headers, make_form):
        """Test the lifecycle endpoints"""
        form = make_form(FIELDS)

        trashed = client.post(f"/forms/{form.id}/trash", headers=admin_headers).json()
        assert trashed["data"]["status"] == "trash"
        assert client.get("/forms", headers=admin_headers).json()["data"]["total"] == 0

        restored = client.post(f"/forms/{form.id}/restore", headers=admin_headers).json()
        assert restored["data"]["status"] == "published"

        copy = client.post(f"/forms/{form.id}/duplicate", headers=admin_headers).json()
        assert copy["data"]["title"] == "Contact (Copy)"

        assert client.delete(f"/forms/{form.id}", headers=admin_headers).status_code == 200
        assert client.get(f"/forms/{form.id}", headers=admin_headers).status_code == 404

    def test_list_pagination(self, client, admin_headers, make_form):
        """Test page and size parameters"""
        for index in range(3):
            make_form(FIELDS, title=f"Form {index}")

        listing = client.get("/forms?page=2&size=2", headers=admin_headers).json()["data"]

        assert listing["total"] == 3
        assert len(listing["forms"]) == 1


class TestSubmissionEndpoints:
    """/submissions"""

    def test_list_get_delete(self, client, admin_headers, make_form, test_db):
        """Test listing, reading and deleting stored submissions"""
        form = make_form(FIELDS)
        first = insert_submission(test_db, form.id, SubmissionPayload(form_data={"name": "Jane"}))
        insert_submission(test_db, form.id, SubmissionPayload(form_data={"name": "John"}))

        listing = client.get(f"/submissions?form_id={form.id}&search=Jane", headers=admin_headers).json()
        assert listing["data"]["total"] == 1

        single = client.get(f"/submissions/{first.id}", headers=admin_headers).json()
        assert single["data"]["data"] == {"name": "Jane"}

        assert client.delete(f"/submissions/{first.id}", headers=admin_headers).status_code == 200
        assert client.get(f"/submissions/{first.id}", headers=admin_headers).status_code == 404

    def test_bulk_delete(self, client, admin_headers, make_form, test_db):
        """Test deleting several ids at once"""
        form = make_form(FIELDS)
        ids = [insert_submission(test_db, form.id, SubmissionPayload()).id for _ in range(3)]

        response = client.post("/submissions/bulk-delete", json={"ids": ids[:2]}, headers=admin_headers)

        assert response.json()["data"]["deleted"] == 2
        assert client.post("/submissions/bulk-delete", json={"ids": []}, headers=admin_headers).status_code == 400

    def test_export_csv(self, client, admin_headers, make_form, test_db):
        """Test the CSV download"""
        form = make_form(FIELDS)
        insert_submission(test_db, form.id, SubmissionPayload(form_data={"name": "Jane", "email": "j@example.com"}))

        response = client.get(f"/submissions/export?form_id={form.id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.headers["content-disposition"].startswith('attachment; filename="form-plant-submissions-')
        assert response.content.startswith(b"\xef\xbb\xbf")
        assert "Jane" in response.content.decode("utf-8-sig")
