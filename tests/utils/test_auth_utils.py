"""
Unit tests for JWT helpers and confirmation tokens.
"""

from form_plant.utils.auth_utils import (
    data_digest,
    generate_confirmation_token,
    generate_jwt,
    verify_confirmation_token,
    verify_jwt,
)

SECRET = "unit-test-secret"
ALGORITHM = "HS256"


def issue(form_id, data, expire_minutes=5, secret=SECRET):
    return generate_confirmation_token(form_id, data, expire_minutes=expire_minutes, secret_key=secret, algorithm=ALGORITHM)


def check(token, form_id, data):
    return verify_confirmation_token(token, form_id, data, secret_key=SECRET, algorithm=ALGORITHM)


class TestJwt:
    """generate_jwt / verify_jwt"""

    def test_round_trip(self):
        """Test claims survive encoding"""
        token = generate_jwt({"id": "u1"}, expire_minutes=5, secret_key=SECRET, algorithm=ALGORITHM)

        assert verify_jwt(token, SECRET, ALGORITHM)["id"] == "u1"

    def test_expired_or_foreign(self):
        """Test expired tokens and other keys are rejected"""
        expired = generate_jwt({"id": "u1"}, expire_minutes=-1, secret_key=SECRET, algorithm=ALGORITHM)
        foreign = generate_jwt({"id": "u1"}, expire_minutes=5, secret_key="other", algorithm=ALGORITHM)

        assert verify_jwt(expired, SECRET, ALGORITHM) is None
        assert verify_jwt(foreign, SECRET, ALGORITHM) is None
        assert verify_jwt("not.a.token", SECRET, ALGORITHM) is None


class TestConfirmationToken:
    """Tokens binding a form and its confirmed data"""

    def test_digest_ignores_scalar_types_and_key_order(self):
        """Test 5 and "5" and reordered keys digest the same"""
        assert data_digest({"a": 5, "b": ["x", None]}) == data_digest({"b": ["x", ""], "a": "5"})
        assert data_digest({"a": "5"}) != data_digest({"a": "6"})

    def test_valid(self):
        """Test the same form and data verify"""
        data = {"name": "Jane", "tags": ["a"]}

        assert check(issue(3, data), 3, dict(data)) is None

    def test_reasons(self):
        """Test each failure reason"""
        data = {"name": "Jane"}
        token = issue(3, data)

        assert check(None, 3, data) == "missing"
        assert check("", 3, data) == "missing"
        assert check("junk", 3, data) == "invalid"
        assert check(token, 4, data) == "invalid"
        assert check(issue(3, data, expire_minutes=-1), 3, data) == "invalid"
        assert check(issue(3, data, secret="other"), 3, data) == "invalid"
        assert check(token, 3, {"name": "John"}) == "changed"

    def test_login_token_is_not_a_confirmation(self):
        """Test an admin token cannot stand in for a confirmation"""
        login = generate_jwt({"id": "u1", "form_id": 3}, expire_minutes=5, secret_key=SECRET, algorithm=ALGORITHM)

        assert check(login, 3, {}) == "invalid"
