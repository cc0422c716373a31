"""
Unit tests for request body folding and request metadata helpers.
"""

from starlette.requests import Request

from form_plant.utils.form_data_utils import ParsedSubmission, fold_form_keys, submission_context
from form_plant.utils.request_utils import get_client_ip


def make_request(headers=None, client=("198.51.100.20", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/public/forms/1/submit",
        "headers": [(key.lower().encode(), value.encode()) for key, value in (headers or {}).items()],
        "client": client,
        "query_string": b"",
    }
    return Request(scope)


class TestFoldFormKeys:
    """Browser form key conventions"""

    def test_plain_list_and_parts(self):
        """Test x, x[] and x[part]"""
        data = fold_form_keys([
            ("name", "Jane"),
            ("tags[]", "a"),
            ("tags[]", "b"),
            ("dob[year]", "2000"),
            ("dob[month]", "01"),
            ("dob[day]", "31"),
        ])

        assert data == {
            "name": "Jane",
            "tags": ["a", "b"],
            "dob": {"year": "2000", "month": "01", "day": "31"},
        }

    def test_parts_win_over_plain(self):
        """Test the hidden joined input does not replace the parts"""
        data = fold_form_keys([("dob[year]", "2000"), ("dob", "2000-01-31")])

        assert data["dob"] == {"year": "2000"}

    def test_odd_keys_kept_verbatim(self):
        """Test keys outside the convention pass through"""
        assert fold_form_keys([("a[b][c]", "1")]) == {"a[b][c]": "1"}


class TestRequestMetadata:
    """Client address and submission context"""

    def test_forwarded_chain_uses_leftmost(self):
        """Test proxies are honoured in order"""
        request = make_request({"X-Forwarded-For": "203.0.113.1, 10.0.0.1"})

        assert get_client_ip(request) == "203.0.113.1"

    def test_cloudflare_header_wins(self):
        """Test CF-Connecting-IP takes precedence"""
        request = make_request({"CF-Connecting-IP": "192.0.2.44", "X-Forwarded-For": "203.0.113.1"})

        assert get_client_ip(request) == "192.0.2.44"

    def test_invalid_header_falls_back(self):
        """Test garbage headers fall through to the socket peer"""
        assert get_client_ip(make_request({"X-Real-IP": "nonsense"})) == "198.51.100.20"
        assert get_client_ip(make_request(client=None)) == "0.0.0.0"

    def test_submission_context(self):
        """Test headers and the captcha token land in the context"""
        request = make_request({"User-Agent": "pytest-agent", "Referer": "https://shop.example.com/contact"})

        context = submission_context(request, ParsedSubmission(recaptcha_token="tok"))

        assert context.ip_address == "198.51.100.20"
        assert context.user_agent == "pytest-agent"
        assert context.referrer == "https://shop.example.com/contact"
        assert context.recaptcha_token == "tok"
        assert context.user_id is None
