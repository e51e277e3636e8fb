"""
Tests for bearer token authentication.
"""

import time

import jwt
import pytest
from fastapi.testclient import TestClient
from structlog.testing import capture_logs

from books_api.auth import AuthGate, InvalidCredentialError, MissingCredentialError
from books_api.main import create_app
from books_api.models import Identity
from tests.conftest import TEST_SECRET


@pytest.fixture
def gate():
    """Auth gate using the test secret."""
    return AuthGate(secret=TEST_SECRET)


class TestExtractToken:
    """Test cases for reading the Authorization header."""

    def test_bearer_token(self):
        assert AuthGate.extract_token("Bearer abc.def.ghi") == "abc.def.ghi"

    def test_scheme_is_case_insensitive(self):
        assert AuthGate.extract_token("bearer abc") == "abc"

    @pytest.mark.parametrize("header", [None, "", "   "])
    def test_missing_header(self, header):
        with pytest.raises(MissingCredentialError) as exc_info:
            AuthGate.extract_token(header)
        assert exc_info.value.reason == "missing_header"

    @pytest.mark.parametrize("header", ["Bearer", "Bearer   ", "Basic abc", "abc.def.ghi"])
    def test_malformed_header(self, header):
        with pytest.raises(MissingCredentialError) as exc_info:
            AuthGate.extract_token(header)
        assert exc_info.value.reason == "malformed_header"


class TestVerify:
    """Test cases for token verification."""

    def test_empty_secret_is_rejected(self):
        with pytest.raises(ValueError):
            AuthGate(secret="")

    def test_valid_token(self, gate, make_token):
        identity = gate.verify(make_token(username="crazy_toffer", role="reader"))
        assert isinstance(identity, Identity)
        assert identity.username == "crazy_toffer"
        # Extra claims are kept
        assert identity.role == "reader"
        assert "exp" in identity.model_dump()

    def test_expired_token(self, gate, make_token):
        with pytest.raises(InvalidCredentialError) as exc_info:
            gate.verify(make_token(expires_in=-60))
        assert exc_info.value.reason == "expired"

    def test_leeway_accepts_recently_expired_token(self, make_token):
        gate = AuthGate(secret=TEST_SECRET, leeway=120)
        assert gate.verify(make_token(expires_in=-60)).username == "caoh_the_nerd"

    def test_bad_signature(self, gate, make_token):
        with pytest.raises(InvalidCredentialError) as exc_info:
            gate.verify(make_token(secret="another-secret-0123456789abcdefghij"))
        assert exc_info.value.reason == "bad_signature"

    def test_rotated_secret_invalidates_tokens(self, make_token):
        token = make_token()
        rotated = AuthGate(secret="rotated-secret-0123456789abcdefghijkl")
        with pytest.raises(InvalidCredentialError):
            rotated.verify(token)

    def test_wrong_algorithm(self, gate, make_token):
        with pytest.raises(InvalidCredentialError) as exc_info:
            gate.verify(make_token(algorithm="HS512"))
        assert exc_info.value.reason == "malformed_token"

    def test_garbage_token(self, gate):
        with pytest.raises(InvalidCredentialError) as exc_info:
            gate.verify("not-a-token")
        assert exc_info.value.reason == "malformed_token"

    def test_missing_expiry(self, gate, make_token):
        with pytest.raises(InvalidCredentialError) as exc_info:
            gate.verify(make_token(expires_in=None))
        assert exc_info.value.reason == "missing_claims"

    def test_missing_username(self, gate, make_token):
        with pytest.raises(InvalidCredentialError) as exc_info:
            gate.verify(make_token(username=None))
        assert exc_info.value.reason == "missing_claims"

    def test_non_string_username(self, gate):
        token = jwt.encode(
            {"username": 42, "exp": int(time.time()) + 60},
            TEST_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(InvalidCredentialError) as exc_info:
            gate.verify(token)
        assert exc_info.value.reason == "missing_claims"

    def test_authenticate(self, gate, make_token):
        identity = gate.authenticate(f"Bearer {make_token(username='testing_1')}")
        assert identity.username == "testing_1"


class TestProtectedRoute:
    """Test cases for the gate in front of GET /books/mybooks."""

    def test_missing_header_is_forbidden(self, client):
        response = client.get("/books/mybooks?username=caoh_the_nerd")
        assert response.status_code == 403
        assert response.json() == {
            "error": "Not authenticated",
            "detail": None,
            "status_code": 403,
        }

    def test_invalid_token_is_forbidden(self, client, sample_book_data):
        client.post("/books", json=sample_book_data)

        response = client.get(
            "/books/mybooks?username=crazy_toffer",
            headers={"Authorization": "Bearer invalid"},
        )
        assert response.status_code == 403
        assert "Atomic Habits" not in response.text

    def test_expired_token_is_forbidden(self, client, make_token):
        response = client.get(
            "/books/mybooks?username=caoh_the_nerd",
            headers={"Authorization": f"Bearer {make_token(expires_in=-60)}"},
        )
        assert response.status_code == 403

    def test_missing_and_invalid_look_the_same(self, client):
        missing = client.get("/books/mybooks?username=caoh_the_nerd")
        invalid = client.get(
            "/books/mybooks?username=caoh_the_nerd",
            headers={"Authorization": "Bearer invalid"},
        )
        assert missing.status_code == invalid.status_code
        assert missing.json() == invalid.json()

    def test_causes_are_logged_separately(self, client, make_token):
        with capture_logs() as logs:
            client.get("/books/mybooks?username=caoh_the_nerd")
            client.get(
                "/books/mybooks?username=caoh_the_nerd",
                headers={"Authorization": f"Bearer {make_token(expires_in=-60)}"},
            )

        events = [(log["event"], log.get("reason")) for log in logs if log["event"].startswith("auth.")]
        assert ("auth.missing_credential", "missing_header") in events
        assert ("auth.invalid_credential", "expired") in events

    def test_auth_runs_before_query_validation(self, client):
        response = client.get("/books/mybooks")
        assert response.status_code == 403

    def test_valid_token(self, client, auth_headers):
        response = client.get("/books/mybooks?username=caoh_the_nerd", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == []

    def test_public_routes_need_no_token(self, client):
        assert client.get("/books").status_code == 200


class TestWriteGate:
    """Test cases for require_auth_for_writes."""

    @pytest.fixture
    def locked_client(self, api_config, book_store):
        config = api_config.model_copy(update={"require_auth_for_writes": True})
        return TestClient(create_app(config=config, store=book_store))

    def test_writes_require_token(self, locked_client, sample_book_data):
        assert locked_client.post("/books", json=sample_book_data).status_code == 403
        assert locked_client.put("/books?id=1", json={"title": "x"}).status_code == 403
        assert locked_client.delete("/books?id=1").status_code == 403
        assert locked_client.delete("/books/mybooks?username=crazy_toffer").status_code == 403

    def test_writes_with_token(self, locked_client, auth_headers, sample_book_data):
        response = locked_client.post("/books", json=sample_book_data, headers=auth_headers)
        assert response.status_code == 201

        book_id = response.json()["id"]
        response = locked_client.delete(f"/books?id={book_id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"deleted": 1}
