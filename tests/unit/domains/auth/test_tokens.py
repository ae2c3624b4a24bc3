"""
Tests for token issuing and verification.
"""

from datetime import timedelta

import jwt
import pytest

from cbcloud.domains.auth.tokens import (
    decode_token,
    issue_access_token,
    issue_refresh_token,
)
from cbcloud.domains.auth.types import TokenType
from cbcloud.shared.exceptions import InvalidTokenError, TokenExpiredError
from cbcloud.shared.timeutils import utcnow


class TestDecodeToken:
    def test_round_trips_claims(self):
        token = issue_access_token("user-a", token_version=3)

        payload = decode_token(token)

        assert payload.sub == "user-a"
        assert payload.ver == 3
        assert payload.type == TokenType.ACCESS
        assert payload.exp - payload.iat == 24 * 3600

    def test_expired_after_lifetime(self):
        token = issue_access_token("user-a", issued_at=utcnow() - timedelta(hours=25))

        with pytest.raises(TokenExpiredError) as exc_info:
            decode_token(token)
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token expired"

    def test_still_valid_within_lifetime(self):
        token = issue_access_token("user-a", issued_at=utcnow() - timedelta(hours=1))

        assert decode_token(token).sub == "user-a"

    def test_bad_signature_is_invalid(self):
        token = jwt.encode(
            {"sub": "user-a", "iat": 0, "exp": 9999999999, "jti": "x"},
            "some-other-secret",
            algorithm="HS256",
        )

        with pytest.raises(InvalidTokenError):
            decode_token(token)

    def test_malformed_token_is_invalid(self):
        with pytest.raises(InvalidTokenError) as exc_info:
            decode_token("not-a-jwt")
        assert exc_info.value.code == "TOKEN_INVALID"

    def test_refresh_token_rejected_as_access(self):
        with pytest.raises(InvalidTokenError):
            decode_token(issue_refresh_token("user-a"))

    def test_refresh_token_accepted_as_refresh(self):
        token = issue_refresh_token("user-a")

        assert decode_token(token, TokenType.REFRESH).type == TokenType.REFRESH

    def test_missing_claims_are_invalid(self, test_jwt_secret):
        token = jwt.encode({"sub": "user-a"}, test_jwt_secret, algorithm="HS256")

        with pytest.raises(InvalidTokenError):
            decode_token(token)
