"""Shared-secret token check."""

from cryptography.hazmat.primitives import constant_time

from trojanws.digest import sha224_hex
from trojanws.errors import AuthError


class AuthValidator:
    """
    Accepts a handshake token iff it equals the hex SHA-224 of the password.
    The expected token is computed once per validator.
    """
    def __init__(self, password: str):
        self._expected = sha224_hex(password).encode("ascii")

    def validate(self, token: str) -> bool:
        return constant_time.bytes_eq(token.encode("utf-8"), self._expected)

    def check(self, token: str):
        """Like validate(), but raise AuthError on mismatch."""
        if not self.validate(token):
            raise AuthError()
