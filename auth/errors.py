"""
auth/errors.py -- Exception taxonomy for the auth package.

Only three kinds are ever visible to an HTTP client:
  InvalidCredentials -> 401 invalid_credentials (login only)
  Unauthorized       -> 401 unauthorized (every token failure)
  Conflict           -> 409 conflict (duplicate email)

TokenInvalid, RefreshTokenError and UserNotFound are internal. The session
coordinator and the strategies catch them, log the real cause, and raise
Unauthorized so a client cannot tell an expired token from a forged one.

Infrastructure errors (sqlalchemy.exc.OperationalError and friends) are not
wrapped here; they propagate to the generic 500 handler.
"""


class AuthError(Exception):
    """Base authentication error."""


class InvalidCredentials(AuthError):
    """Email or password did not match."""


class Unauthorized(AuthError):
    """Umbrella for every token or session failure."""


class Conflict(AuthError):
    """A unique value (email, token hash) already exists."""


class TokenInvalid(AuthError):
    """Signature, structure, issuer/audience or expiry check failed."""


class UserNotFound(AuthError):
    """A token referenced a user that no longer exists."""


class RefreshTokenError(AuthError):
    """Stored refresh-token record is unusable."""


class RefreshTokenNotFound(RefreshTokenError):
    pass


class RefreshTokenRevoked(RefreshTokenError):
    pass


class RefreshTokenExpired(RefreshTokenError):
    pass
