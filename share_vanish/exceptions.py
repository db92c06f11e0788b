"""
Share Vanish exceptions.

Every error raised by the exchange is a subclass of ``ShareVanishError``.
Each carries the HTTP status used at the server boundary and a public
message that is safe to show to an end user.

Security Note:
    Messages never include ciphertext, plaintext or key material.
"""


class ShareVanishError(Exception):
    """Base class for all exchange errors."""

    status: int = 500
    message: str = "internal error"

    def __init__(self, message: str = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(ShareVanishError):
    """A required field is missing or malformed."""

    status = 400
    message = "invalid request"


class NotFoundOrExpired(ShareVanishError):
    """Uniform outcome for absent, reserved-only and expired codes."""

    status = 404
    message = "content not found or expired"

    def __init__(self, message: str = None):
        # the public message is always the same, callers must not
        # distinguish a code that never existed from an expired one.
        super().__init__()


class DuplicateCode(ShareVanishError):
    """A live record already holds the access code."""

    status = 409
    message = "access code already in use"


class SizeLimitExceeded(ShareVanishError):
    """Payload, text or image exceeds a configured ceiling."""

    status = 413
    message = "content too large"


class AllocationExhausted(ShareVanishError):
    """No free access code could be reserved within the attempt budget."""

    status = 503
    message = "no access code available, try again later"


class DecryptionError(ShareVanishError):
    """Ciphertext could not be decrypted or parsed.

    Raised client-side for wrong codes and corrupted payloads alike.
    """

    status = 400
    message = "unable to decrypt content, check your access code"
