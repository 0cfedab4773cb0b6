# Error taxonomy for the verification flow. Every error carries the HTTP
# status it is rendered with and a human-readable message.


class VerificationError(Exception):
    status_code = 500
    default_message = "Unexpected error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidPhone(VerificationError):
    status_code = 400
    default_message = "Enter a valid phone number (8-15 digits)"


class InvalidRequest(VerificationError):
    status_code = 400
    default_message = "Missing required data"


class SessionNotFound(VerificationError):
    status_code = 404
    default_message = "Session not found or expired"


class PhoneMismatch(VerificationError):
    status_code = 400
    default_message = "Phone numbers do not match"


class InternalError(VerificationError):
    status_code = 500
    default_message = "Internal server error"
