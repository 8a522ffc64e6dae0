class VotingError(ValueError):
    """Base class for recoverable failures surfaced to API callers."""

    code = "error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "error": self.code, "message": self.message}


class NotFoundError(VotingError):
    code = "not_found"
    status_code = 404


class ConflictError(VotingError):
    code = "conflict"
    status_code = 409


class AlreadyVotedError(ConflictError):
    code = "already_voted"


class InvalidCredentialError(VotingError):
    code = "invalid_credential"
    status_code = 401


class InvalidOtpError(VotingError):
    code = "invalid_otp"
    status_code = 401


class InvalidInputError(VotingError):
    code = "invalid_input"
    status_code = 400


class StorageError(VotingError):
    code = "storage_unavailable"
    status_code = 503
