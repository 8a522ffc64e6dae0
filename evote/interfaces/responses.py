from fastapi import HTTPException

from evote.domain.errors import VotingError


def to_http_error(error: VotingError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.to_dict())
