from fastapi import APIRouter

from evote.application.commands import UpdateCandidateProfileCommand
from evote.application.handlers import command_bus
from evote.application.queries import GetCandidateQuery
from evote.application.query_bus import query_bus
from evote.domain.errors import VotingError
from evote.interfaces.responses import to_http_error

router = APIRouter(prefix="/api/candidate", tags=["Candidate"])


@router.post("/update")
def update_candidate(command: UpdateCandidateProfileCommand):
    try:
        return command_bus.handle(command)
    except VotingError as e:
        raise to_http_error(e)


@router.get("/{candidate_id}")
def get_candidate(candidate_id: str):
    query = GetCandidateQuery(candidate_id=candidate_id)
    try:
        return query_bus.handle(query)
    except VotingError as e:
        raise to_http_error(e)
