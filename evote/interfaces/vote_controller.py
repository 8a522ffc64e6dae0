from fastapi import APIRouter

from evote.application.commands import CastVoteCommand
from evote.application.handlers import command_bus, otp_store
from evote.application.queries import GetConfigQuery, ListCandidatesQuery
from evote.application.query_bus import query_bus
from evote.config import REQUIRE_OTP_FOR_VOTE
from evote.domain.errors import InvalidOtpError, VotingError
from evote.interfaces.responses import to_http_error

router = APIRouter(prefix="/api", tags=["Voting"])


@router.post("/vote")
def cast_vote(command: CastVoteCommand):
    # The ledger trusts its caller; the OTP sequencing is enforced here.
    if REQUIRE_OTP_FOR_VOTE and not otp_store.has_grant(command.identity_number):
        raise to_http_error(InvalidOtpError("OTP verification required before voting"))
    try:
        result = command_bus.handle(command)
    except VotingError as e:
        raise to_http_error(e)
    otp_store.revoke_grant(command.identity_number)
    return result


@router.get("/candidates")
def list_candidates():
    return query_bus.handle(ListCandidatesQuery())


@router.get("/config")
def get_config():
    return query_bus.handle(GetConfigQuery())
