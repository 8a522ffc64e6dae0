from fastapi import APIRouter

from evote.application.commands import SubmitSignupCommand
from evote.application.handlers import command_bus
from evote.domain.errors import VotingError
from evote.interfaces.responses import to_http_error

router = APIRouter(prefix="/api", tags=["Signup"])


@router.post("/signup")
def submit_signup(command: SubmitSignupCommand):
    try:
        return command_bus.handle(command)
    except VotingError as e:
        raise to_http_error(e)
