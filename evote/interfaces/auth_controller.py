from fastapi import APIRouter

from evote.application.commands import LoginCommand, VerifyOtpCommand
from evote.application.handlers import command_bus
from evote.domain.errors import VotingError
from evote.interfaces.responses import to_http_error

router = APIRouter(prefix="/api", tags=["Auth"])


@router.post("/login")
def login(command: LoginCommand):
    try:
        return command_bus.handle(command)
    except VotingError as e:
        raise to_http_error(e)


@router.post("/verify-otp")
def verify_otp(command: VerifyOtpCommand):
    try:
        return command_bus.handle(command)
    except VotingError as e:
        raise to_http_error(e)
