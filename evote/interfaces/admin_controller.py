from fastapi import APIRouter, Depends, HTTPException

from evote.application.commands import (
    CreateAdminCommand, DecideRequestCommand, DeleteEntityCommand, EntityType, PublishResultsCommand,
)
from evote.application.handlers import command_bus
from evote.application.queries import ListAdminsQuery, ListAllCandidatesQuery, ListRequestsQuery, ListVotersQuery
from evote.application.query_bus import query_bus
from evote.domain.errors import VotingError
from evote.infrastructure.models import AdminRole
from evote.interfaces.responses import to_http_error
from evote.security import get_current_admin, require_full_admin

router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(get_current_admin)])


@router.get("/requests")
def list_requests():
    return query_bus.handle(ListRequestsQuery())


@router.post("/decide")
def decide_request(command: DecideRequestCommand):
    try:
        return command_bus.handle(command)
    except VotingError as e:
        raise to_http_error(e)


@router.post("/publish")
def publish_results(command: PublishResultsCommand):
    try:
        return command_bus.handle(command)
    except VotingError as e:
        raise to_http_error(e)


@router.get("/voters")
def list_voters():
    return query_bus.handle(ListVotersQuery())


@router.get("/candidates")
def list_candidates():
    return query_bus.handle(ListAllCandidatesQuery())


@router.get("/subadmins")
def list_admins():
    return query_bus.handle(ListAdminsQuery())


@router.post("/create-subadmin")
def create_subadmin(command: CreateAdminCommand, current_admin: dict = Depends(require_full_admin)):
    command.role = AdminRole.SUBADMIN
    try:
        return command_bus.handle(command)
    except VotingError as e:
        raise to_http_error(e)


@router.post("/delete")
def delete_entity(command: DeleteEntityCommand, current_admin: dict = Depends(get_current_admin)):
    if command.type == EntityType.ADMIN:
        if current_admin["role"] != AdminRole.ADMIN.value:
            raise HTTPException(status_code=403, detail="Admin role required")
        if command.id == current_admin["id"]:
            raise HTTPException(status_code=400, detail="Cannot delete the signed-in admin")
    try:
        return command_bus.handle(command)
    except VotingError as e:
        raise to_http_error(e)
