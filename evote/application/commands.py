from typing import Any, Dict, Optional
import enum

from pydantic import BaseModel

from evote.infrastructure.models import AdminRole, RequestKind


class DecisionAction(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"


class LoginRole(str, enum.Enum):
    ADMIN = "admin"
    CANDIDATE = "candidate"
    VOTER = "voter"


class EntityType(str, enum.Enum):
    VOTER = "voter"
    CANDIDATE = "candidate"
    ADMIN = "admin"


class SubmitSignupCommand(BaseModel):
    kind: RequestKind
    payload: Dict[str, Any] = {}


class DecideRequestCommand(BaseModel):
    request_id: str
    action: DecisionAction


class LoginCommand(BaseModel):
    role: LoginRole
    identifier: str
    password: Optional[str] = None


class VerifyOtpCommand(BaseModel):
    identity_number: str
    code: str


class CastVoteCommand(BaseModel):
    identity_number: str
    candidate_id: str


class PublishResultsCommand(BaseModel):
    publish: bool


class CreateAdminCommand(BaseModel):
    admin_id: str = ""
    password: str = ""
    role: AdminRole = AdminRole.SUBADMIN


class DeleteEntityCommand(BaseModel):
    type: EntityType
    id: str


class UpdateCandidateProfileCommand(BaseModel):
    candidate_id: str
    ideology: Optional[str] = None
    photo: Optional[str] = None
    bio: Optional[str] = None
    manifesto: Optional[str] = None
    socials: Optional[Dict[str, str]] = None
    education: Optional[str] = None
