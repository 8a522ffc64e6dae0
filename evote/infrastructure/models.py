from datetime import datetime, timezone
from typing import Any, Dict, Optional
import enum

from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import JSON, Column, DateTime, String

from evote.infrastructure.database import Base


class StoredCollection(Base):
    """One row per named collection; the payload is the whole JSON document."""
    __tablename__ = "collections"

    name = Column(String, primary_key=True)
    payload = Column(JSON, nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), nullable=False)


class RequestKind(str, enum.Enum):
    VOTER = "voter"
    CANDIDATE = "candidate"


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AdminRole(str, enum.Enum):
    ADMIN = "admin"
    SUBADMIN = "subadmin"


class SignupRequest(BaseModel):
    id: str
    kind: RequestKind
    status: RequestStatus = RequestStatus.PENDING
    submitted_at: datetime
    payload: Dict[str, Any] = {}


class Voter(BaseModel):
    identity_number: str
    name: str
    email: str
    date_of_birth: Optional[str] = None
    photo: Optional[str] = None
    has_voted: bool = False


class Candidate(BaseModel):
    id: str
    name: str
    party: str
    mobile: str
    credential_secret: str
    ideology: str = ""
    bio: str = ""
    manifesto: str = ""
    socials: Dict[str, str] = {}
    education: str = ""
    photo: Optional[str] = None
    vote_count: int = Field(default=0, ge=0)


class AdminAccount(BaseModel):
    id: str
    credential_secret: str
    role: AdminRole = AdminRole.SUBADMIN


class ElectionConfig(BaseModel):
    results_published: bool = False


# Signup payloads, validated per request kind
class VoterSignupPayload(BaseModel):
    identity_number: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    email: EmailStr
    date_of_birth: Optional[str] = None
    photo: Optional[str] = None


class CandidateSignupPayload(BaseModel):
    name: str = Field(..., min_length=1)
    party: str = Field(..., min_length=1)
    mobile: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    ideology: str = ""
    bio: str = ""
    manifesto: str = ""
    socials: Dict[str, str] = {}
    education: str = ""
    photo: Optional[str] = None
