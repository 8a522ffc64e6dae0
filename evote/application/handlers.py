import logging
from datetime import datetime, timezone

from pydantic import ValidationError

from evote.application.commands import (
    CastVoteCommand, CreateAdminCommand, DecideRequestCommand, DecisionAction, DeleteEntityCommand,
    EntityType, LoginCommand, LoginRole, PublishResultsCommand, SubmitSignupCommand,
    UpdateCandidateProfileCommand, VerifyOtpCommand,
)
from evote.application.queries import (
    GetCandidateQuery, GetConfigQuery, ListAdminsQuery, ListAllCandidatesQuery, ListCandidatesQuery,
    ListRequestsQuery, ListVotersQuery,
)
from evote.application.query_bus import MessageBus, query_bus
from evote.config import EXPOSE_DEBUG_OTP, OTP_LENGTH, OTP_TTL_SECONDS
from evote.domain.errors import (
    AlreadyVotedError, ConflictError, InvalidCredentialError, InvalidInputError, InvalidOtpError,
    NotFoundError, StorageError,
)
from evote.domain.identifiers import id_generator
from evote.domain.otp import OtpStore
from evote.infrastructure.admin_repo import AdminRepository
from evote.infrastructure.candidate_repo import CandidateRepository
from evote.infrastructure.config_repo import ConfigRepository
from evote.infrastructure.models import (
    AdminAccount, AdminRole, Candidate, CandidateSignupPayload, RequestKind, RequestStatus, SignupRequest, Voter,
    VoterSignupPayload,
)
from evote.infrastructure.notifier import email_notifier
from evote.infrastructure.request_repo import RequestRepository
from evote.infrastructure.store import ADMINS, CANDIDATES, CONFIG, REQUESTS, VOTERS, collection_store
from evote.infrastructure.voter_repo import VoterRepository
from evote.security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

otp_store = OtpStore(length=OTP_LENGTH, ttl_seconds=OTP_TTL_SECONDS)


def describe_validation_error(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        field = ".".join(str(part) for part in item["loc"]) or "payload"
        problems.append(f"{field}: {item['msg']}")
    return "; ".join(problems)


def public_candidate(candidate: Candidate, include_votes: bool) -> dict:
    exclude = {"credential_secret"}
    if not include_votes:
        # Absent rather than zero so callers cannot read it as "no votes".
        exclude.add("vote_count")
    return candidate.model_dump(mode="json", exclude=exclude)


def public_request(request: SignupRequest) -> dict:
    data = request.model_dump(mode="json")
    data["payload"].pop("credential_secret", None)
    return data


# ---------------------------------------------------------------------------
# Signup requests
# ---------------------------------------------------------------------------

class SubmitSignupHandler:
    def __init__(self, store=collection_store, ids=id_generator):
        self.store = store
        self.ids = ids

    def _validated_payload(self, command: SubmitSignupCommand) -> dict:
        model = VoterSignupPayload if command.kind == RequestKind.VOTER else CandidateSignupPayload
        try:
            payload = model.model_validate(command.payload)
        except ValidationError as e:
            raise InvalidInputError(describe_validation_error(e))

        data = payload.model_dump(mode="json")
        if command.kind == RequestKind.CANDIDATE:
            data["credential_secret"] = hash_password(data.pop("password"))
        return data

    def handle(self, command: SubmitSignupCommand):
        payload = self._validated_payload(command)
        request_repo = RequestRepository(self.store)

        with self.store.locked(REQUESTS, VOTERS, CANDIDATES):
            requests = request_repo.get_all_requests()

            if command.kind == RequestKind.VOTER:
                identity_number = payload["identity_number"]
                pending = request_repo.pending_payload_values(RequestKind.VOTER, "identity_number", requests)
                if identity_number in pending or VoterRepository(self.store).get_voter_by_identity(identity_number):
                    raise ConflictError(f"Identity number {identity_number} is already registered or pending")
            else:
                mobile = payload["mobile"]
                pending = request_repo.pending_payload_values(RequestKind.CANDIDATE, "mobile", requests)
                if mobile in pending or CandidateRepository(self.store).get_candidate_by_mobile(mobile):
                    raise ConflictError(f"Mobile {mobile} is already registered or pending")

            new_request = SignupRequest(
                id=self.ids.next_id(),
                kind=command.kind,
                status=RequestStatus.PENDING,
                submitted_at=datetime.now(timezone.utc),
                payload=payload,
            )
            requests.append(new_request)
            if not request_repo.save(requests):
                raise StorageError("Could not save signup request")

        logger.info("Signup request %s submitted (%s)", new_request.id, command.kind.value)
        return {
            "success": True,
            "request_id": new_request.id,
            "message": "Signup request submitted successfully. Please wait for admin approval.",
        }


class DecideRequestHandler:
    def __init__(self, store=collection_store, ids=id_generator):
        self.store = store
        self.ids = ids

    def handle(self, command: DecideRequestCommand):
        request_repo = RequestRepository(self.store)
        voter_repo = VoterRepository(self.store)
        candidate_repo = CandidateRepository(self.store)

        with self.store.locked(REQUESTS, VOTERS, CANDIDATES):
            requests = request_repo.get_all_requests()
            request = request_repo.get_request_by_id(command.request_id, requests)
            if request is None:
                raise NotFoundError("Request not found")

            # Materialized collections go first; the request is removed last.
            writes = {}
            result = {"success": True, "request_id": request.id}

            if command.action == DecisionAction.APPROVE:
                if request.kind == RequestKind.VOTER:
                    voters = voter_repo.get_all_voters()
                    voter = self._materialize_voter(request)
                    if voter_repo.get_voter_by_identity(voter.identity_number, voters):
                        raise ConflictError(f"Voter {voter.identity_number} already exists")
                    voters.append(voter)
                    writes[VOTERS] = voter_repo.dump(voters)
                    result["identity_number"] = voter.identity_number
                else:
                    candidates = candidate_repo.get_all_candidates()
                    candidate = self._materialize_candidate(request)
                    candidates.append(candidate)
                    writes[CANDIDATES] = candidate_repo.dump(candidates)
                    result["candidate_id"] = candidate.id
                result["status"] = RequestStatus.APPROVED.value
            else:
                result["status"] = RequestStatus.REJECTED.value

            writes[REQUESTS] = request_repo.dump([r for r in requests if r.id != request.id])
            if not self.store.write_many(writes):
                raise StorageError("Could not record the decision")

        logger.info("Request %s %s", request.id, result["status"])
        return result

    @staticmethod
    def _materialize_voter(request: SignupRequest) -> Voter:
        payload = request.payload
        return Voter(
            identity_number=payload["identity_number"],
            name=payload["name"],
            email=payload["email"],
            date_of_birth=payload.get("date_of_birth"),
            photo=payload.get("photo"),
            has_voted=False,
        )

    def _materialize_candidate(self, request: SignupRequest) -> Candidate:
        payload = request.payload
        return Candidate(
            id=self.ids.next_id(),
            name=payload["name"],
            party=payload["party"],
            mobile=payload["mobile"],
            credential_secret=payload["credential_secret"],
            ideology=payload.get("ideology") or "",
            bio=payload.get("bio") or "",
            manifesto=payload.get("manifesto") or "",
            socials=payload.get("socials") or {},
            education=payload.get("education") or "",
            photo=payload.get("photo"),
            vote_count=0,
        )


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

class LoginHandler:
    """
    Role based login.

    Admins receive a signed access token, candidates their candidate id.
    Voters get a fresh OTP: it is mailed in the background and, while
    ``expose_code`` is on, also echoed back as ``debug_otp`` for
    deployments where mail delivery is unreliable.
    """

    def __init__(self, store=collection_store, otps: OtpStore = otp_store, notifier=email_notifier,
                 expose_code: bool = EXPOSE_DEBUG_OTP):
        self.store = store
        self.otps = otps
        self.notifier = notifier
        self.expose_code = expose_code

    def handle(self, command: LoginCommand):
        if command.role == LoginRole.ADMIN:
            return self._admin_login(command)
        if command.role == LoginRole.CANDIDATE:
            return self._candidate_login(command)
        return self._voter_login(command)

    def _admin_login(self, command: LoginCommand):
        if not command.password:
            raise InvalidInputError("Password is required")
        admin = AdminRepository(self.store).get_admin_by_id(command.identifier)
        if admin is None or not verify_password(command.password, admin.credential_secret):
            raise InvalidCredentialError("Invalid Admin Credentials")

        token = create_access_token(data={"sub": admin.id, "role": admin.role.value})
        return {"success": True, "role": admin.role.value, "token": token}

    def _candidate_login(self, command: LoginCommand):
        if not command.password:
            raise InvalidInputError("Password is required")
        candidate = CandidateRepository(self.store).get_candidate_by_mobile(command.identifier)
        if candidate is None or not verify_password(command.password, candidate.credential_secret):
            raise InvalidCredentialError("Invalid Candidate Credentials")
        return {"success": True, "candidate_id": candidate.id}

    def _voter_login(self, command: LoginCommand):
        # A voter who already voted may still log in; the ledger refuses the second ballot.
        voter = VoterRepository(self.store).get_voter_by_identity(command.identifier)
        if voter is None:
            raise NotFoundError("Voter not found or not approved")

        code = self.otps.issue(voter.identity_number)
        if self.expose_code:
            logger.info("Generated OTP for %s: %s", voter.identity_number, code)
        else:
            logger.info("Generated OTP for %s", voter.identity_number)

        self.notifier.dispatch(voter.email, "Voting OTP", f"Your OTP is {code}")

        result = {
            "success": True,
            "message": "OTP sent to registered email",
            "identity_number": voter.identity_number,
            "has_voted": voter.has_voted,
        }
        if self.expose_code:
            result["debug_otp"] = code
        return result


class VerifyOtpHandler:
    def __init__(self, otps: OtpStore = otp_store):
        self.otps = otps

    def handle(self, command: VerifyOtpCommand):
        if not self.otps.verify(command.identity_number, command.code):
            raise InvalidOtpError("Invalid OTP")
        return {"success": True}


class CreateAdminHandler:
    def __init__(self, store=collection_store):
        self.store = store

    def handle(self, command: CreateAdminCommand):
        if not command.admin_id or not command.password:
            raise InvalidInputError("Invalid credentials")

        admin_repo = AdminRepository(self.store)
        with self.store.locked(ADMINS):
            admins = admin_repo.get_all_admins()
            if admin_repo.get_admin_by_id(command.admin_id, admins):
                raise ConflictError("Admin ID already exists")
            admins.append(AdminAccount(
                id=command.admin_id,
                credential_secret=hash_password(command.password),
                role=command.role,
            ))
            if not admin_repo.save(admins):
                raise StorageError("Could not save admin account")

        logger.info("Created %s account %s", command.role.value, command.admin_id)
        label = "Sub-Admin" if command.role == AdminRole.SUBADMIN else "Admin"
        return {"success": True, "message": f"{label} created"}


# ---------------------------------------------------------------------------
# Voting
# ---------------------------------------------------------------------------

class CastVoteHandler:
    """
    Records one ballot.

    Both the voter flag and the candidate count are written in a single
    store transaction, so a failed write leaves neither applied. OTP
    sequencing is the caller's job.
    """

    def __init__(self, store=collection_store):
        self.store = store

    def handle(self, command: CastVoteCommand):
        voter_repo = VoterRepository(self.store)
        candidate_repo = CandidateRepository(self.store)

        with self.store.locked(VOTERS, CANDIDATES):
            voters = voter_repo.get_all_voters()
            voter = voter_repo.get_voter_by_identity(command.identity_number, voters)
            if voter is None:
                raise NotFoundError("Voter not found")
            if voter.has_voted:
                raise AlreadyVotedError("Already voted")

            candidates = candidate_repo.get_all_candidates()
            candidate = candidate_repo.get_candidate_by_id(command.candidate_id, candidates)
            if candidate is None:
                raise NotFoundError("Candidate not found")

            voter.has_voted = True
            candidate.vote_count += 1

            written = self.store.write_many({
                VOTERS: voter_repo.dump(voters),
                CANDIDATES: candidate_repo.dump(candidates),
            })
            if not written:
                raise StorageError("Vote could not be recorded")

        logger.info("Vote recorded for candidate %s", candidate.id)
        return {"success": True, "message": "Vote allocated successfully"}


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------

class PublishResultsHandler:
    def __init__(self, store=collection_store):
        self.store = store

    def handle(self, command: PublishResultsCommand):
        config_repo = ConfigRepository(self.store)
        with self.store.locked(CONFIG):
            config = config_repo.get_config()
            config.results_published = command.publish
            if not config_repo.save(config):
                raise StorageError("Could not update config")
        logger.info("Results published: %s", command.publish)
        return {"success": True, "new_state": command.publish}


class DeleteEntityHandler:
    def __init__(self, store=collection_store):
        self.store = store

    def handle(self, command: DeleteEntityCommand):
        if command.type == EntityType.VOTER:
            repo = VoterRepository(self.store)
            load, key = repo.get_all_voters, (lambda v: v.identity_number)
        elif command.type == EntityType.CANDIDATE:
            repo = CandidateRepository(self.store)
            load, key = repo.get_all_candidates, (lambda c: c.id)
        else:
            repo = AdminRepository(self.store)
            load, key = repo.get_all_admins, (lambda a: a.id)

        with self.store.locked(repo.collection):
            records = load()
            remaining = [record for record in records if key(record) != command.id]
            if len(remaining) == len(records):
                raise NotFoundError(f"{command.type.value.capitalize()} not found")
            if not repo.save(remaining):
                raise StorageError(f"Could not delete {command.type.value}")

        logger.info("Deleted %s %s", command.type.value, command.id)
        return {"success": True, "message": "Deleted successfully"}


class UpdateCandidateProfileHandler:
    def __init__(self, store=collection_store):
        self.store = store

    def handle(self, command: UpdateCandidateProfileCommand):
        candidate_repo = CandidateRepository(self.store)
        changes = command.model_dump(exclude_none=True, exclude={"candidate_id"})

        with self.store.locked(CANDIDATES):
            candidates = candidate_repo.get_all_candidates()
            candidate = candidate_repo.get_candidate_by_id(command.candidate_id, candidates)
            if candidate is None:
                raise NotFoundError("Candidate not found")
            for field, value in changes.items():
                setattr(candidate, field, value)
            if not candidate_repo.save(candidates):
                raise StorageError("Could not update candidate")

        return {"success": True, "message": "Profile updated successfully"}


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

class ListCandidatesHandler:
    def __init__(self, store=collection_store):
        self.store = store

    def handle(self, query: ListCandidatesQuery):
        candidates = CandidateRepository(self.store).get_all_candidates()
        config = ConfigRepository(self.store).get_config()
        return {
            "candidates": [public_candidate(c, config.results_published) for c in candidates],
            "config": config.model_dump(),
        }


class GetCandidateHandler:
    def __init__(self, store=collection_store):
        self.store = store

    def handle(self, query: GetCandidateQuery):
        candidate = CandidateRepository(self.store).get_candidate_by_id(query.candidate_id)
        if candidate is None:
            raise NotFoundError("Candidate not found")
        config = ConfigRepository(self.store).get_config()
        return {"success": True, "candidate": public_candidate(candidate, config.results_published)}


class GetConfigHandler:
    def __init__(self, store=collection_store):
        self.store = store

    def handle(self, query: GetConfigQuery):
        return ConfigRepository(self.store).get_config().model_dump()


class ListRequestsHandler:
    def __init__(self, store=collection_store):
        self.store = store

    def handle(self, query: ListRequestsQuery):
        return [public_request(r) for r in RequestRepository(self.store).get_all_requests()]


class ListVotersHandler:
    def __init__(self, store=collection_store):
        self.store = store

    def handle(self, query: ListVotersQuery):
        return [v.model_dump(mode="json") for v in VoterRepository(self.store).get_all_voters()]


class ListAllCandidatesHandler:
    def __init__(self, store=collection_store):
        self.store = store

    def handle(self, query: ListAllCandidatesQuery):
        return [public_candidate(c, include_votes=True) for c in CandidateRepository(self.store).get_all_candidates()]


class ListAdminsHandler:
    def __init__(self, store=collection_store):
        self.store = store

    def handle(self, query: ListAdminsQuery):
        return [{"id": a.id, "role": a.role.value} for a in AdminRepository(self.store).get_all_admins()]


class CommandBus(MessageBus):
    kind = "command"


# Create and register the command handlers
command_bus = CommandBus()

command_bus.register_handler(SubmitSignupCommand, SubmitSignupHandler())
command_bus.register_handler(DecideRequestCommand, DecideRequestHandler())
command_bus.register_handler(LoginCommand, LoginHandler())
command_bus.register_handler(VerifyOtpCommand, VerifyOtpHandler())
command_bus.register_handler(CreateAdminCommand, CreateAdminHandler())
command_bus.register_handler(CastVoteCommand, CastVoteHandler())
command_bus.register_handler(PublishResultsCommand, PublishResultsHandler())
command_bus.register_handler(DeleteEntityCommand, DeleteEntityHandler())
command_bus.register_handler(UpdateCandidateProfileCommand, UpdateCandidateProfileHandler())

# Register query handlers
query_bus.register_handler(ListCandidatesQuery, ListCandidatesHandler())
query_bus.register_handler(GetCandidateQuery, GetCandidateHandler())
query_bus.register_handler(GetConfigQuery, GetConfigHandler())
query_bus.register_handler(ListRequestsQuery, ListRequestsHandler())
query_bus.register_handler(ListVotersQuery, ListVotersHandler())
query_bus.register_handler(ListAllCandidatesQuery, ListAllCandidatesHandler())
query_bus.register_handler(ListAdminsQuery, ListAdminsHandler())
