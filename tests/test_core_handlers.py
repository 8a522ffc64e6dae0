import gc
from concurrent.futures import ThreadPoolExecutor
import pytest
from evote.application.commands import (
    CastVoteCommand, CreateAdminCommand, DecideRequestCommand, LoginCommand, SubmitSignupCommand, VerifyOtpCommand,
)
from evote.application.handlers import (
    CastVoteHandler, CreateAdminHandler, DecideRequestHandler, ListCandidatesHandler, LoginHandler,
    PublishResultsHandler, SubmitSignupHandler, VerifyOtpHandler,
)
from evote.application.commands import PublishResultsCommand
from evote.application.queries import ListCandidatesQuery
from evote.domain.errors import AlreadyVotedError, ConflictError, InvalidOtpError, NotFoundError, StorageError
from evote.domain.identifiers import TimeOrderedIdGenerator
from evote.domain.otp import OtpStore
from evote.infrastructure.candidate_repo import CandidateRepository
from evote.infrastructure.database import Base, SessionLocal, engine
from evote.infrastructure.models import AdminRole, Candidate, StoredCollection, Voter
from evote.infrastructure.notification_bus import NotificationBus
from evote.infrastructure.notifier import EmailNotifier
from evote.infrastructure.store import CollectionStore
from evote.infrastructure.voter_repo import VoterRepository


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def dispatch(self, address, subject, body):
        self.sent.append((address, subject, body))


class FailingWriteStore(CollectionStore):
    def write_many(self, collections):
        return False


@pytest.fixture(autouse=True)
def setup_and_teardown_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    gc.collect()


@pytest.fixture
def store():
    return CollectionStore(SessionLocal, NotificationBus())


@pytest.fixture
def seeded(store):
    VoterRepository(store).save([Voter(identity_number="A1", name="Jane", email="x@y.com")])
    CandidateRepository(store).save([
        Candidate(id="c1", name="Sam", party="Green", mobile="555", credential_secret="unused")
    ])
    return store


def test_signup_scenario_end_to_end(store):
    notifier = RecordingNotifier()
    otps = OtpStore(code_factory=lambda: "123456")

    submitted = SubmitSignupHandler(store).handle(SubmitSignupCommand(
        kind="voter", payload={"identity_number": "A1", "email": "x@y.com", "name": "Jane"},
    ))
    DecideRequestHandler(store).handle(DecideRequestCommand(request_id=submitted["request_id"], action="approve"))

    login = LoginHandler(store, otps, notifier, expose_code=False).handle(LoginCommand(role="voter", identifier="A1"))
    assert "debug_otp" not in login
    assert notifier.sent == [("x@y.com", "Voting OTP", "Your OTP is 123456")]

    assert VerifyOtpHandler(otps).handle(VerifyOtpCommand(identity_number="A1", code="123456")) == {"success": True}
    assert otps.has_grant("A1")
    with pytest.raises(InvalidOtpError):
        VerifyOtpHandler(otps).handle(VerifyOtpCommand(identity_number="A1", code="123456"))


def test_decide_unknown_request(store):
    with pytest.raises(NotFoundError):
        DecideRequestHandler(store).handle(DecideRequestCommand(request_id="nope", action="reject"))


def test_failed_decision_write_keeps_request_pending(store):
    submitted = SubmitSignupHandler(store).handle(SubmitSignupCommand(
        kind="voter", payload={"identity_number": "A1", "email": "x@y.com", "name": "Jane"},
    ))
    failing = FailingWriteStore(SessionLocal, NotificationBus())

    with pytest.raises(StorageError):
        DecideRequestHandler(failing).handle(DecideRequestCommand(request_id=submitted["request_id"], action="approve"))

    assert [r["id"] for r in store.read("requests")] == [submitted["request_id"]]
    assert store.read("voters") == []


def test_cast_vote_is_all_or_nothing(seeded):
    failing = FailingWriteStore(SessionLocal, NotificationBus())

    with pytest.raises(StorageError):
        CastVoteHandler(failing).handle(CastVoteCommand(identity_number="A1", candidate_id="c1"))

    assert VoterRepository(seeded).get_voter_by_identity("A1").has_voted is False
    assert CandidateRepository(seeded).get_candidate_by_id("c1").vote_count == 0


def test_cast_vote_twice(seeded):
    handler = CastVoteHandler(seeded)
    handler.handle(CastVoteCommand(identity_number="A1", candidate_id="c1"))

    with pytest.raises(AlreadyVotedError):
        handler.handle(CastVoteCommand(identity_number="A1", candidate_id="c1"))
    assert CandidateRepository(seeded).get_candidate_by_id("c1").vote_count == 1


def test_cast_vote_unknown_voter(seeded):
    with pytest.raises(NotFoundError):
        CastVoteHandler(seeded).handle(CastVoteCommand(identity_number="ZZ", candidate_id="c1"))


def test_already_voted_is_a_conflict():
    assert issubclass(AlreadyVotedError, ConflictError)


def test_results_view_redaction(seeded):
    CastVoteHandler(seeded).handle(CastVoteCommand(identity_number="A1", candidate_id="c1"))
    view = ListCandidatesHandler(seeded)

    assert "vote_count" not in view.handle(ListCandidatesQuery())["candidates"][0]
    PublishResultsHandler(seeded).handle(PublishResultsCommand(publish=True))
    assert view.handle(ListCandidatesQuery())["candidates"][0]["vote_count"] == 1


def test_duplicate_admin_keeps_first_credential(store):
    handler = CreateAdminHandler(store)
    handler.handle(CreateAdminCommand(admin_id="root", password="first", role=AdminRole.ADMIN))

    with pytest.raises(ConflictError):
        handler.handle(CreateAdminCommand(admin_id="root", password="second", role=AdminRole.ADMIN))

    login = LoginHandler(store, OtpStore(), RecordingNotifier()).handle(
        LoginCommand(role="admin", identifier="root", password="first")
    )
    assert login["role"] == "admin"


def test_corrupt_collection_reads_as_empty(store):
    with SessionLocal() as db:
        db.add(StoredCollection(name="voters", payload={"not": "a list"}))
        db.commit()

    assert store.read("voters") == []
    assert store.read("config") == {}


def test_malformed_records_read_as_empty(store):
    with SessionLocal() as db:
        db.add(StoredCollection(name="candidates", payload=[{"id": "c1"}]))
        db.add(StoredCollection(name="config", payload={"results_published": "maybe"}))
        db.commit()

    assert CandidateRepository(store).get_all_candidates() == []
    assert ListCandidatesHandler(store).handle(ListCandidatesQuery()) == {
        "candidates": [],
        "config": {"results_published": False},
    }


def test_concurrent_votes_are_all_counted(store):
    voter_count = 40
    identity_numbers = [f"V{i}" for i in range(voter_count)]
    VoterRepository(store).save([Voter(identity_number=n, name=n, email=f"{n}@y.com") for n in identity_numbers])
    CandidateRepository(store).save([
        Candidate(id="c1", name="Sam", party="Green", mobile="555", credential_secret="unused")
    ])
    handler = CastVoteHandler(store)

    with ThreadPoolExecutor(max_workers=8) as pool:
        futures = [
            pool.submit(handler.handle, CastVoteCommand(identity_number=n, candidate_id="c1"))
            for n in identity_numbers
        ]
        results = [future.result() for future in futures]

    assert all(result["success"] for result in results)
    assert CandidateRepository(store).get_candidate_by_id("c1").vote_count == voter_count
    assert all(v.has_voted for v in VoterRepository(store).get_all_voters())


def test_concurrent_signups_are_all_kept(store):
    signup_count = 30
    handler = SubmitSignupHandler(store)
    commands = [
        SubmitSignupCommand(kind="voter", payload={"identity_number": f"S{i}", "email": f"s{i}@y.com", "name": f"S{i}"})
        for i in range(signup_count)
    ]

    with ThreadPoolExecutor(max_workers=8) as pool:
        request_ids = list(pool.map(handler.handle, commands))

    stored = store.read("requests")
    assert len({r["request_id"] for r in request_ids}) == signup_count
    assert sorted(r["payload"]["identity_number"] for r in stored) == sorted(f"S{i}" for i in range(signup_count))


def test_notifier_survives_shutdown():
    notifier = EmailNotifier(host="")
    notifier.shutdown()

    # Unconfigured SMTP reports failure instead of raising
    assert notifier.dispatch("x@y.com", "Voting OTP", "Your OTP is 1").result(timeout=5) is False
    notifier.shutdown()


def test_otp_expiry():
    now = [0.0]
    otps = OtpStore(ttl_seconds=60, code_factory=lambda: "999999", clock=lambda: now[0])

    otps.issue("A1")
    now[0] = 61.0
    assert otps.verify("A1", "999999") is False
    assert otps.has_challenge("A1") is False


def test_otp_codes_are_numeric():
    code = OtpStore(length=6).issue("A1")
    assert len(code) == 6 and code.isdigit()


def test_ids_are_unique_and_ordered_under_a_frozen_clock():
    ids = TimeOrderedIdGenerator(clock=lambda: 1700000000000)
    generated = [ids.next_id() for _ in range(5)]

    assert len(set(generated)) == 5
    assert [int(i) for i in generated] == sorted(int(i) for i in generated)
