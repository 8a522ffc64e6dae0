from typing import List, Optional

from evote.infrastructure.models import RequestKind, SignupRequest
from evote.infrastructure.store import REQUESTS, CollectionStore


class RequestRepository:
    collection = REQUESTS

    def __init__(self, store: CollectionStore):
        self.store = store

    def get_all_requests(self) -> List[SignupRequest]:
        return self.store.read_records(self.collection, SignupRequest)

    def get_request_by_id(self, request_id: str, requests: Optional[List[SignupRequest]] = None):
        requests = requests if requests is not None else self.get_all_requests()
        return next((r for r in requests if r.id == request_id), None)

    def pending_payload_values(self, kind: RequestKind, field: str, requests: List[SignupRequest]) -> set:
        return {r.payload.get(field) for r in requests if r.kind == kind}

    @staticmethod
    def dump(requests: List[SignupRequest]) -> list:
        return [r.model_dump(mode="json") for r in requests]

    def save(self, requests: List[SignupRequest]) -> bool:
        return self.store.write(self.collection, self.dump(requests))
