from typing import List, Optional

from evote.infrastructure.models import Candidate
from evote.infrastructure.store import CANDIDATES, CollectionStore


class CandidateRepository:
    collection = CANDIDATES

    def __init__(self, store: CollectionStore):
        self.store = store

    def get_all_candidates(self) -> List[Candidate]:
        return self.store.read_records(self.collection, Candidate)

    def get_candidate_by_id(self, candidate_id: str, candidates: Optional[List[Candidate]] = None):
        candidates = candidates if candidates is not None else self.get_all_candidates()
        return next((c for c in candidates if c.id == candidate_id), None)

    def get_candidate_by_mobile(self, mobile: str, candidates: Optional[List[Candidate]] = None):
        candidates = candidates if candidates is not None else self.get_all_candidates()
        return next((c for c in candidates if c.mobile == mobile), None)

    @staticmethod
    def dump(candidates: List[Candidate]) -> list:
        return [c.model_dump(mode="json") for c in candidates]

    def save(self, candidates: List[Candidate]) -> bool:
        return self.store.write(self.collection, self.dump(candidates))
