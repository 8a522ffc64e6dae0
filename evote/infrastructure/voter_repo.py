from typing import List, Optional

from evote.infrastructure.models import Voter
from evote.infrastructure.store import VOTERS, CollectionStore


class VoterRepository:
    collection = VOTERS

    def __init__(self, store: CollectionStore):
        self.store = store

    def get_all_voters(self) -> List[Voter]:
        return self.store.read_records(self.collection, Voter)

    def get_voter_by_identity(self, identity_number: str, voters: Optional[List[Voter]] = None) -> Optional[Voter]:
        voters = voters if voters is not None else self.get_all_voters()
        return next((v for v in voters if v.identity_number == identity_number), None)

    @staticmethod
    def dump(voters: List[Voter]) -> list:
        return [v.model_dump(mode="json") for v in voters]

    def save(self, voters: List[Voter]) -> bool:
        return self.store.write(self.collection, self.dump(voters))
