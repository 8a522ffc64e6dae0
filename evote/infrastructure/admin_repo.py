from typing import List, Optional

from evote.infrastructure.models import AdminAccount
from evote.infrastructure.store import ADMINS, CollectionStore


class AdminRepository:
    collection = ADMINS

    def __init__(self, store: CollectionStore):
        self.store = store

    def get_all_admins(self) -> List[AdminAccount]:
        return self.store.read_records(self.collection, AdminAccount)

    def get_admin_by_id(self, admin_id: str, admins: Optional[List[AdminAccount]] = None) -> Optional[AdminAccount]:
        admins = admins if admins is not None else self.get_all_admins()
        return next((a for a in admins if a.id == admin_id), None)

    def save(self, admins: List[AdminAccount]) -> bool:
        return self.store.write(self.collection, [a.model_dump(mode="json") for a in admins])
