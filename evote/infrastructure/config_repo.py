from evote.infrastructure.models import ElectionConfig
from evote.infrastructure.store import CONFIG, CollectionStore


class ConfigRepository:
    collection = CONFIG

    def __init__(self, store: CollectionStore):
        self.store = store

    def get_config(self) -> ElectionConfig:
        return self.store.read_object(self.collection, ElectionConfig)

    def save(self, config: ElectionConfig) -> bool:
        return self.store.write(self.collection, config.model_dump(mode="json"))
