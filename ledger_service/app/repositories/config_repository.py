from __future__ import annotations

from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from ..errors import ConfigVersionConflict
from ..models.ledger_config import LedgerConfig
from .documents.config_document import LedgerConfigDocument
from .interfaces import LedgerConfigRepositoryInterface
from .store_errors import store_errors


STORE_NAME = "ledger_config"


class LedgerConfigRepository(LedgerConfigRepositoryInterface):
    """ledger_config 컬렉션. 버전마다 새 도큐먼트를 쌓는다."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database[STORE_NAME]
        with store_errors(STORE_NAME):
            self._col.create_index(
                [("version", ASCENDING)], name="uniq_version", unique=True
            )

    def get_latest(self) -> LedgerConfig | None:
        with store_errors(STORE_NAME):
            doc = self._col.find_one({}, sort=[("version", DESCENDING)])
        if not doc:
            return None
        return LedgerConfigDocument.model_validate(doc).to_domain()

    def insert_version(self, config: LedgerConfig) -> LedgerConfig:
        doc = LedgerConfigDocument.from_domain(config)
        with store_errors(STORE_NAME):
            try:
                self._col.insert_one(doc.to_mongo_record())
            except DuplicateKeyError as exc:
                raise ConfigVersionConflict(config.version) from exc
        return doc.to_domain()
