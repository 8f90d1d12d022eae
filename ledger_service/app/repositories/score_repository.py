from __future__ import annotations

from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from ..models.rank import ScoreEntry
from .documents.score_document import ScoreDocument
from .interfaces import ScoreRepositoryInterface
from .store_errors import store_errors


STORE_NAME = "user_scores"

# ObjectId 는 생성 시각 순으로 증가하므로 _id asc 가 삽입 순서 tie-break 가 된다
RANK_SORT = [("total_score", DESCENDING), ("achieved_at", ASCENDING), ("_id", ASCENDING)]


class ScoreRepository(ScoreRepositoryInterface):
    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database[STORE_NAME]
        with store_errors(STORE_NAME):
            self._col.create_index(
                [("token_id", ASCENDING), *RANK_SORT], name="idx_token_rank"
            )

    def list_ranked(self, token_id: str) -> list[ScoreEntry]:
        with store_errors(STORE_NAME):
            cursor = self._col.find({"token_id": token_id}, sort=RANK_SORT)
            return [ScoreDocument.model_validate(doc).to_domain() for doc in cursor]
