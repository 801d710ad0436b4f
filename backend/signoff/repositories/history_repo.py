"""History Repository - Data access for approval history (append-only)"""
from typing import List
from pymongo.collection import Collection
from pymongo import ASCENDING, ReturnDocument

from .mongo_client import get_collection
from ..domain.models import HistoryRecord
from ..utils.logger import get_logger

logger = get_logger(__name__)


class HistoryRepository:
    """Repository for approval history records (append-only)"""

    def __init__(self):
        self._history: Collection = get_collection("approval_history")
        self._counters: Collection = get_collection("counters")

    def next_sequence(self, instance_id: str) -> int:
        """Allocate the next per-instance sequence number"""
        counter = self._counters.find_one_and_update(
            {"_id": f"history:{instance_id}"},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        return counter["seq"]

    def append(self, record: HistoryRecord) -> HistoryRecord:
        """Append a history record"""
        doc = record.model_dump()
        doc["_id"] = record.history_id

        self._history.insert_one(doc)
        logger.info(
            f"Recorded history: {record.action.value}",
            extra={
                "instance_id": record.instance_id,
                "history_id": record.history_id,
                "node_id": record.node_id,
                "actor_id": record.actor_id
            }
        )
        return record

    def list_for_instance(self, instance_id: str) -> List[HistoryRecord]:
        """History of one instance in sequence order"""
        cursor = self._history.find({"instance_id": instance_id}).sort("sequence", ASCENDING)

        records = []
        for doc in cursor:
            doc.pop("_id", None)
            records.append(HistoryRecord.model_validate(doc))
        return records
