"""Instance Repository - Data access for form instances"""
from typing import List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_collection
from ..domain.models import FormInstance
from ..domain.enums import InstanceStatus
from ..domain.errors import InstanceNotFoundError, AlreadyExistsError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class InstanceRepository:
    """Repository for form instance operations"""

    def __init__(self):
        self._instances: Collection = get_collection("instances")

    def create(self, instance: FormInstance) -> FormInstance:
        """Create a new instance"""
        # Don't use mode="json" - it converts datetime to strings, breaking MongoDB sorting
        doc = instance.model_dump()
        doc["_id"] = instance.instance_id

        try:
            self._instances.insert_one(doc)
        except DuplicateKeyError:
            raise AlreadyExistsError(f"Instance {instance.instance_id} already exists")
        logger.info(f"Created instance: {instance.instance_id}", extra={"instance_id": instance.instance_id})
        return instance

    def get_by_id(self, instance_id: str) -> Optional[FormInstance]:
        """Get instance by ID"""
        doc = self._instances.find_one({"instance_id": instance_id})
        if doc:
            doc.pop("_id", None)
            return FormInstance.model_validate(doc)
        return None

    def get_by_id_or_raise(self, instance_id: str) -> FormInstance:
        """Get instance by ID or raise error"""
        instance = self.get_by_id(instance_id)
        if not instance:
            raise InstanceNotFoundError(f"Instance {instance_id} not found")
        return instance

    def save(self, instance: FormInstance) -> FormInstance:
        """Full-overwrite upsert"""
        doc = instance.model_dump()
        doc["_id"] = instance.instance_id
        self._instances.replace_one({"_id": instance.instance_id}, doc, upsert=True)
        logger.debug(
            f"Saved instance: {instance.instance_id}",
            extra={"instance_id": instance.instance_id, "status": instance.status.value}
        )
        return instance

    def list_by_status(self, status: InstanceStatus) -> List[FormInstance]:
        """List instances with the given status, oldest first"""
        cursor = self._instances.find({"status": status.value}).sort("created_at", ASCENDING)
        instances = []
        for doc in cursor:
            doc.pop("_id", None)
            instances.append(FormInstance.model_validate(doc))
        return instances

    def count_for_prefix(self, application_no_prefix: str) -> int:
        """Count instances whose application number starts with the prefix"""
        return self._instances.count_documents(
            {"application_no": {"$regex": f"^{application_no_prefix}"}}
        )
