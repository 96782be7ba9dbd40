import logging
from typing import Any, Dict, List, Optional

from pymongo import AsyncMongoClient
from pymongo.errors import ConfigurationError, PyMongoError

from plexbuy.errors import (
    ConnectionFailure,
    CredentialMalformed,
    CredentialMissing,
    HealthCheckFailure,
    StoreError,
)

logger = logging.getLogger(__name__)

URI_SCHEMES = ("mongodb://", "mongodb+srv://")


class ProductStore:
    """Product lookups against a MongoDB collection"""

    def __init__(
        self,
        connection_string: Optional[str] = None,
        database: str = "plexbuy",
        collection: str = "products",
        timeout_ms: int = 5000,
    ):
        self.connection_string = connection_string.strip() if connection_string else None
        self.database_name = database
        self.collection_name = collection
        self.timeout_ms = timeout_ms
        self.client = None
        self.collection = None

    def validate_connection_string(self) -> str:
        if not self.connection_string:
            raise CredentialMissing("MONGODB_URI is not set")
        if not self.connection_string.startswith(URI_SCHEMES):
            raise CredentialMalformed("MONGODB_URI must start with mongodb:// or mongodb+srv://")
        return self.connection_string

    async def connect(self) -> bool:
        uri = self.validate_connection_string()

        try:
            client = AsyncMongoClient(uri, serverSelectionTimeoutMS=self.timeout_ms)
        except ConfigurationError as e:
            raise CredentialMalformed(f"MONGODB_URI rejected: {e}") from e

        try:
            await client.admin.command("ping")
        except PyMongoError as e:
            await client.close()
            raise ConnectionFailure(f"Cannot reach MongoDB: {e}") from e

        collection = client[self.database_name][self.collection_name]
        try:
            total = await collection.estimated_document_count()
        except PyMongoError as e:
            await client.close()
            raise HealthCheckFailure(f"Product count failed: {e}") from e

        self.client = client
        self.collection = collection
        logger.info(f"MongoDB ready ({self.database_name}.{self.collection_name}, {total} products)")
        return True

    init = connect

    def _require_collection(self):
        if self.collection is None:
            raise StoreError("Product store is not connected")
        return self.collection

    async def count(self) -> int:
        collection = self._require_collection()
        try:
            return await collection.estimated_document_count()
        except PyMongoError as e:
            raise StoreError(f"Product count failed: {e}") from e

    async def find(self, query_filter: Dict[str, Any], limit: int) -> List[Dict[str, Any]]:
        collection = self._require_collection()
        try:
            cursor = collection.find(query_filter).limit(limit)
            documents = await cursor.to_list(length=limit)
        except PyMongoError as e:
            raise StoreError(f"Product lookup failed: {e}") from e

        records = []
        for doc in documents:
            record = dict(doc)
            if "_id" in record:
                record["id"] = str(record.pop("_id"))
            records.append(record)
        return records

    async def close(self):
        if self.client is not None:
            await self.client.close()
            self.client = None
            self.collection = None
