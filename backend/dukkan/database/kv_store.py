"""
Key-Value Store handles for the Dukkan back office

The whole persisted state is a flat namespace of `<kind>:<id>` keys mapping
to the entity's JSON document. The only query shape is a prefix scan.

Two backends:
- InMemoryKeyValueStore: process-local dict, used for development and tests
- DynamoDBKeyValueStore: one DynamoDB table keyed by `pk`, the document kept
  as a JSON string next to a numeric `version` attribute

Both support an optional version check on writes (optimistic locking):
`set(key, doc, expected_version=n)` only succeeds if the stored document's
`version` is `n` (0 meaning "absent or unversioned").

Store handles are created once at startup and injected per request; nothing
in the services reaches for a module-level client.
"""

import asyncio
import copy
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from dukkan.core.config import settings
from dukkan.core.exceptions import StoreError, VersionConflictError

logger = logging.getLogger(__name__)


def document_version(document: Optional[Dict[str, Any]]) -> int:
    """Version of a stored document; absent documents and legacy ones are 0"""
    if not document:
        return 0
    return int(document.get("version") or 0)


class KeyValueStore(ABC):
    """Durable map from string key to JSON document"""

    @abstractmethod
    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the document stored under key, or None"""

    @abstractmethod
    async def set(self, key: str, value: Dict[str, Any], expected_version: Optional[int] = None) -> None:
        """Store value under key, optionally requiring the current version to match"""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key; deleting a missing key is not an error"""

    @abstractmethod
    async def get_by_prefix(self, prefix: str) -> List[Dict[str, Any]]:
        """Return every document whose key starts with prefix"""

    async def ping(self) -> bool:
        """Report whether the store is reachable"""
        return True


# =============================================================================
# In-memory store
# =============================================================================

class InMemoryKeyValueStore(KeyValueStore):
    """
    Process-local store.

    Every call yields to the event loop once before touching the map, so
    concurrent request handlers interleave the way they would against a
    networked store. Documents are deep-copied in and out.
    """

    def __init__(self, initial: Optional[Dict[str, Dict[str, Any]]] = None):
        self._data: Dict[str, Dict[str, Any]] = copy.deepcopy(initial or {})

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(0)
        document = self._data.get(key)
        return copy.deepcopy(document) if document is not None else None

    async def set(self, key: str, value: Dict[str, Any], expected_version: Optional[int] = None) -> None:
        await asyncio.sleep(0)
        if expected_version is not None:
            actual = document_version(self._data.get(key))
            if actual != expected_version:
                raise VersionConflictError(key, expected_version, actual)
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        await asyncio.sleep(0)
        self._data.pop(key, None)

    async def get_by_prefix(self, prefix: str) -> List[Dict[str, Any]]:
        await asyncio.sleep(0)
        return [
            copy.deepcopy(document)
            for key, document in sorted(self._data.items())
            if key.startswith(prefix)
        ]


# =============================================================================
# DynamoDB store
# =============================================================================

def _create_boto_config() -> BotoConfig:
    """
    boto3 Config with the store's fixed connect/read timeouts and the
    AWS 'standard' retry mode. Credentials come from the default chain.
    """
    return BotoConfig(
        connect_timeout=settings.DYNAMODB_CONNECT_TIMEOUT,
        read_timeout=settings.DYNAMODB_READ_TIMEOUT,
        retries={
            'max_attempts': settings.DYNAMODB_MAX_ATTEMPTS,
            'mode': 'standard'
        }
    )


class DynamoDBKeyValueStore(KeyValueStore):
    """
    DynamoDB-backed store.

    Table layout:
    - pk (S, partition key): `<kind>:<id>`
    - kind (S): the key prefix without the colon
    - version (N): mirrors the document's version, used in condition expressions
    - document (S): the JSON document
    """

    def __init__(self, table_name: Optional[str] = None, table: Any = None):
        self.table_name = table_name or settings.DYNAMODB_KV_TABLE

        if table is not None:
            self.table = table
            return

        kwargs = {
            'region_name': settings.AWS_REGION,
            'config': _create_boto_config()
        }
        if settings.DYNAMODB_ENDPOINT:
            kwargs['endpoint_url'] = settings.DYNAMODB_ENDPOINT
            logger.info(f"Using local DynamoDB endpoint: {settings.DYNAMODB_ENDPOINT}")

        dynamodb = boto3.resource('dynamodb', **kwargs)
        self.table = dynamodb.Table(self.table_name)
        logger.info(f"Key-value store bound to DynamoDB table {self.table_name} ({settings.AWS_REGION})")

    @staticmethod
    def _decode(item: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if not item:
            return None
        return json.loads(item['document'])

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            response = await asyncio.to_thread(
                self.table.get_item,
                Key={'pk': key},
                ConsistentRead=True
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"DynamoDB get failed for {key}: {e}")
            raise StoreError(f"Failed to read '{key}'", {"operation": "get", "key": key, "original_error": str(e)})

        return self._decode(response.get('Item'))

    async def set(self, key: str, value: Dict[str, Any], expected_version: Optional[int] = None) -> None:
        item = {
            'pk': key,
            'kind': key.split(':', 1)[0],
            'version': document_version(value),
            'document': json.dumps(value, default=str),
        }

        put_kwargs: Dict[str, Any] = {'Item': item}
        if expected_version is not None:
            condition = Attr('version').eq(expected_version)
            if expected_version == 0:
                condition = Attr('pk').not_exists() | Attr('version').not_exists() | condition
            put_kwargs['ConditionExpression'] = condition

        try:
            await asyncio.to_thread(self.table.put_item, **put_kwargs)
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                raise VersionConflictError(key, expected_version)
            logger.error(f"DynamoDB put failed for {key}: {e}")
            raise StoreError(f"Failed to write '{key}'", {"operation": "set", "key": key, "original_error": str(e)})
        except BotoCoreError as e:
            logger.error(f"DynamoDB put failed for {key}: {e}")
            raise StoreError(f"Failed to write '{key}'", {"operation": "set", "key": key, "original_error": str(e)})

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self.table.delete_item, Key={'pk': key})
        except (ClientError, BotoCoreError) as e:
            logger.error(f"DynamoDB delete failed for {key}: {e}")
            raise StoreError(f"Failed to delete '{key}'", {"operation": "delete", "key": key, "original_error": str(e)})

    async def get_by_prefix(self, prefix: str) -> List[Dict[str, Any]]:
        scan_kwargs: Dict[str, Any] = {
            'FilterExpression': Attr('pk').begins_with(prefix),
            'ConsistentRead': True,
        }
        documents = []

        try:
            while True:
                response = await asyncio.to_thread(self.table.scan, **scan_kwargs)
                documents.extend(self._decode(item) for item in response.get('Items', []))

                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    break
                scan_kwargs['ExclusiveStartKey'] = last_key
        except (ClientError, BotoCoreError) as e:
            logger.error(f"DynamoDB scan failed for prefix {prefix}: {e}")
            raise StoreError(f"Failed to scan '{prefix}'", {"operation": "get_by_prefix", "prefix": prefix, "original_error": str(e)})

        return documents

    async def ping(self) -> bool:
        try:
            await asyncio.to_thread(self.table.load)
            return True
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"DynamoDB table {self.table_name} not reachable: {e}")
            return False


def create_store() -> KeyValueStore:
    """Build the configured store handle"""
    backend = settings.STORE_BACKEND.lower()
    if backend == "dynamodb":
        return DynamoDBKeyValueStore()
    if backend == "memory":
        logger.warning("Using in-memory key-value store - data is not durable")
        return InMemoryKeyValueStore()
    raise ValueError(f"Unknown STORE_BACKEND '{settings.STORE_BACKEND}'")
