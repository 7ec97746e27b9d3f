"""DynamoDB lock provider.

Manifesto:
    A scan for the key followed by a separate insert lets two replicas both
    see "absent" and both insert.  The lease is instead claimed with one
    ``PutItem`` guarded by ``attribute_not_exists(id)``, so DynamoDB itself
    arbitrates and exactly one writer wins.

DynamoDB has no expiry on these items: a replica that crashes while
holding a lease strands it until an operator purges it with
``interlock locks release <name>``.  The ``ttl`` attribute is advisory.
Release is a ``DeleteItem`` conditioned on the ``owner`` attribute, so a
replica only ever deletes its own lease.

Credentials:
    - No endpoint override: the default boto3 chain (environment, shared
      ``~/.aws/credentials`` and ``~/.aws/config``).
    - Endpoint override (DynamoDB Local, LocalStack): region is required and
      the static keys from settings are used.

Tags:
    interlock, locks, dynamodb, conditional-write, boto3

Doc-Types:
    api-reference
"""

from __future__ import annotations

from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from interlock.config.settings import InterlockSettings, get_settings
from interlock.errors import (
    BackendConnectionError,
    BackendError,
    ErrorContext,
    MissingConfigError,
)
from interlock.logging import get_logger

from .protocol import Lease, new_owner_id, no_connection, require_key

logger = get_logger(__name__)

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"
RESOURCE_IN_USE = "ResourceInUseException"


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class DynamoDBLockProvider:
    """Conditional-write table lock backend.

    Example:
        >>> provider = DynamoDBLockProvider(settings)
        >>> provider.prepare_connection()   # creates the table if missing
        >>> provider.acquire("Interlock_billing", ttl=60)
        True
    """

    name = "dynamodb"

    def __init__(
        self,
        settings: InterlockSettings | None = None,
        *,
        client: Any = None,
    ) -> None:
        """Initialize the provider.

        Args:
            settings: Table name, region, endpoint and credentials
            client: An existing ``boto3`` DynamoDB client
        """
        self.settings = settings or get_settings()
        self.owner = new_owner_id()
        self.table = self.settings.dynamodb_table
        self._client = client
        self._prepared = False
        self._leases: dict[str, Lease] = {}

    def _build_client(self) -> Any:
        s = self.settings
        if not s.dynamodb_endpoint:
            session = boto3.Session(region_name=s.dynamodb_region)
            return session.client("dynamodb")

        if not s.dynamodb_region:
            raise MissingConfigError(
                "dynamodb_region",
                "AWS region is required when a DynamoDB endpoint is configured",
            )
        return boto3.client(
            "dynamodb",
            region_name=s.dynamodb_region,
            endpoint_url=s.dynamodb_endpoint,
            aws_access_key_id=s.dynamodb_access_key_id,
            aws_secret_access_key=s.dynamodb_secret_access_key,
            aws_session_token=s.dynamodb_session_token,
        )

    def prepare_connection(self) -> None:
        if self._prepared:
            return

        if self._client is None:
            try:
                self._client = self._build_client()
            except BotoCoreError as e:
                raise BackendConnectionError(
                    f"DynamoDB connection failed: {e}",
                    context=ErrorContext(vendor=self.name),
                    cause=e,
                ) from e

        self._ensure_table()
        self._prepared = True

    def _ensure_table(self) -> None:
        """Create the lock table unless it already exists."""
        try:
            self._client.create_table(
                TableName=self.table,
                AttributeDefinitions=[{"AttributeName": "id", "AttributeType": "S"}],
                KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
                ProvisionedThroughput={
                    "ReadCapacityUnits": self.settings.dynamodb_read_capacity,
                    "WriteCapacityUnits": self.settings.dynamodb_write_capacity,
                },
            )
            self._client.get_waiter("table_exists").wait(TableName=self.table)
        except ClientError as e:
            if _error_code(e) == RESOURCE_IN_USE:
                logger.info("lock_table_exists", vendor=self.name, table=self.table)
                return
            raise BackendConnectionError(
                f"DynamoDB CreateTable failed: {e}",
                context=ErrorContext(vendor=self.name, metadata={"table": self.table}),
                cause=e,
            ) from e
        except BotoCoreError as e:
            raise BackendConnectionError(
                f"DynamoDB unreachable: {e}",
                context=ErrorContext(vendor=self.name, metadata={"table": self.table}),
                cause=e,
            ) from e

        logger.info("lock_table_created", vendor=self.name, table=self.table)

    def acquire(self, key: str, ttl: float) -> bool:
        require_key(key)
        if self._client is None:
            raise no_connection(self.name, key)

        lease = Lease.grant(key, self.owner, ttl)
        try:
            self._client.put_item(
                TableName=self.table,
                Item={
                    "id": {"S": lease.key},
                    "owner": {"S": lease.owner},
                    "created_at": {"S": lease.created_at.isoformat()},
                    "ttl": {"N": str(lease.ttl_seconds)},
                },
                ConditionExpression="attribute_not_exists(id)",
            )
        except ClientError as e:
            if _error_code(e) == CONDITIONAL_CHECK_FAILED:
                return False
            raise BackendError(
                f"DynamoDB PutItem failed: {e}",
                context=ErrorContext(vendor=self.name, key=key),
                cause=e,
            ) from e
        except BotoCoreError as e:
            raise BackendError(
                f"DynamoDB PutItem failed: {e}",
                context=ErrorContext(vendor=self.name, key=key),
                cause=e,
            ) from e

        self._leases[key] = lease
        return True

    def release(self, key: str) -> None:
        lease = self._leases.pop(key, None)
        if lease is None or self._client is None:
            return
        try:
            self._client.delete_item(
                TableName=self.table,
                Key={"id": {"S": key}},
                ConditionExpression="#owner = :owner",
                ExpressionAttributeNames={"#owner": "owner"},
                ExpressionAttributeValues={":owner": {"S": lease.owner}},
            )
        except ClientError as e:
            if _error_code(e) == CONDITIONAL_CHECK_FAILED:
                logger.debug("lease_not_owned", vendor=self.name, key=key)
                return
            raise BackendError(
                f"DynamoDB DeleteItem failed: {e}",
                context=ErrorContext(vendor=self.name, key=key),
                cause=e,
            ) from e
        except BotoCoreError as e:
            raise BackendError(
                f"DynamoDB DeleteItem failed: {e}",
                context=ErrorContext(vendor=self.name, key=key),
                cause=e,
            ) from e

    def purge(self, key: str) -> None:
        if self._client is None:
            raise no_connection(self.name, key)
        self._leases.pop(key, None)
        try:
            self._client.delete_item(TableName=self.table, Key={"id": {"S": key}})
        except (ClientError, BotoCoreError) as e:
            raise BackendError(
                f"DynamoDB DeleteItem failed: {e}",
                context=ErrorContext(vendor=self.name, key=key),
                cause=e,
            ) from e

    def close(self) -> None:
        self._prepared = False
        self._leases.clear()
