"""PocketBase database client wrapper with async CRUD operations."""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any

from pocketbase import PocketBase
from pocketbase.client import ClientResponseError

from src.core.config import settings
from src.core.errors import NotFoundError, StorageFailureError


logger = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404

_client: PocketBase | None = None
_client_lock = asyncio.Lock()


class RecordNotFoundError(NotFoundError):
    """Raised when a record does not exist in a collection."""


class DatabaseError(StorageFailureError):
    """Raised when a PocketBase call fails for any other reason."""


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in PocketBase filter strings via json.dumps."""
    return json.dumps(str(value))[1:-1]


def _record_to_dict(record: Any) -> dict[str, Any]:
    """Convert a PocketBase SDK record into a plain dict with ISO timestamps."""
    data = dict(record.__dict__)
    data.pop("expand", None)
    for key, value in data.items():
        if isinstance(value, datetime):
            data[key] = value.isoformat()
    return data


def _serialize(data: dict[str, Any]) -> dict[str, Any]:
    """Prepare a payload for PocketBase (datetimes as ISO strings)."""
    return {key: val.isoformat() if isinstance(val, datetime) else val for key, val in data.items()}


async def get_client() -> PocketBase:
    """Get or create the shared, admin-authenticated PocketBase client."""
    global _client  # noqa: PLW0603

    if _client is not None:
        return _client

    async with _client_lock:
        if _client is not None:
            return _client

        client = PocketBase(settings.pocketbase_url)
        try:
            await asyncio.to_thread(
                client.admins.auth_with_password,
                settings.pocketbase_admin_email,
                settings.pocketbase_admin_password,
            )
        except ClientResponseError as e:
            logger.error("pocketbase_auth_failed", extra={"url": settings.pocketbase_url, "error": str(e)})
            msg = f"Failed to authenticate with PocketBase: {e}"
            raise DatabaseError(msg) from e

        _client = client
        logger.info("Created PocketBase client", extra={"url": settings.pocketbase_url})
        return _client


def reset_client() -> None:
    """Drop the cached client (used after credential changes and in tests)."""
    global _client  # noqa: PLW0603
    _client = None


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    client = await get_client()
    try:
        record = await asyncio.to_thread(client.collection(collection).create, _serialize(data))
    except ClientResponseError as e:
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to create record in {collection}: {e}"
        raise DatabaseError(msg) from e

    result = _record_to_dict(record)
    logger.info("Created record", extra={"collection": collection, "record_id": result.get("id")})
    return result


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    client = await get_client()
    try:
        record = await asyncio.to_thread(client.collection(collection).get_one, record_id)
    except ClientResponseError as e:
        if e.status == HTTP_NOT_FOUND:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg) from e
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to get record from {collection}: {e}"
        raise DatabaseError(msg) from e

    logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
    return _record_to_dict(record)


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Update a record by ID and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    client = await get_client()
    try:
        record = await asyncio.to_thread(client.collection(collection).update, record_id, _serialize(data))
    except ClientResponseError as e:
        if e.status == HTTP_NOT_FOUND:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg) from e
        logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to update record in {collection}: {e}"
        raise DatabaseError(msg) from e

    logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
    return _record_to_dict(record)


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a record by ID, raising RecordNotFoundError if not found."""
    client = await get_client()
    try:
        await asyncio.to_thread(client.collection(collection).delete, record_id)
    except ClientResponseError as e:
        if e.status == HTTP_NOT_FOUND:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg) from e
        logger.error("delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to delete record from {collection}: {e}"
        raise DatabaseError(msg) from e

    logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination."""
    client = await get_client()

    # Only include filter and sort in query_params if they're not empty
    query_params: dict[str, str] = {}
    if sort:
        query_params["sort"] = sort
    if filter_query:
        query_params["filter"] = filter_query

    try:
        result = await asyncio.to_thread(
            client.collection(collection).get_list,
            page,
            per_page,
            query_params,
        )
    except ClientResponseError as e:
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to list records from {collection}: {e}"
        raise DatabaseError(msg) from e

    records = [_record_to_dict(item) for item in result.items]
    logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
    return records


async def get_first_record(*, collection: str, filter_query: str) -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    client = await get_client()
    try:
        record = await asyncio.to_thread(client.collection(collection).get_first_list_item, filter_query)
    except ClientResponseError as e:
        if e.status == HTTP_NOT_FOUND:
            return None
        logger.error(
            "get_first_record_failed", extra={"collection": collection, "filter_query": filter_query, "error": str(e)}
        )
        msg = f"Failed to get first record from {collection}: {e}"
        raise DatabaseError(msg) from e

    return _record_to_dict(record)


async def list_all_records(
    *,
    collection: str,
    filter_query: str = "",
    sort: str = "",
    per_page: int = 500,
) -> list[dict[str, Any]]:
    """Walk every page of a filtered listing and return all matching records."""
    records: list[dict[str, Any]] = []
    page = 1
    while True:
        batch = await list_records(
            collection=collection,
            page=page,
            per_page=per_page,
            filter_query=filter_query,
            sort=sort,
        )
        records.extend(batch)
        # Stop if we got fewer than a full page (no more results)
        if len(batch) < per_page:
            return records
        page += 1
