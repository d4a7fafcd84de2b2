"""Pure Python in-memory database for unit testing."""

import asyncio
import copy
from datetime import UTC, datetime
from typing import Any

from src.core.db_client import DatabaseError, RecordNotFoundError


class InMemoryDBClient:
    """Pure Python in-memory database for unit testing.

    Mirrors the keyword-only interface of src.core.db_client without requiring
    PocketBase to be running. Supports basic CRUD operations, simple
    filtering/sorting, and injected storage failures.
    """

    def __init__(self):
        """Initialize empty in-memory database."""
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._id_counter = 1000
        self._failures: list[dict[str, Any]] = []
        self.calls: list[tuple[str, str]] = []

    def fail_on(self, operation: str, collection: str, *, times: int = 1, after: int = 0) -> None:
        """Make the next matching operation(s) raise DatabaseError.

        Args:
            operation: "create", "get", "update", "delete" or "list"
            collection: Collection name
            times: Number of consecutive failures
            after: Number of matching calls to let through first
        """
        self._failures.append({"operation": operation, "collection": collection, "times": times, "after": after})

    async def _enter(self, operation: str, collection: str) -> None:
        self.calls.append((operation, collection))
        # Yield like a real network round-trip so concurrent callers interleave
        await asyncio.sleep(0)
        for failure in self._failures:
            if failure["operation"] != operation or failure["collection"] != collection:
                continue
            if failure["after"] > 0:
                failure["after"] -= 1
                return
            if failure["times"] > 0:
                failure["times"] -= 1
                raise DatabaseError(f"Injected {operation} failure on {collection}")

    def records(self, collection: str) -> list[dict[str, Any]]:
        """All stored records of a collection, in insertion order."""
        return [copy.deepcopy(r) for r in self._collections.get(collection, {}).values()]

    async def create_record(self, *, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Create a new record with id, created, and updated fields.

        Raises:
            DatabaseError: If data is not a dict or a failure was injected
        """
        if not isinstance(data, dict):
            raise DatabaseError(f"Data must be a dictionary, got {type(data)}")
        await self._enter("create", collection)

        records = self._collections.setdefault(collection, {})
        record_id = str(self._id_counter)
        self._id_counter += 1

        now = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        record = {"id": record_id, "created": now, "updated": now, **copy.deepcopy(data)}
        records[record_id] = record
        return copy.deepcopy(record)

    async def get_record(self, *, collection: str, record_id: str) -> dict[str, Any]:
        """Get a record by ID.

        Raises:
            RecordNotFoundError: If record not found
            DatabaseError: For other failures
        """
        if not isinstance(record_id, str):
            raise DatabaseError(f"Record ID must be a string, got {type(record_id)}")
        await self._enter("get", collection)

        record = self._collections.get(collection, {}).get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")
        return copy.deepcopy(record)

    async def update_record(self, *, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Merge data into an existing record.

        Raises:
            RecordNotFoundError: If record not found
            DatabaseError: For other failures
        """
        if not isinstance(data, dict):
            raise DatabaseError(f"Data must be a dictionary, got {type(data)}")
        await self._enter("update", collection)

        record = self._collections.get(collection, {}).get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")
        record.update(copy.deepcopy(data))
        record["updated"] = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return copy.deepcopy(record)

    async def delete_record(self, *, collection: str, record_id: str) -> None:
        """Delete a record.

        Raises:
            RecordNotFoundError: If record not found
        """
        await self._enter("delete", collection)

        records = self._collections.get(collection, {})
        if record_id not in records:
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")
        del records[record_id]

    async def list_records(
        self,
        *,
        collection: str,
        page: int = 1,
        per_page: int = 50,
        filter_query: str = "",
        sort: str = "",
    ) -> list[dict[str, Any]]:
        """List records with optional filtering (=, ~, != joined by &&) and sorting.

        Raises:
            DatabaseError: For invalid filter syntax or an injected failure
        """
        await self._enter("list", collection)

        records = list(self._collections.get(collection, {}).values())
        if filter_query:
            records = [r for r in records if self._parse_filter(filter_query, r)]
        if sort:
            records = self._apply_sort(records, sort)

        start_idx = (page - 1) * per_page
        return [copy.deepcopy(r) for r in records[start_idx : start_idx + per_page]]

    async def get_first_record(self, *, collection: str, filter_query: str) -> dict[str, Any] | None:
        """Get the first matching record or None."""
        records = await self.list_records(collection=collection, filter_query=filter_query, per_page=1)
        return records[0] if records else None

    def _parse_filter(self, filter_str: str, record: dict[str, Any]) -> bool:
        """Evaluate a filter expression against a record.

        Supports:
        - field = "value" (exact match; bare true/false compare as booleans)
        - field ~ "substring" (case-insensitive contains)
        - field != "value" (not equal)
        - Multiple conditions with && (AND)

        Raises:
            DatabaseError: For invalid filter syntax
        """
        if "&&" in filter_str:
            return all(self._parse_filter(cond.strip(), record) for cond in filter_str.split("&&"))

        for operator in ("!=", "~", "="):
            if operator not in filter_str:
                continue
            field, _, raw = filter_str.partition(operator)
            field = field.strip()
            raw = raw.strip()
            value = raw.strip("'\"")
            actual = record.get(field)

            if operator == "~":
                return value.lower() in str(actual or "").lower()

            # Only bare true/false are boolean literals; a quoted "false" is text
            if raw in ("true", "false"):
                matches = (isinstance(actual, bool) or actual is None) and bool(actual) == (raw == "true")
            elif isinstance(actual, bool):
                matches = False
            else:
                matches = str(actual if actual is not None else "") == value
            return matches if operator == "=" else not matches

        raise DatabaseError(f"Invalid filter syntax (no operator found): {filter_str}")

    def _apply_sort(self, records: list[dict], sort: str) -> list[dict]:
        """Sort records by one field (prefix with - for descending)."""
        reverse = sort.startswith("-")
        field = sort.lstrip("+-")
        return sorted(records, key=lambda r: r.get(field) or "", reverse=reverse)
