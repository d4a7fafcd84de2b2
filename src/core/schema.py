"""PocketBase schema management (code-first approach)."""

import logging
from typing import Any

import httpx
from pocketbase import PocketBase
from pocketbase.client import ClientResponseError

from src.core.config import constants, settings


logger = logging.getLogger(__name__)


# Collections in dependency order: relations point at collections listed earlier
COLLECTIONS = [
    "families",
    "members",
    "tasks",
    "task_assignments",
    "task_completions",
    "points_transactions",
]

# Service-level access only; the API authenticates as admin
_ADMIN_ONLY_RULES: dict[str, str | None] = {
    "listRule": None,
    "viewRule": None,
    "createRule": None,
    "updateRule": None,
    "deleteRule": None,
}


# PocketBase 0.23+ only adds record timestamps when the collection declares them
_TIMESTAMP_FIELDS: list[dict[str, Any]] = [
    {"name": "created", "type": "autodate", "onCreate": True, "onUpdate": False},
    {"name": "updated", "type": "autodate", "onCreate": True, "onUpdate": True},
]


def _relation(name: str, target: str, ids: dict[str, str], *, required: bool = True) -> dict[str, Any]:
    return {
        "name": name,
        "type": "relation",
        "required": required,
        "collectionId": ids.get(target, target),
        "maxSelect": 1,
    }


def _get_collection_schema(
    *,
    collection_name: str,
    collection_ids: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Get the expected schema for a collection.

    Note: PocketBase v0.22+ uses 'fields' instead of 'schema' for field definitions,
    and field options are flattened directly onto the field object (not nested in 'options').
    PocketBase requires actual collection IDs (not names) in relation fields.

    Args:
        collection_name: The name of the collection to get the schema for.
        collection_ids: Optional mapping of collection names to their actual IDs.
            When provided, relation fields will use the actual IDs instead of names.
    """
    ids = collection_ids or {}

    schemas: dict[str, dict[str, Any]] = {
        "families": {
            "fields": [
                {"name": "name", "type": "text", "required": True},
                # Note: required=False since PocketBase rejects False on required bool fields
                {"name": "require_child_verification", "type": "bool", "required": False},
            ],
        },
        "members": {
            "fields": [
                _relation("family_id", "families", ids),
                {"name": "nickname", "type": "text", "required": True, "max": 50},
                {
                    "name": "role",
                    "type": "select",
                    "required": True,
                    "values": ["admin", "member", "child"],
                    "maxSelect": 1,
                },
                {"name": "points_balance", "type": "number", "required": False, "min": 0, "onlyInt": True},
            ],
        },
        "tasks": {
            "fields": [
                _relation("family_id", "families", ids),
                {"name": "title", "type": "text", "required": True},
                {"name": "description", "type": "text", "required": False},
                {"name": "points", "type": "number", "required": False, "min": 0, "onlyInt": True},
                {"name": "estimated_minutes", "type": "number", "required": False, "min": 0, "onlyInt": True},
                # Weekly mask, Monday=0 .. Sunday=6
                {"name": "recurring_days", "type": "json", "required": False},
                {"name": "is_active", "type": "bool", "required": False},
                _relation("created_by", "members", ids, required=False),
            ],
        },
        "task_assignments": {
            "fields": [
                _relation("task_id", "tasks", ids),
                _relation("assigned_to", "members", ids, required=False),
                _relation("assigned_by", "members", ids, required=False),
                {"name": "due_date", "type": "text", "required": True, "pattern": r"^\d{4}-\d{2}-\d{2}$"},
                {"name": "completed", "type": "bool", "required": False},
                {"name": "auto_created", "type": "bool", "required": False},
            ],
            "indexes": ["CREATE INDEX idx_assignments_task_due ON task_assignments (task_id, due_date)"],
        },
        "task_completions": {
            "fields": [
                _relation("task_id", "tasks", ids),
                _relation("assignment_id", "task_assignments", ids, required=False),
                _relation("completed_by", "members", ids),
                {"name": "completed_at", "type": "text", "required": True},
                {"name": "base_points", "type": "number", "required": False, "min": 0, "onlyInt": True},
                {"name": "bonus_points", "type": "number", "required": False, "min": 0, "onlyInt": True},
                {"name": "points_awarded", "type": "number", "required": False, "onlyInt": True},
                {"name": "comment", "type": "text", "required": False},
                {"name": "time_spent_minutes", "type": "number", "required": False, "min": 0, "onlyInt": True},
                {
                    "name": "verification_status",
                    "type": "select",
                    "required": True,
                    "values": ["approved", "pending", "rejected"],
                    "maxSelect": 1,
                },
                _relation("verified_by", "members", ids, required=False),
                {"name": "verified_at", "type": "text", "required": False},
            ],
        },
        "points_transactions": {
            # Ledger entries are never updated
            "fields": [
                _relation("member_id", "members", ids),
                {"name": "points", "type": "number", "required": False, "onlyInt": True},
                {"name": "bonus_points", "type": "number", "required": False, "onlyInt": True},
                {
                    "name": "transaction_type",
                    "type": "select",
                    "required": True,
                    "values": ["earned", "spent", "bonus", "penalty"],
                    "maxSelect": 1,
                },
                {"name": "description", "type": "text", "required": False},
                _relation("completion_id", "task_completions", ids, required=False),
            ],
            "indexes": [
                "CREATE INDEX idx_transactions_member ON points_transactions (member_id)",
                "CREATE INDEX idx_transactions_completion ON points_transactions (completion_id)",
            ],
        },
    }

    if collection_name not in schemas:
        msg = f"Unknown collection: {collection_name}"
        raise ValueError(msg)

    schema = schemas[collection_name]
    return {
        "name": collection_name,
        "type": "base",
        "system": False,
        **_ADMIN_ONLY_RULES,
        **schema,
        "fields": [*schema["fields"], *_TIMESTAMP_FIELDS],
    }


async def _collection_exists(*, client: httpx.AsyncClient, collection_name: str) -> bool:
    """Check if a collection exists in PocketBase."""
    try:
        response = await client.get(f"/api/collections/{collection_name}")
        return response.is_success
    except httpx.HTTPError:
        return False


async def _get_collection_id(*, client: httpx.AsyncClient, collection_name: str) -> str:
    """Fetch the actual collection ID from PocketBase.

    PocketBase v0.22+ requires actual collection IDs (not names) in relation field options.

    Args:
        client: The httpx client with authorization headers.
        collection_name: The name of the collection.

    Returns:
        The actual collection ID (e.g., "pbc_1234567890").
    """
    response = await client.get(f"/api/collections/{collection_name}")
    response.raise_for_status()
    return response.json()["id"]


async def _create_collection(*, client: httpx.AsyncClient, schema: dict[str, Any]) -> None:
    """Create a new collection in PocketBase."""
    response = await client.post("/api/collections", json=schema)
    response.raise_for_status()
    logger.info("Created collection: %s", schema["name"])


# API rule keys that can be set on collections
_API_RULE_KEYS = ("listRule", "viewRule", "createRule", "updateRule", "deleteRule")


def _merge_fields(
    schema: dict[str, Any],
    current: dict[str, Any],
) -> tuple[list[dict[str, Any]], list[str], list[str]]:
    """Merge desired fields with existing fields.

    Returns:
        Tuple of (merged_fields, fields_updated, fields_added).
    """
    desired_fields = {f["name"]: f for f in schema.get("fields", [])}
    existing_fields = {f["name"]: f for f in current.get("fields", [])}

    merged_fields = []
    fields_updated = []
    fields_added = []

    # Update existing fields or keep them as-is
    for field_name, existing_field in existing_fields.items():
        if field_name in desired_fields:
            merged_fields.append(desired_fields[field_name])
            fields_updated.append(field_name)
        else:
            merged_fields.append(existing_field)

    # Add new fields that don't exist yet
    for field_name, desired_field in desired_fields.items():
        if field_name not in existing_fields:
            merged_fields.append(desired_field)
            fields_added.append(field_name)

    return merged_fields, fields_updated, fields_added


def _get_rules_to_update(
    schema: dict[str, Any],
    current: dict[str, Any],
) -> dict[str, str | None]:
    """Get API rules that need updating.

    Returns:
        Dict of rule keys to their new values.
    """
    rules_to_update: dict[str, str | None] = {}
    for rule_key in _API_RULE_KEYS:
        if rule_key in schema and schema[rule_key] != current.get(rule_key):
            rules_to_update[rule_key] = schema[rule_key]
    return rules_to_update


def _build_update_payload(
    merged_fields: list[dict[str, Any]],
    rules_to_update: dict[str, str | None],
    schema: dict[str, Any],
    current: dict[str, Any],
) -> dict[str, Any]:
    """Build the update payload for a collection update."""
    update_payload: dict[str, Any] = {"fields": merged_fields}
    update_payload.update(rules_to_update)

    # Include indexes if specified, merging with existing
    if "indexes" in schema:
        existing_indexes = set(current.get("indexes", []))
        new_indexes = [idx for idx in schema["indexes"] if idx not in existing_indexes]
        if new_indexes:
            update_payload["indexes"] = list(existing_indexes) + new_indexes

    return update_payload


async def _update_collection(
    *,
    client: httpx.AsyncClient,
    collection_name: str,
    schema: dict[str, Any],
) -> None:
    """Update an existing collection in PocketBase to add missing fields and update existing ones.

    This merges custom fields with existing fields instead of replacing them,
    which preserves built-in auth collection fields. It also updates properties
    of existing fields to match the desired schema.
    """
    response = await client.get(f"/api/collections/{collection_name}")
    response.raise_for_status()
    current = response.json()

    merged_fields, fields_updated, fields_added = _merge_fields(schema, current)
    rules_to_update = _get_rules_to_update(schema, current)

    if not fields_added and not fields_updated and not rules_to_update:
        logger.info("Collection %s schema is already up to date", collection_name)
        return

    update_payload = _build_update_payload(merged_fields, rules_to_update, schema, current)

    response = await client.patch(f"/api/collections/{collection_name}", json=update_payload)
    response.raise_for_status()

    log_parts = []
    if fields_added:
        log_parts.append(f"added {fields_added}")
    if fields_updated:
        log_parts.append(f"updated {fields_updated}")
    if rules_to_update:
        log_parts.append(f"updated rules {list(rules_to_update.keys())}")
    logger.info("Updated collection %s: %s", collection_name, ", ".join(log_parts))


async def sync_schema(
    pocketbase_url: str | None = None,
    admin_email: str | None = None,
    admin_password: str | None = None,
) -> None:
    """Sync PocketBase schema with the accounting collections (idempotent).

    Args:
        pocketbase_url: Optional PocketBase URL. If not provided, uses settings.pocketbase_url.
        admin_email: Admin email; defaults to settings.pocketbase_admin_email.
        admin_password: Admin password; defaults to settings.pocketbase_admin_password.
    """
    logger.info("Starting PocketBase schema sync...")

    url = pocketbase_url or settings.pocketbase_url
    client = PocketBase(url)

    # Authenticate as admin using PocketBase SDK
    try:
        client.admins.auth_with_password(
            admin_email or settings.pocketbase_admin_email,
            admin_password or settings.pocketbase_admin_password,
        )
        logger.info("Successfully authenticated as admin")
    except ClientResponseError as e:
        logger.error("Failed to authenticate as admin: %s", e)
        raise

    # Use httpx with the auth token from PocketBase SDK
    async with httpx.AsyncClient(base_url=url, timeout=constants.API_TIMEOUT_SECONDS) as http_client:
        # Set authorization header
        http_client.headers["Authorization"] = f"Bearer {client.auth_store.token}"

        # Build collection ID mapping as we create collections.
        # PocketBase requires actual collection IDs (not names) in relation field options.
        collection_ids: dict[str, str] = {}

        for collection_name in COLLECTIONS:
            schema = _get_collection_schema(
                collection_name=collection_name,
                collection_ids=collection_ids,
            )

            if not await _collection_exists(client=http_client, collection_name=collection_name):
                await _create_collection(client=http_client, schema=schema)
            else:
                # Update existing collection to add any missing fields
                await _update_collection(
                    client=http_client,
                    collection_name=collection_name,
                    schema=schema,
                )

            # Fetch and store the collection ID for use by dependent collections
            collection_ids[collection_name] = await _get_collection_id(
                client=http_client,
                collection_name=collection_name,
            )

    logger.info("PocketBase schema sync complete")
