"""Family and member lookup plus the role permission matrix."""

import logging
from enum import StrEnum
from typing import Any

from src.core import db_client
from src.core.errors import PermissionDeniedError
from src.core.logging import span
from src.domain.create_models import FamilyCreate, MemberCreate
from src.domain.member import Family, Member, MemberRole


logger = logging.getLogger(__name__)


class Permission(StrEnum):
    """Actions gated by member role."""

    MANAGE_FAMILY = "manage_family"
    INVITE_MEMBERS = "invite_members"
    REMOVE_MEMBERS = "remove_members"
    CHANGE_ROLES = "change_roles"
    VIEW_ALL_STATS = "view_all_stats"
    EDIT_TASKS = "edit_tasks"
    ASSIGN_TASKS = "assign_tasks"
    COMPLETE_OWN_TASKS = "complete_own_tasks"
    EDIT_OWN_PROFILE = "edit_own_profile"
    EDIT_MEMBER_PROFILE = "edit_member_profile"
    VIEW_POINTS = "view_points"
    AWARD_BONUS_POINTS = "award_bonus_points"


_ADMIN_ONLY = {
    Permission.MANAGE_FAMILY,
    Permission.INVITE_MEMBERS,
    Permission.REMOVE_MEMBERS,
    Permission.CHANGE_ROLES,
    Permission.AWARD_BONUS_POINTS,
}
_ADULTS = {Permission.VIEW_ALL_STATS, Permission.EDIT_TASKS, Permission.ASSIGN_TASKS}
_EVERYONE = {Permission.COMPLETE_OWN_TASKS, Permission.VIEW_POINTS}


def has_permission(member: Member | None, action: Permission, target: Member | None = None) -> bool:
    """Return True if member may perform action (optionally on target)."""
    if member is None:
        return False

    is_admin = member.role == MemberRole.ADMIN
    is_adult = member.role in {MemberRole.ADMIN, MemberRole.MEMBER}

    if action in _ADMIN_ONLY:
        return is_admin
    if action in _ADULTS:
        return is_adult
    if action in _EVERYONE:
        return True
    if action == Permission.EDIT_OWN_PROFILE:
        return target is not None and target.id == member.id
    if action == Permission.EDIT_MEMBER_PROFILE:
        return is_admin or (
            member.role == MemberRole.MEMBER and target is not None and target.role == MemberRole.CHILD
        )
    return False


def require_permission(member: Member, *actions: Permission, target: Member | None = None) -> None:
    """Raise PermissionDeniedError unless member holds at least one of actions."""
    if any(has_permission(member, action, target) for action in actions):
        return
    logger.warning(
        "Permission denied for member %s (%s): needs one of %s",
        member.id,
        member.role,
        [str(a) for a in actions],
    )
    msg = f"{member.nickname} ({member.role}) is not allowed to {' or '.join(a.replace('_', ' ') for a in actions)}"
    raise PermissionDeniedError(msg)


def require_same_family(member: Member, family_id: str) -> None:
    """Members can only act on records of their own family."""
    if member.family_id != family_id:
        msg = f"{member.nickname} does not belong to this family"
        raise PermissionDeniedError(msg)


async def get_member(*, member_id: str) -> Member:
    """Get member by ID.

    Raises:
        db_client.RecordNotFoundError: If member not found
    """
    record = await db_client.get_record(collection="members", record_id=member_id)
    return Member.model_validate(record)


async def get_family(*, family_id: str) -> Family:
    """Get family by ID.

    Raises:
        db_client.RecordNotFoundError: If family not found
    """
    record = await db_client.get_record(collection="families", record_id=family_id)
    return Family.model_validate(record)


async def get_family_members(*, family_id: str) -> list[Member]:
    """All members of a family."""
    with span("member_service.get_family_members"):
        records = await db_client.list_all_records(
            collection="members",
            filter_query=f'family_id = "{db_client.sanitize_param(family_id)}"',
        )
        return [Member.model_validate(record) for record in records]


async def create_family(*, params: FamilyCreate) -> Family:
    """Create a family record."""
    with span("member_service.create_family"):
        record = await db_client.create_record(collection="families", data=params.model_dump())
        logger.info("Created family: %s", params.name)
        return Family.model_validate(record)


async def create_member(*, params: MemberCreate) -> Member:
    """Create a member record in an existing family.

    Raises:
        db_client.RecordNotFoundError: If the family does not exist
    """
    with span("member_service.create_member"):
        await get_family(family_id=params.family_id)
        record = await db_client.create_record(collection="members", data=params.model_dump(mode="json"))
        logger.info("Created member %s (%s) in family %s", params.nickname, params.role, params.family_id)
        return Member.model_validate(record)


async def set_family_verification(*, family_id: str, actor_id: str, required: bool) -> Family:
    """Toggle child verification for future completions (admin only).

    Already reviewed or pending completions are left as they are.
    """
    with span("member_service.set_family_verification"):
        actor = await get_member(member_id=actor_id)
        require_same_family(actor, family_id)
        require_permission(actor, Permission.MANAGE_FAMILY)
        record: dict[str, Any] = await db_client.update_record(
            collection="families",
            record_id=family_id,
            data={"require_child_verification": required},
        )
        logger.info("Family %s child verification set to %s by %s", family_id, required, actor_id)
        return Family.model_validate(record)
