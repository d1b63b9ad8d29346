"""Service layer for squads and their members."""

from __future__ import annotations

import datetime
import logging
import secrets
from typing import TYPE_CHECKING, Any

from basecamp.core.constants import (
    GROUPS_COLLECTION,
    INVITE_CODE_ALPHABET,
    INVITE_CODE_ATTEMPTS,
    INVITE_CODE_LENGTH,
    USERS_COLLECTION,
)
from basecamp.errors import NotFoundError, StoreError, ValidationError

from .models import Group, User
from .presence import merge_presence

if TYPE_CHECKING:
    from basecamp.core.store import EventStore

logger = logging.getLogger(__name__)

MAX_SQUAD_NAME_LENGTH = 60
MAX_ACTIVITY_LENGTH = 120


def generate_invite_code(length: int = INVITE_CODE_LENGTH) -> str:
    """Random uppercase code without look-alike characters (0/O, 1/I)."""
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def normalize_invite_code(code: str | None) -> str:
    return (code or "").strip().upper()


class SquadService:
    """Service class for squad membership operations."""

    @staticmethod
    def get_squad(store: EventStore, group_id: str | None) -> Group | None:
        if not group_id:
            return None
        squad = store.get_document(GROUPS_COLLECTION, group_id)
        return squad  # type: ignore[return-value]

    @staticmethod
    def find_by_invite_code(store: EventStore, code: str) -> Group | None:
        matches = store.query(
            GROUPS_COLLECTION, [("inviteCode", "==", normalize_invite_code(code))]
        )
        return matches[0] if matches else None  # type: ignore[return-value]

    @staticmethod
    def _unused_invite_code(store: EventStore) -> str:
        for _ in range(INVITE_CODE_ATTEMPTS):
            code = generate_invite_code()
            if SquadService.find_by_invite_code(store, code) is None:
                return code
        logger.error("Could not find a free invite code")
        raise StoreError("Could not create the squad. Please try again.")

    @staticmethod
    def create_squad(store: EventStore, actor: dict[str, Any], name: str) -> Group:
        """Create a squad with ``actor`` as its first member."""
        if actor.get("groupId"):
            raise ValidationError("Leave your current squad before creating one.")
        name = (name or "").strip()
        if not name:
            raise ValidationError("Squad name is required.")
        if len(name) > MAX_SQUAD_NAME_LENGTH:
            raise ValidationError("Squad name is too long.")

        group_id = store.new_document_id(GROUPS_COLLECTION)
        group = {
            "name": name,
            "inviteCode": SquadService._unused_invite_code(store),
            "createdBy": actor["id"],
            "createdAt": datetime.datetime.now(datetime.timezone.utc),
            "members": [actor["id"]],
        }
        store.write_document(GROUPS_COLLECTION, group_id, group)
        store.write_document(
            USERS_COLLECTION, actor["id"], {"groupId": group_id}, merge=True
        )
        logger.info(f"User {actor['id']} created squad {group_id}")
        return {**group, "id": group_id}  # type: ignore[return-value]

    @staticmethod
    def join_squad(store: EventStore, actor: dict[str, Any], code: str) -> Group:
        """Join the squad whose invite code is ``code``."""
        if actor.get("groupId"):
            raise ValidationError("Leave your current squad before joining another.")
        code = normalize_invite_code(code)
        if len(code) != INVITE_CODE_LENGTH:
            raise ValidationError(
                f"Invite codes are {INVITE_CODE_LENGTH} characters long."
            )
        group = SquadService.find_by_invite_code(store, code)
        if group is None:
            raise NotFoundError("No squad uses that invite code.")

        store.array_add(GROUPS_COLLECTION, group["id"], "members", actor["id"])
        store.write_document(
            USERS_COLLECTION, actor["id"], {"groupId": group["id"]}, merge=True
        )
        logger.info(f"User {actor['id']} joined squad {group['id']}")
        members = list(dict.fromkeys([*group.get("members", []), actor["id"]]))
        return {**group, "members": members}  # type: ignore[return-value]

    @staticmethod
    def leave_squad(store: EventStore, actor: dict[str, Any]) -> None:
        """Remove ``actor`` from their squad. The squad itself is kept."""
        group_id = actor.get("groupId")
        if not group_id:
            raise ValidationError("You are not in a squad.")
        store.array_remove(GROUPS_COLLECTION, group_id, "members", actor["id"])
        store.write_document(
            USERS_COLLECTION, actor["id"], {"groupId": None}, merge=True
        )
        logger.info(f"User {actor['id']} left squad {group_id}")

    @staticmethod
    def get_members(
        store: EventStore,
        group_id: str | None,
        statuses: dict[str, bool] | None = None,
    ) -> list[User]:
        """Users of a squad, with live presence applied, ordered by name."""
        if not group_id:
            return []
        users = store.query(USERS_COLLECTION, [("groupId", "==", group_id)])
        members = merge_presence(users, statuses or {})
        members.sort(key=lambda user: (user.get("displayName") or "").lower())
        return members  # type: ignore[return-value]

    @staticmethod
    def online_members(members: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [member for member in members if member.get("isOnline")]

    @staticmethod
    def update_current_activity(
        store: EventStore, actor: dict[str, Any], text: str
    ) -> str:
        text = (text or "").strip()
        if len(text) > MAX_ACTIVITY_LENGTH:
            raise ValidationError("Status is too long.")
        store.write_document(
            USERS_COLLECTION, actor["id"], {"currentActivity": text}, merge=True
        )
        return text
