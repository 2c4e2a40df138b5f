"""
Host roster and role-based authorization for event sessions.

Roles and what they may do:
- Owner: every moderation action, and managing the host roster
- Co-host: every moderation action
- Moderator: mute/deafen/disconnect, but not moving users

The decision functions are pure: the same roster, host and action always
produce the same answer.
"""

from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional

from discord_multihost.infrastructure.exceptions import InvalidRequestError

from .models import Host, HostRole, ModerationType

_ALL_ROLES = frozenset({HostRole.OWNER, HostRole.CO_HOST, HostRole.MODERATOR})

# Roles allowed to perform each moderation action
ACTION_PERMISSIONS: Dict[ModerationType, FrozenSet[HostRole]] = {
    ModerationType.MUTE: _ALL_ROLES,
    ModerationType.UNMUTE: _ALL_ROLES,
    ModerationType.DEAF: _ALL_ROLES,
    ModerationType.UNDEAF: _ALL_ROLES,
    ModerationType.DISCONNECT: _ALL_ROLES,
    ModerationType.MOVE: frozenset({HostRole.OWNER, HostRole.CO_HOST}),
}


def find_host(hosts: Iterable[Host], user_id: int) -> Optional[Host]:
    for host in hosts:
        if host.user_id == user_id:
            return host
    return None


def is_host_authorized(hosts: Iterable[Host], user_id: int, action: object) -> bool:
    """
    Decide whether a host may perform a moderation action.

    Args:
        hosts: Session host roster
        user_id: Acting host's user id
        action: Requested action; anything that is not a known
            ModerationType is denied

    Returns:
        bool: True if the host exists and their role permits the action
    """
    host = find_host(hosts, user_id)
    if host is None:
        return False

    allowed = ACTION_PERMISSIONS.get(action) if isinstance(action, ModerationType) else None
    if allowed is None:
        return False
    return host.role in allowed


def can_manage_hosts(hosts: Iterable[Host], user_id: int) -> bool:
    """Only the owner may add or remove hosts."""
    host = find_host(hosts, user_id)
    return host is not None and host.role == HostRole.OWNER


class HostRoster:
    """
    Ordered list of a session's hosts.

    Holds exactly one owner from construction on; the owner can be neither
    removed nor duplicated.
    """

    def __init__(self, owner_id: int, owner_username: str):
        self._hosts: List[Host] = [
            Host(user_id=owner_id, username=owner_username, role=HostRole.OWNER)
        ]

    @property
    def owner(self) -> Host:
        return next(h for h in self._hosts if h.role == HostRole.OWNER)

    def get(self, user_id: int) -> Optional[Host]:
        return find_host(self._hosts, user_id)

    def add(self, user_id: int, username: str, role: HostRole) -> Host:
        """
        Add a co-host or moderator.

        Raises:
            InvalidRequestError: If the user is already a host or the role
                is Owner
        """
        if role == HostRole.OWNER:
            raise InvalidRequestError("A session has exactly one owner")
        if self.get(user_id) is not None:
            raise InvalidRequestError(f"User {user_id} is already a host")

        host = Host(user_id=user_id, username=username, role=role)
        self._hosts.append(host)
        return host

    def remove(self, user_id: int) -> Host:
        """
        Remove a non-owner host.

        Raises:
            InvalidRequestError: If the user is not a host or is the owner
        """
        host = self.get(user_id)
        if host is None:
            raise InvalidRequestError(f"User {user_id} is not a host")
        if host.role == HostRole.OWNER:
            raise InvalidRequestError("The session owner cannot be removed")

        self._hosts.remove(host)
        return host

    def is_authorized(self, user_id: int, action: object) -> bool:
        return is_host_authorized(self._hosts, user_id, action)

    def can_manage_hosts(self, user_id: int) -> bool:
        return can_manage_hosts(self._hosts, user_id)

    def online(self) -> List[Host]:
        return [h for h in self._hosts if h.is_online]

    def __contains__(self, user_id: object) -> bool:
        return any(h.user_id == user_id for h in self._hosts)

    def __len__(self) -> int:
        return len(self._hosts)

    def __iter__(self) -> Iterator[Host]:
        return iter(list(self._hosts))
