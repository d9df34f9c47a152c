import logging
from typing import Any, Optional

from .types import MemberData

logger = logging.getLogger(__name__)


class ChannelRegistry:
    """Channels this client wants to be in, and what it knows about their members.

    Membership is the client's intent and survives reconnects. Presence is
    the last state reported by the server and is dropped whenever the
    connection is lost.
    """

    def __init__(self) -> None:
        # dict keeps join order, which is the rejoin order
        self._channels: dict[str, None] = {}
        self._presence: dict[str, dict[str, Any]] = {}
        self.local_id: Optional[str] = None

    @property
    def channels(self) -> list[str]:
        return list(self._channels)

    def add(self, channel: str) -> bool:
        """Add ``channel`` to the membership, returning False if it was already there."""
        if channel in self._channels:
            return False
        self._channels[channel] = None
        return True

    def remove(self, channel: str) -> bool:
        self._presence.pop(channel, None)
        if channel not in self._channels:
            return False
        del self._channels[channel]
        return True

    def members(self, channel: str) -> list[MemberData]:
        return [MemberData(id=member_id, data=data) for member_id, data in self._presence.get(channel, {}).items()]

    def set_members(self, channel: str, members: list[MemberData]) -> None:
        if channel not in self._channels:
            return
        self._presence[channel] = {m.id: m.data for m in members if m.id != self.local_id}

    def member_joined(self, channel: str, member: MemberData) -> None:
        if member.id == self.local_id or channel not in self._channels:
            return
        self._presence.setdefault(channel, {})[member.id] = member.data

    def member_updated(self, channel: str, member: MemberData) -> None:
        self.member_joined(channel, member)

    def member_left(self, channel: str, member_id: str) -> None:
        members = self._presence.get(channel)
        if members is not None:
            members.pop(member_id, None)

    def reset_presence(self) -> None:
        if self._presence:
            logger.debug(f"Dropping presence of {len(self._presence)} channel(s)")
        self._presence.clear()
