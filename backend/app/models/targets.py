"""Tagged references to the conversation a message belongs to."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from app.models.enums import ConversationKind


@dataclass(frozen=True, slots=True)
class ChannelTarget:
    id: int

    kind = ConversationKind.CHANNEL


@dataclass(frozen=True, slots=True)
class GroupTarget:
    id: int

    kind = ConversationKind.GROUP


MessageTarget = Union[ChannelTarget, GroupTarget]


def target_from_ids(channel_id: int | None, group_id: int | None) -> MessageTarget:
    """Resolve the nullable column pair into a target.

    Exactly one of the ids must be set; anything else is a programming error
    because the database rejects such rows.
    """

    if channel_id is not None and group_id is None:
        return ChannelTarget(channel_id)
    if group_id is not None and channel_id is None:
        return GroupTarget(group_id)
    raise ValueError("A message targets exactly one of channel_id or group_id")
