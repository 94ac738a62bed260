"""Offer tie-break policy.

When two participants discover each other through a roster update, only one of
them may send the first offer or both would negotiate at once (glare). The one
that joined the room strictly earlier initiates; the other waits for its offer.
The relay does not enforce this, it only publishes ``joinTime`` in the roster.
"""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Protocol


class Ranked(Protocol):
    id: str
    join_time: datetime


def should_initiate(self_: Ranked, peer: Ranked) -> bool:
    """Return ``True`` when ``self_`` must create and send the offer to ``peer``."""

    return self_.join_time < peer.join_time


def offer_targets(roster: Iterable[Ranked], self_id: str, known_peers: Iterable[str] = ()) -> list[str]:
    """Return ids of roster peers without negotiation state that ``self_id`` must offer to.

    Peers listed in ``known_peers`` already have a connection and are skipped.
    Returns an empty list when ``self_id`` is not in the roster.
    """

    members = list(roster)
    local = next((member for member in members if member.id == self_id), None)
    if local is None:
        return []

    known = set(known_peers)
    return [
        member.id
        for member in members
        if member.id != self_id and member.id not in known and should_initiate(local, member)
    ]
