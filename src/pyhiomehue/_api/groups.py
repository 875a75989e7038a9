"""Light group endpoints."""

from __future__ import annotations

from pyhiomehue._api._common import raise_for_hue_error
from pyhiomehue._transport import Transport
from pyhiomehue.exceptions import HueApiError
from pyhiomehue.models.group import Group
from pyhiomehue.session import BridgeConnection


async def fetch_groups(transport: Transport, connection: BridgeConnection) -> list[Group]:
    """Fetch every group defined on the bridge, ordered by numeric id."""
    endpoint = f"{connection.host}/api/<redacted>/groups"
    result = await transport.request_json("GET", f"{connection.base_url}/groups")
    raise_for_hue_error(result, endpoint=endpoint)
    if not isinstance(result, dict):
        raise HueApiError(f"{endpoint} returned {type(result).__name__}, expected object", endpoint=endpoint)

    def _order(group_id: str) -> tuple[int, str]:
        return (int(group_id), "") if group_id.isdigit() else (0, group_id)

    return [
        Group.from_resource(group_id, result[group_id])
        for group_id in sorted(result, key=_order)
        if isinstance(result[group_id], dict)
    ]


async def save_group(transport: Transport, connection: BridgeConnection, group: Group) -> None:
    """Push the group's on-state to the bridge."""
    endpoint = f"{connection.host}/api/<redacted>/groups/{group.id}/action"
    result = await transport.request_json(
        "PUT",
        f"{connection.base_url}/groups/{group.id}/action",
        {"on": group.on},
    )
    raise_for_hue_error(result, endpoint=endpoint)
