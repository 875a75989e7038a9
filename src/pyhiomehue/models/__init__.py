"""Typed models for Hue bridge API payloads."""

from pyhiomehue.models.bridge import BridgeConfig, DiscoveredBridge
from pyhiomehue.models.group import Group, GroupAction, GroupState

__all__ = [
    "BridgeConfig",
    "DiscoveredBridge",
    "Group",
    "GroupAction",
    "GroupState",
]
