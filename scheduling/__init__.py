"""Publish-slot scheduling."""

from .slots import SlotAllocator, parse_slot

__all__ = [
    "SlotAllocator",
    "parse_slot",
]
