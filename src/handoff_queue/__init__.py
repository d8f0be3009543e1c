"""Handoff Queue - priority work distribution for escalated support conversations."""

__version__ = "0.1.0"
