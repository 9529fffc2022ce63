"""Conversation-state engine.

This package provides the next-action table, the confirmation gate, and
the TurnEngine that drives the model/tool cycle.
"""

from parley.engine.actions import NextAction, next_action
from parley.engine.gate import ConfirmationGate, PendingConfirmation
from parley.engine.turn import CANCELLED_ERROR, DECLINED_MESSAGE, TurnEngine

__all__ = [
    "CANCELLED_ERROR",
    "DECLINED_MESSAGE",
    "ConfirmationGate",
    "NextAction",
    "PendingConfirmation",
    "TurnEngine",
    "next_action",
]
