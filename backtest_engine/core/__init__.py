"""Core run lifecycle primitives."""

from .state_machine import RunState, StateMachine

__all__ = ["RunState", "StateMachine"]
