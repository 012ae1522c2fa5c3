from __future__ import annotations
"""Simple finite state machine utility for enforcing allowed status transitions.

Usage:
    from catalog_admin.utils.fsm import TransitionValidator
    REQUEST_FSM = TransitionValidator({
        'pending': {'approved', 'rejected'},
        'approved': set(),
        'rejected': set(),
    }, terminal_error=AlreadyResolved)
    REQUEST_FSM.assert_can_transition(current_status, target_status)

Leaving a terminal state raises ``terminal_error``; any other disallowed move
raises InvalidInput.
"""
from typing import Dict, Set, Type
from catalog_admin.errors import AuthzError, InvalidInput

class TransitionValidator:
    def __init__(self, graph: Dict[str, Set[str]], field_name: str = 'status',
                 terminal_error: Type[AuthzError] = InvalidInput):
        self.graph = graph
        self.field_name = field_name
        self.terminal_error = terminal_error

    def is_terminal(self, state: str) -> bool:
        return state in self.graph and not self.graph[state]

    def assert_can_transition(self, current: str, target: str):
        allowed = self.graph.get(current, set())
        if target in allowed:
            return True
        if self.is_terminal(current):
            raise self.terminal_error()
        raise InvalidInput(f"Invalid {self.field_name} transition {current} -> {target}")

__all__ = ['TransitionValidator']
