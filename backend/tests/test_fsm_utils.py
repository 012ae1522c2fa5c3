from catalog_admin.errors import AlreadyResolved, InvalidInput
from catalog_admin.services.promotion import REQUEST_FSM
from catalog_admin.utils.fsm import TransitionValidator
import pytest


def test_transition_validator_allows_valid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    assert fsm.assert_can_transition('A', 'B') is True


def test_transition_validator_blocks_invalid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    with pytest.raises(InvalidInput):
        fsm.assert_can_transition('A', 'C')


def test_terminal_state_raises_configured_error():
    assert REQUEST_FSM.is_terminal('approved')
    assert REQUEST_FSM.is_terminal('rejected')
    assert not REQUEST_FSM.is_terminal('pending')
    with pytest.raises(AlreadyResolved):
        REQUEST_FSM.assert_can_transition('approved', 'rejected')
    with pytest.raises(AlreadyResolved):
        REQUEST_FSM.assert_can_transition('rejected', 'rejected')
