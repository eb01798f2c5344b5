from clinicrelay.states import CallState, TRANSITIONS, can_transition


def test_all_four_states_exist():
    assert {s.value for s in CallState} == {"connecting", "active", "on_hold", "ended"}


def test_transcript_states():
    assert CallState.ACTIVE.admits_transcript
    assert CallState.ON_HOLD.admits_transcript
    assert not CallState.CONNECTING.admits_transcript
    assert not CallState.ENDED.admits_transcript


def test_only_on_hold_admits_pending():
    assert CallState.ON_HOLD.admits_pending
    assert not CallState.ACTIVE.admits_pending
    assert not CallState.CONNECTING.admits_pending


def test_terminal_state():
    assert CallState.ENDED.is_terminal
    assert TRANSITIONS[CallState.ENDED] == set()


class TestTransitions:
    def test_connecting_goes_active_or_ended(self):
        assert can_transition(CallState.CONNECTING, CallState.ACTIVE)
        assert can_transition(CallState.CONNECTING, CallState.ENDED)
        assert not can_transition(CallState.CONNECTING, CallState.ON_HOLD)

    def test_hold_round_trip(self):
        assert can_transition(CallState.ACTIVE, CallState.ON_HOLD)
        assert can_transition(CallState.ON_HOLD, CallState.ACTIVE)

    def test_nothing_leaves_ended(self):
        for state in CallState:
            assert not can_transition(CallState.ENDED, state)
