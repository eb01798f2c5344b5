from clinicrelay.scheduling import ScheduleSlot
from clinicrelay.session import CallSession
from clinicrelay.states import CallState
from clinicrelay.transcript import Speaker


def test_new_session_starts_connecting():
    s = CallSession(target_phone="+15550000")
    assert s.state == CallState.CONNECTING
    assert s.provider_conversation_id is None
    assert s.pending_user_response is False


def test_ids_are_unique():
    a = CallSession(target_phone="+15550000")
    b = CallSession(target_phone="+15550000")
    assert a.id != b.id
    assert a.id.startswith("call_")


def test_transcript_lines_keep_insertion_order(session):
    session.append_line(Speaker.AGENT, "Hello")
    session.append_line(Speaker.RECEPTIONIST, "Hi")
    session.append_line(Speaker.AGENT, "Bye")
    assert [line.text for line in session.transcript_lines] == ["Hello", "Hi", "Bye"]


def test_snapshot_shape(session):
    session.append_line(Speaker.AGENT, "Hello")
    session.offered_slots = [ScheduleSlot(day="TUE", date="20", time="02:00 PM")]
    snap = session.snapshot()
    assert snap["id"] == session.id
    assert snap["state"] == "connecting"
    assert snap["clinic"] == "City Clinic"
    assert snap["transcript_length"] == 1
    assert snap["transcript"][0]["speaker"] == "Agent"
    assert snap["offered_slots"] == [{"day": "TUE", "date": "20", "time": "02:00 PM"}]
    assert snap["ended_at"] is None
