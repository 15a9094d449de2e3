"""
Tests for expiring reviewer messages.
"""

from prq.services.messages import MessageBoard


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_message_expires_after_ttl():
    clock = FakeClock()
    board = MessageBoard(ttl=7.0, clock=clock)

    board.set_success("Saved")
    clock.now += 6.9
    assert board.success == "Saved"

    clock.now += 0.1
    assert board.success == ""


def test_setting_one_kind_clears_the_other():
    board = MessageBoard(clock=FakeClock())

    board.set_error("Failed")
    board.set_success("Saved")
    assert board.error == ""
    assert board.success == "Saved"

    board.set_error("Failed again")
    assert board.success == ""
    assert board.error == "Failed again"


def test_clear_removes_both():
    board = MessageBoard(clock=FakeClock())
    board.set_error("Failed")

    board.clear()

    assert board.error == ""
    assert board.success == ""
