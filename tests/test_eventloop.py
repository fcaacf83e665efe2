import socket
import threading
import time

import pytest

from reactornet.channel import Channel
from reactornet.eventloop import EventLoop


@pytest.fixture
def loop():
    ev = EventLoop()
    yield ev
    ev.close()


def _run_timer_program(ev, scale):
    msgs = []

    def print_msg(msg):
        msgs.append(msg)
        if len(msgs) == 20:
            ev.quit()

    def cancel(timer_id):
        ev.cancel_timer(timer_id)

    ev.run_after(1 * scale, lambda: print_msg("once1"))
    ev.run_after(1.5 * scale, lambda: print_msg("once1.5"))
    ev.run_after(2.5 * scale, lambda: print_msg("once2.5"))
    ev.run_after(3.5 * scale, lambda: print_msg("once3.5"))
    t45 = ev.run_after(4.5 * scale, lambda: print_msg("once4.5"))
    ev.run_after(4.2 * scale, lambda: cancel(t45))
    ev.run_after(4.8 * scale, lambda: cancel(t45))
    ev.run_every(2 * scale, lambda: print_msg("every2"))
    t3 = ev.run_every(3 * scale, lambda: print_msg("every3"))
    ev.run_after(9.001 * scale, lambda: cancel(t3))
    return msgs


def test_timer_program_from_source(loop):
    msgs = _run_timer_program(loop, 0.05)
    loop.run_after(10, loop.quit)
    loop.loop()
    assert len(msgs) == 20
    assert msgs[0] == "once1"
    assert "once4.5" not in msgs
    onces = [m for m in msgs if m.startswith("once")]
    assert onces == ["once1", "once1.5", "once2.5", "once3.5"]
    assert 2 <= msgs.count("every3") <= 3


def test_one_loop_per_thread(loop):
    with pytest.raises(RuntimeError):
        EventLoop()


def test_current_returns_loop_and_clears_on_close():
    ev = EventLoop()
    assert EventLoop.current() is ev
    ev.close()
    assert EventLoop.current() is None


def test_run_in_loop_runs_immediately_in_loop_thread(loop):
    called = []
    loop.run_in_loop(lambda: called.append(1))
    assert called == [1]


def test_queue_in_loop_from_other_thread_runs_in_loop_thread(loop):
    seen = []

    def task():
        seen.append((threading.get_ident(), loop.is_in_loop_thread()))
        loop.quit()

    worker = threading.Thread(target=lambda: loop.queue_in_loop(task))
    worker.start()
    worker.join()
    loop.run_after(5, loop.quit)
    loop.loop()
    assert seen == [(threading.get_ident(), True)]
    assert EventLoop.current() is loop


def test_quit_from_other_thread_wakes_loop(loop):
    timer = threading.Timer(0.05, loop.quit)
    start = time.monotonic()
    timer.start()
    loop.loop()
    timer.join()
    assert time.monotonic() - start < 5
    assert EventLoop.current() is loop


def test_cancel_timer_before_it_fires(loop):
    fired = []
    timer_id = loop.run_after(0.02, lambda: fired.append(1))
    loop.cancel_timer(timer_id)
    loop.run_after(0.06, loop.quit)
    loop.loop()
    assert fired == []


def test_run_every_repeats(loop):
    ticks = []

    def tick():
        ticks.append(1)
        if len(ticks) == 3:
            loop.quit()

    timer_id = loop.run_every(0.01, tick)
    loop.run_after(5, loop.quit)
    loop.loop()
    assert len(ticks) == 3
    loop.cancel_timer(timer_id)
    loop.run_after(0.05, loop.quit)
    loop.loop()
    assert len(ticks) == 3
    assert EventLoop.current() is loop


def test_assert_in_loop_thread_from_other_thread(loop):
    errors = []

    def check():
        try:
            loop.assert_in_loop_thread()
        except RuntimeError as exc:
            errors.append(exc)

    worker = threading.Thread(target=check)
    worker.start()
    worker.join()
    assert len(errors) == 1
    assert loop.is_in_loop_thread() is True


def test_channel_read_dispatch(loop):
    a, b = socket.socketpair()
    try:
        got = []
        channel = Channel(loop, a.fileno())

        def on_read():
            got.append(a.recv(16))
            loop.quit()

        channel.read_callback = on_read
        channel.enable_reading()
        assert channel.is_none_event() is False
        b.send(b"ping")
        loop.run_after(5, loop.quit)
        loop.loop()
        channel.disable_all()
        assert channel.is_none_event() is True
        assert channel.is_writing() is False
        channel.remove()
        assert got == [b"ping"]
    finally:
        a.close()
        b.close()