"""Tests for the scheduler loop: heartbeat gating, start/stop, visibility."""
from __future__ import annotations

from cadence.scheduler.engine import Scheduler
from cadence.scheduler.pulse import ManualPulse


def every_tick(calls: list, clock):
    """A task due on every tick, recording the tick time."""
    return {"name": "ticker", "interval": 0, "callback": lambda task: calls.append(clock())}


class TestHeartbeatGating:
    def test_only_ticks_past_heartbeat(self, make_scheduler, clock, pulse):
        calls = []
        s = make_scheduler(250)
        s.add(every_tick(calls, clock))
        s.start()

        for now in (0, 100, 200, 300):
            clock.now = now
            pulse.pump()

        assert calls == [300]
        assert s.last_tick_at == 300

    def test_gate_measures_from_last_tick(self, make_scheduler, clock, pulse):
        calls = []
        s = make_scheduler(250)
        s.add(every_tick(calls, clock))
        s.start()

        for now in (300, 550, 551, 800, 802):
            clock.now = now
            pulse.pump()

        assert calls == [300, 551, 802]

    def test_step_reports_whether_it_ticked(self, make_scheduler):
        s = make_scheduler(100)
        s.start()
        assert s.step(100) is False
        assert s.step(101) is True
        assert s.step(150) is False

    def test_raised_heartbeat_applies_to_next_pulse(self, make_scheduler, clock, pulse):
        calls = []
        s = make_scheduler(100)
        s.add(every_tick(calls, clock))
        s.start()

        clock.now = 101
        pulse.pump()
        s.change_wait(500)
        clock.now = 400
        pulse.pump()
        clock.now = 602
        pulse.pump()

        assert calls == [101, 602]


class TestStartStop:
    def test_start_arms_one_pulse(self, make_scheduler, pulse):
        s = make_scheduler(0)
        assert s.start()
        assert s.start()
        assert s.running is True
        assert pulse.pending == 1

    def test_each_pulse_rearms(self, make_scheduler, clock, pulse):
        s = make_scheduler(0)
        s.start()
        for _ in range(5):
            clock.advance(10)
            assert pulse.pump() == 1
        assert pulse.pending == 1

    def test_stop_lets_pulse_in_flight_finish_then_goes_dormant(self, make_scheduler, clock, pulse):
        s = make_scheduler(0)
        s.start()
        s.stop()
        assert s.running is False
        assert pulse.pending == 1

        clock.now = 10
        pulse.pump()
        assert pulse.pending == 0

    def test_restart_before_pending_pulse_does_not_double_arm(self, make_scheduler, pulse):
        s = make_scheduler(0)
        s.start()
        s.stop()
        s.start()
        assert pulse.pending == 1

    def test_restart_replaces_stale_pulse(self, make_scheduler, clock, pulse):
        calls = []
        s = make_scheduler(0)
        s.add(every_tick(calls, clock))
        s.start()
        s.stop()
        s.start()

        clock.now = 10
        assert pulse.pump() == 1
        assert calls == [10]
        assert pulse.pending == 1

    def test_failing_step_is_logged_and_loop_continues(self, make_scheduler, clock, pulse, caplog):
        calls = []
        failures = []

        def flaky_clock():
            if failures:
                raise RuntimeError(failures.pop())
            return clock()

        s = make_scheduler(0, clock=flaky_clock)
        s.add(every_tick(calls, clock))
        s.start()
        failures.append("clock stopped")

        clock.now = 10
        pulse.pump()
        assert "### Scheduler Loop step failed" in caplog.text
        assert "clock stopped" in caplog.text
        assert pulse.pending == 1

        clock.now = 20
        pulse.pump()
        assert calls == [20]

    def test_stop_from_callback(self, make_scheduler, clock, pulse):
        calls = []
        s = make_scheduler(0)

        def halt(task):
            calls.append(clock())
            s.stop()

        s.add({"name": "halt", "interval": 0, "callback": halt})
        s.start()
        clock.now = 10
        pulse.pump()

        assert calls == [10]
        assert s.running is False
        assert pulse.pending == 0

    def test_stop_preserves_due_work_without_catch_up(self, make_scheduler, clock, pulse):
        calls = []
        s = make_scheduler(0)
        s.add({"name": "poll", "interval": 100, "callback": lambda t: calls.append(clock())})
        s.start()

        for now in (100, 200):
            clock.now = now
            pulse.pump()
        assert calls == [100, 200]

        s.stop()
        clock.now = 250
        pulse.pump()  # in-flight pulse; no tick while stopped

        clock.now = 1000
        s.start()
        pulse.pump()
        assert calls == [100, 200, 1000]

        clock.now = 1001
        pulse.pump()
        assert calls == [100, 200, 1000]

    def test_start_without_event_loop_fails(self):
        s = Scheduler(0)
        result = s.start()
        assert not result
        assert s.running is False


class TestVisibility:
    def test_keep_alive_switches_to_fallback_when_hidden(self, clock):
        native, fallback = ManualPulse(), ManualPulse()
        s = Scheduler({"keep_alive": True}, clock=clock, pulse=native, fallback=fallback)
        s.start()
        assert s.pulse_source is native

        s.on_visibility_change(True)
        assert s.hidden is True
        assert s.pulse_source is fallback
        assert native.pending == 0
        assert fallback.pending == 1

        s.on_visibility_change(False)
        assert s.pulse_source is native
        assert native.pending == 1
        assert fallback.pending == 0

    def test_fallback_keeps_ticking(self, clock):
        calls = []
        native, fallback = ManualPulse(), ManualPulse()
        s = Scheduler({"keep_alive": True}, clock=clock, pulse=native, fallback=fallback)
        s.add(every_tick(calls, clock))
        s.start()
        s.on_visibility_change(True)

        clock.now = 10
        assert native.pump() == 0
        assert fallback.pump() == 1
        assert calls == [10]

    def test_without_keep_alive_native_stays(self, clock):
        native, fallback = ManualPulse(), ManualPulse()
        s = Scheduler(0, clock=clock, pulse=native, fallback=fallback)
        s.start()
        s.on_visibility_change(True)
        assert s.pulse_source is native
        assert native.pending == 1
        assert fallback.pending == 0

    def test_switch_while_stopped_does_not_arm(self, clock):
        native, fallback = ManualPulse(), ManualPulse()
        s = Scheduler({"keep_alive": True}, clock=clock, pulse=native, fallback=fallback)
        s.on_visibility_change(True)
        assert s.pulse_source is fallback
        assert fallback.pending == 0
