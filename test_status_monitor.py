import threading
import unittest
from unittest.mock import MagicMock, call

from exceptions import Exhausted, InvalidResponse, ServerFailure
from status_monitor import (
    MONITORING_STARTED_TITLE,
    NOW_CHARGING_BODY,
    STATUS_UPDATE_BODY,
    StatusMonitor,
    monitor_chargers,
)

URL = "https://api.wall-box.com/chargers/status/123"


def _exhausted() -> Exhausted:
    return Exhausted(URL, cause=ServerFailure(URL, cause="down", status_code=503))


class TestStatusMonitor(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.client.get_last_charge_duration.return_value = "1h 5m"
        self.notifier = MagicMock()
        self.sleep = MagicMock()

    def _monitor(self, codes):
        self.client.get_status_code.side_effect = codes
        return StatusMonitor(
            self.client, self.notifier, 123, poll_interval=30, sleep=self.sleep
        )

    def test_ready_charging_ready_sequence(self):
        monitor = self._monitor([161, 161, 193, 161])

        results = [monitor.poll_once() for _ in range(4)]

        self.assertEqual(results[0], (MONITORING_STARTED_TITLE, "Charger 123 is READY."))
        self.assertIsNone(results[1])
        self.assertEqual(results[2], ("READY -> CHARGING", NOW_CHARGING_BODY))
        self.assertEqual(results[3], ("CHARGING -> READY", "Charging finished after 1h 5m."))
        self.assertEqual(self.notifier.notify.call_count, 3)
        self.client.get_last_charge_duration.assert_called_once()
        self.assertEqual(monitor.previous, 161)

    def test_first_poll_always_notifies_once(self):
        for code in (0, 161, 193, 14, 166):
            self.notifier.reset_mock()
            monitor = self._monitor([code])

            monitor.poll_once()

            self.notifier.notify.assert_called_once()
            self.assertEqual(self.notifier.notify.call_args.args[0], MONITORING_STARTED_TITLE)
            self.assertTrue(monitor.tracking)

    def test_status_update_only_body(self):
        monitor = self._monitor([161, 178])

        monitor.poll_once()
        self.assertEqual(monitor.poll_once(), ("READY -> PAUSED", STATUS_UPDATE_BODY))
        self.client.get_last_charge_duration.assert_not_called()

    def test_discharging_counts_as_charging_class(self):
        monitor = self._monitor([196, 161])

        monitor.poll_once()
        title, body = monitor.poll_once()

        self.assertEqual(title, "DISCHARGING -> READY")
        self.assertIn("1h 5m", body)

    def test_switch_between_charging_codes(self):
        monitor = self._monitor([193, 194])

        monitor.poll_once()

        self.assertEqual(monitor.poll_once(), ("CHARGING -> CHARGING", NOW_CHARGING_BODY))

    def test_unknown_code_is_skipped(self):
        monitor = self._monitor([161, 999, 193])

        monitor.poll_once()
        with self.assertLogs(level="ERROR") as logs:
            self.assertIsNone(monitor.poll_once())
        self.assertIn("999", logs.output[0])
        self.assertEqual(monitor.previous, 161)

        self.assertEqual(monitor.poll_once(), ("READY -> CHARGING", NOW_CHARGING_BODY))

    def test_unknown_code_before_first_status(self):
        monitor = self._monitor([999, 161])

        self.assertIsNone(monitor.poll_once())
        self.assertFalse(monitor.tracking)
        self.assertEqual(monitor.poll_once()[0], MONITORING_STARTED_TITLE)

    def test_transient_failure_is_skipped(self):
        monitor = self._monitor([_exhausted(), InvalidResponse("bad"), 161])

        self.assertIsNone(monitor.poll_once())
        self.assertIsNone(monitor.poll_once())
        self.notifier.notify.assert_not_called()

        self.assertEqual(monitor.poll_once()[0], MONITORING_STARTED_TITLE)

    def test_duration_lookup_failure_still_notifies(self):
        self.client.get_last_charge_duration.side_effect = _exhausted()
        monitor = self._monitor([193, 161])

        monitor.poll_once()
        title, body = monitor.poll_once()

        self.assertEqual(title, "CHARGING -> READY")
        self.assertIn("duration unavailable", body)
        self.assertEqual(monitor.previous, 161)

    def test_run_sleeps_between_cycles(self):
        monitor = self._monitor([161, 161, 193])

        cycles = monitor.run(max_cycles=3)

        self.assertEqual(cycles, 3)
        self.assertEqual(self.sleep.call_args_list, [call(30), call(30)])
        self.assertEqual(self.notifier.notify.call_count, 2)

    def test_run_continues_after_failures(self):
        monitor = self._monitor([_exhausted(), 999, 161])

        self.assertEqual(monitor.run(max_cycles=3), 3)
        self.notifier.notify.assert_called_once()

    def test_notifier_failure_keeps_monitor_running(self):
        monitor = self._monitor([161, 193, 161])
        self.notifier.notify.side_effect = [RuntimeError("webhook down"), None, None]

        with self.assertLogs(level="ERROR") as logs:
            cycles = monitor.run(max_cycles=3)

        self.assertEqual(cycles, 3)
        self.assertIn("webhook down", logs.output[0])
        self.assertEqual(self.notifier.notify.call_count, 3)
        self.assertEqual(
            self.notifier.notify.call_args_list[1], call("READY -> CHARGING", NOW_CHARGING_BODY)
        )
        self.assertEqual(monitor.previous, 161)

    def test_stop_ends_loop(self):
        monitor = self._monitor([161] * 10)
        self.notifier.notify.side_effect = lambda title, body: monitor.stop()

        self.assertEqual(monitor.run(), 1)
        self.sleep.assert_not_called()

    def test_stopped_before_start(self):
        monitor = self._monitor([161])
        monitor.stop()

        self.assertEqual(monitor.run(), 0)
        self.client.get_status_code.assert_not_called()

    def test_stop_interrupts_sleep(self):
        self.client.get_status_code.side_effect = None
        self.client.get_status_code.return_value = 161
        notified = threading.Event()
        self.notifier.notify.side_effect = lambda title, body: notified.set()
        monitor = StatusMonitor(self.client, self.notifier, 123, poll_interval=3600)

        thread = threading.Thread(target=monitor.run)
        thread.start()
        self.assertTrue(notified.wait(timeout=5))
        monitor.stop()
        thread.join(timeout=5)

        self.assertFalse(thread.is_alive())


class TestMonitorChargers(unittest.TestCase):
    def test_one_monitor_per_charger(self):
        client = MagicMock()
        client.get_status_code.return_value = 161
        stop_event = threading.Event()
        seen = []
        lock = threading.Lock()

        def notify(title, body):
            with lock:
                seen.append(body)
                if len(seen) == 2:
                    stop_event.set()

        notifier = MagicMock()
        notifier.notify.side_effect = notify

        monitors = monitor_chargers(
            client, notifier, ["1", "2"], poll_interval=3600, stop_event=stop_event
        )

        self.assertEqual([m.charger_id for m in monitors], ["1", "2"])
        self.assertEqual(sorted(seen), ["Charger 1 is READY.", "Charger 2 is READY."])
        self.assertTrue(all(m.previous == 161 for m in monitors))


if __name__ == "__main__":
    unittest.main()
