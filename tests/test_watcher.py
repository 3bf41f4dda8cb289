"""Tests for the printer watcher."""

import threading
import time
import unittest
from unittest.mock import Mock, patch

import printer
import watcher
from models import Printer


USB = Printer(name="Canon_XK130", uri="usb://Canon/XK130", status="idle", is_default=True)
BT = Printer(name="Label_BT", uri="bluetooth://00:11", status="idle")
NET = Printer(name="Office_Laser", uri="ipp://10.0.0.5/ipp/print", status="disabled")
P1 = Printer(name="P1", uri="ipp://10.0.0.7/ipp", status="paused")


class TestCheckOnce(unittest.TestCase):
    """Test a single watcher pass."""

    def _run_pass(self, printers, disabled, **kwargs):
        on_resume = Mock()
        w = watcher.PrinterWatcher(on_resume=on_resume, **kwargs)
        with patch.object(printer, "list_printers", return_value=printers), \
             patch.object(printer, "is_printer_enabled", side_effect=lambda n: n not in disabled), \
             patch.object(printer, "enable_printer", return_value="ok") as enable:
            w.check_once()
        return enable, on_resume

    def test_allow_listed_paused_printer_is_resumed(self):
        enable, on_resume = self._run_pass([USB, P1], {"P1"}, printer_names=["P1"])
        enable.assert_called_once_with("P1")
        on_resume.assert_called_once_with("P1")

    def test_resumed_every_pass_while_still_paused(self):
        on_resume = Mock()
        w = watcher.PrinterWatcher(printer_names=["P1"], on_resume=on_resume)
        with patch.object(printer, "list_printers", return_value=[P1]), \
             patch.object(printer, "is_printer_enabled", return_value=False), \
             patch.object(printer, "enable_printer", return_value="ok") as enable:
            w.check_once()
            w.check_once()
        self.assertEqual(enable.call_count, 2)
        self.assertEqual(on_resume.call_count, 2)

    def test_default_candidates_skip_network_printers(self):
        enable, on_resume = self._run_pass([USB, BT, NET], {"Canon_XK130", "Label_BT", "Office_Laser"})
        self.assertEqual([c.args[0] for c in enable.call_args_list], ["Canon_XK130", "Label_BT"])
        self.assertEqual(on_resume.call_count, 2)

    def test_enabled_printers_left_alone(self):
        enable, on_resume = self._run_pass([USB, BT], set())
        enable.assert_not_called()
        on_resume.assert_not_called()

    def test_allow_listed_printer_missing_from_discovery(self):
        enable, _ = self._run_pass([USB], {"P1"}, printer_names=["P1"])
        enable.assert_not_called()

    def test_errors_go_to_callback(self):
        on_error = Mock()
        w = watcher.PrinterWatcher(on_error=on_error)
        err = printer.DiscoveryError("lpstat gone")
        with patch.object(printer, "list_printers", side_effect=err):
            w.check_once()
        on_error.assert_called_once_with(err)

    def test_enable_error_goes_to_callback(self):
        on_error = Mock()
        w = watcher.PrinterWatcher(on_error=on_error)
        with patch.object(printer, "list_printers", return_value=[USB]), \
             patch.object(printer, "is_printer_enabled", return_value=False), \
             patch.object(printer, "enable_printer", side_effect=printer.EnableError("denied")):
            w.check_once()
        self.assertIsInstance(on_error.call_args[0][0], printer.EnableError)

    def test_failing_error_callback_is_contained(self):
        w = watcher.PrinterWatcher(on_error=Mock(side_effect=ValueError("boom")))
        with patch.object(printer, "list_printers", side_effect=RuntimeError("x")):
            with self.assertLogs("watcher", level="ERROR"):
                w.check_once()

    def test_default_error_handler_logs(self):
        w = watcher.PrinterWatcher()
        with patch.object(printer, "list_printers", side_effect=RuntimeError("x")):
            with self.assertLogs("watcher", level="WARNING"):
                w.check_once()


class TestWatcherLifecycle(unittest.TestCase):
    """Test start/stop of the background loop."""

    def setUp(self):
        self.passes = 0
        self.first_pass = threading.Event()

        def list_printers():
            self.passes += 1
            self.first_pass.set()
            return []

        self.patch = patch.object(printer, "list_printers", side_effect=list_printers)
        self.patch.start()

    def tearDown(self):
        self.patch.stop()

    def test_start_runs_first_pass_immediately(self):
        w = watcher.start_monitor(interval=60)
        try:
            self.assertTrue(self.first_pass.wait(2))
            self.assertTrue(w.running)
        finally:
            w.stop()
            w.join(2)
        self.assertEqual(self.passes, 1)

    def test_stop_prevents_further_passes(self):
        w = watcher.start_monitor(interval=0.01)
        self.assertTrue(self.first_pass.wait(2))
        w.stop()
        w.join(2)
        self.assertEqual(w.state, watcher.STOPPED)
        count = self.passes
        time.sleep(0.05)
        self.assertEqual(self.passes, count)

    def test_loop_keeps_going_after_errors(self):
        self.patch.stop()
        calls = []
        done = threading.Event()

        def flaky():
            calls.append(1)
            if len(calls) >= 3:
                done.set()
            raise printer.DiscoveryError("transient")

        self.patch = patch.object(printer, "list_printers", side_effect=flaky)
        self.patch.start()
        w = watcher.start_monitor(interval=0.01, on_error=Mock())
        try:
            self.assertTrue(done.wait(2))
        finally:
            w.stop()
            w.join(2)

    def test_cannot_restart(self):
        w = watcher.start_monitor(interval=60)
        with self.assertRaises(RuntimeError):
            w.start()
        w.stop()
        w.join(2)
        with self.assertRaises(RuntimeError):
            w.start()
        w.stop()

    def test_new_watcher_is_idle(self):
        w = watcher.PrinterWatcher()
        self.assertEqual(w.state, watcher.IDLE)
        self.assertFalse(w.running)


if __name__ == '__main__':
    unittest.main()
