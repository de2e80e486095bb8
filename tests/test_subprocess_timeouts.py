"""
Tests for orchestrator subprocess timeouts.
"""

import unittest

from pbhost_cli.subprocess_timeouts import (
    TIMEOUT_BUILD,
    TIMEOUT_EXTENDED,
    TIMEOUT_LONG,
    TIMEOUT_NONE,
    TIMEOUT_QUICK,
    TIMEOUT_STANDARD,
    TIMEOUTS,
    get_timeout,
)


class TestSubprocessTimeouts(unittest.TestCase):
    def test_timeout_ordering(self):
        self.assertLess(TIMEOUT_QUICK, TIMEOUT_STANDARD)
        self.assertLess(TIMEOUT_STANDARD, TIMEOUT_LONG)
        self.assertLess(TIMEOUT_LONG, TIMEOUT_EXTENDED)
        self.assertLess(TIMEOUT_EXTENDED, TIMEOUT_BUILD)
        self.assertIsNone(TIMEOUT_NONE)

    def test_orchestrator_operations_are_bounded(self):
        """Every operation except following logs has a positive timeout."""
        for op, timeout in TIMEOUTS.items():
            if op == "compose_logs_follow":
                continue
            with self.subTest(op=op):
                self.assertIsInstance(timeout, int)
                self.assertGreater(timeout, 0)

    def test_operations_used_by_adapter_are_defined(self):
        for op in (
            "compose_version",
            "docker_info",
            "docker_ps",
            "docker_stats",
            "compose_ps",
            "compose_up",
            "compose_up_all",
            "compose_stop",
            "compose_restart",
            "docker_stop",
            "docker_rm",
            "docker_prune",
            "compose_logs",
            "compose_logs_follow",
            "docker_build",
        ):
            self.assertIn(op, TIMEOUTS)

    def test_get_timeout(self):
        self.assertEqual(get_timeout("docker_ps"), TIMEOUT_QUICK)
        self.assertEqual(get_timeout("compose_up"), TIMEOUT_LONG)
        self.assertEqual(get_timeout("docker_build"), TIMEOUT_BUILD)
        self.assertIsNone(get_timeout("compose_logs_follow"))

    def test_get_timeout_unknown_operation(self):
        self.assertEqual(get_timeout("unknown_operation"), TIMEOUT_STANDARD)
        self.assertEqual(get_timeout("unknown_operation", default=60), 60)


if __name__ == "__main__":
    unittest.main()
