from __future__ import annotations

import os
import unittest

from stock_check.availability import evaluate_availability
from stock_check.http_client import HttpClient


class TestLiveCheck(unittest.TestCase):
    @unittest.skipUnless(os.getenv("RUN_LIVE_TESTS", "").strip() == "1", "Set RUN_LIVE_TESTS=1 to enable live fetch tests.")
    def test_target_page_fetches_and_evaluates(self) -> None:
        url = os.getenv("LIVE_TARGET_URL", "").strip() or os.getenv("TARGET_URL", "").strip()
        if not url:
            self.skipTest("Set LIVE_TARGET_URL or TARGET_URL.")

        timeout_seconds = float(os.getenv("LIVE_TIMEOUT_SECONDS", "25"))
        res = HttpClient(timeout_seconds=timeout_seconds).fetch_text(url)

        self.assertTrue(res.ok, f"HTTP {res.status_code} {res.reason} when fetching {url}")
        self.assertTrue(res.text.strip())

        result = evaluate_availability(res.text)
        if not result.exists:
            self.assertTrue(result.locked)
            self.assertEqual(result.text, "")


if __name__ == "__main__":
    unittest.main()
