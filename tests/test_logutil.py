from __future__ import annotations

import io
import os
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest import mock

from stock_check.logutil import format_event, log_event, warn_event


class TestFormatEvent(unittest.TestCase):
    def test_plain_values(self) -> None:
        line = format_event("done", execution_id="exec-1", ok=True, duration_ms=12)
        self.assertEqual(line, "[stock-check] done execution_id=exec-1 ok=True duration_ms=12")

    def test_strings_with_spaces_or_equals_are_quoted(self) -> None:
        line = format_event("result", text="Add to Cart", url="https://x.test/?a=b", empty="")
        self.assertEqual(line, "[stock-check] result text='Add to Cart' url='https://x.test/?a=b' empty=''")


class TestEventSinks(unittest.TestCase):
    def test_info_goes_to_stdout_and_respects_toggle(self) -> None:
        with mock.patch.dict(os.environ, {"STOCK_CHECK_LOG": "1"}):
            with redirect_stdout(io.StringIO()) as out:
                log_event("start", execution_id="a")
        self.assertEqual(out.getvalue(), "[stock-check] start execution_id=a\n")

        with mock.patch.dict(os.environ, {"STOCK_CHECK_LOG": "0"}):
            with redirect_stdout(io.StringIO()) as out:
                log_event("start", execution_id="a")
        self.assertEqual(out.getvalue(), "")

    def test_warnings_always_go_to_stderr(self) -> None:
        with mock.patch.dict(os.environ, {"STOCK_CHECK_LOG": "0"}):
            with redirect_stderr(io.StringIO()) as err:
                warn_event("slow", duration_ms=20001)
        self.assertEqual(err.getvalue(), "[stock-check] slow duration_ms=20001\n")


if __name__ == "__main__":
    unittest.main()
