from __future__ import annotations

import io
import os
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest import mock

from stock_check import handler
from stock_check.config import ConfigurationError
from stock_check.models import CheckResult, CheckSuccess


ENV = {
    "TARGET_URL": "https://shop.example.test/product/42",
    "TO_EMAIL": "alerts@example.test",
    "FROM_EMAIL": "bot@example.test",
    "AWS_REGION": "us-east-1",
}


class TestLambdaHandler(unittest.TestCase):
    def setUp(self) -> None:
        handler.reset_runner()
        self.addCleanup(handler.reset_runner)

    def test_returns_response_dict_and_reuses_runner(self) -> None:
        fake_runner = mock.Mock()
        fake_runner.run = mock.Mock(
            return_value=CheckSuccess(notified=False, result=CheckResult(exists=False, text="", says_add_to_cart=False, locked=True))
        )
        with mock.patch.dict(os.environ, ENV, clear=True):
            with mock.patch("stock_check.handler.StockCheckRunner", return_value=fake_runner) as runner_cls:
                first = handler.lambda_handler({"source": "aws.events"}, None)
                handler.lambda_handler({}, None)

        self.assertEqual(first, {"ok": True, "notified": False, "exists": False, "text": "", "saysAddToCart": False, "locked": True})
        runner_cls.assert_called_once()
        config = runner_cls.call_args.args[0]
        self.assertEqual(config.target_url, ENV["TARGET_URL"])
        fake_runner.run.assert_any_call({"source": "aws.events"})

    def test_configuration_error_escapes(self) -> None:
        with mock.patch.dict(os.environ, {"TARGET_URL": "nope", "TO_EMAIL": "a@b.co", "FROM_EMAIL": "c@d.co"}, clear=True):
            with mock.patch("stock_check.handler.StockCheckRunner") as runner_cls:
                with redirect_stderr(io.StringIO()), redirect_stdout(io.StringIO()):
                    with self.assertRaises(ConfigurationError):
                        handler.lambda_handler({}, None)
        runner_cls.assert_not_called()

    def test_configuration_error_is_remembered_for_the_process(self) -> None:
        bad = {"TARGET_URL": "nope", "TO_EMAIL": "a@b.co", "FROM_EMAIL": "c@d.co"}
        with mock.patch("stock_check.handler.StockCheckRunner") as runner_cls:
            with mock.patch("stock_check.handler.load_config", wraps=handler.load_config) as load:
                with redirect_stderr(io.StringIO()), redirect_stdout(io.StringIO()):
                    with mock.patch.dict(os.environ, bad, clear=True):
                        with self.assertRaises(ConfigurationError) as first:
                            handler.lambda_handler({}, None)
                    with mock.patch.dict(os.environ, ENV, clear=True):
                        with self.assertRaises(ConfigurationError) as second:
                            handler.lambda_handler({}, None)

        self.assertIs(first.exception, second.exception)
        self.assertEqual(load.call_count, 1)
        runner_cls.assert_not_called()


if __name__ == "__main__":
    unittest.main()
