from __future__ import annotations

import io
import logging
import unittest
from contextlib import redirect_stderr

from sheet_intake.log import (
    ROOT_LOGGER_NAME,
    SUMMARY_LEVEL,
    LabeledFormatter,
    log_summary,
    reset_logging,
    setup_logging,
)


class LoggingSetupTests(unittest.TestCase):
    def tearDown(self):
        reset_logging()

    def test_repeated_setup_keeps_a_single_handler(self):
        setup_logging()
        logger = setup_logging(verbose=True)
        self.assertEqual(logger.name, ROOT_LOGGER_NAME)
        self.assertEqual(len(logger.handlers), 1)
        self.assertEqual(logger.level, logging.DEBUG)

    def test_module_loggers_flow_into_the_package_handler(self):
        buffer = io.StringIO()
        with redirect_stderr(buffer):
            setup_logging()
            logging.getLogger("sheet_intake.parser").warning("preferred sheet missing")
            log_summary("2 new, 1 to update")
        output = buffer.getvalue()
        self.assertIn("WARN preferred sheet missing", output)
        self.assertIn("SUMMARY 2 new, 1 to update", output)

    def test_formatter_labels(self):
        record = logging.LogRecord("sheet_intake", SUMMARY_LEVEL, __file__, 1, "done", None, None)
        self.assertEqual(LabeledFormatter().format(record), "SUMMARY done")


if __name__ == "__main__":
    unittest.main()
