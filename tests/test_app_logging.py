from pathlib import Path
from tempfile import TemporaryDirectory
import json
import logging
import unittest

from funnel.app_logging import log_with_fields, setup_logger


class AppLoggingTest(unittest.TestCase):
    def test_file_log_is_json_with_fields(self) -> None:
        with TemporaryDirectory() as temp_dir:
            log_path = Path(temp_dir) / "logs" / "funnel.log"
            logger = setup_logger(log_path)
            logger.handlers = [h for h in logger.handlers if isinstance(h, logging.FileHandler)]
            log_with_fields(logger, logging.WARNING, "queued_area_lost", dropped_jobs=3)
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()

            [line] = log_path.read_text(encoding="utf-8").splitlines()
            payload = json.loads(line)
            self.assertEqual(payload["message"], "queued_area_lost")
            self.assertEqual(payload["level"], "WARNING")
            self.assertEqual(payload["dropped_jobs"], 3)


if __name__ == "__main__":
    unittest.main()
