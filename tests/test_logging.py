import logging

import pytest

from chatstream.core.config import settings
from chatstream.core.logging import get_logger, log_checkpoint, log_startup_info


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())


@pytest.fixture
def captured():
    app_logger = get_logger()
    handler = ListHandler()
    previous_level = app_logger.level
    app_logger.addHandler(handler)
    app_logger.setLevel(logging.INFO)
    yield handler.messages
    app_logger.removeHandler(handler)
    app_logger.setLevel(previous_level)


def test_startup_banner_reports_pipeline_settings(captured):
    log_startup_info()

    banner = "\n".join(captured)
    assert f"Retrieval pipeline: temperature={settings.RETRIEVAL_TEMPERATURE}" in banner
    assert f"top_k={settings.RETRIEVAL_TOP_K}" in banner
    assert f"Tool pipeline: temperature={settings.TOOL_TEMPERATURE}" in banner
    assert settings.OLLAMA_BASE_URL in banner


def test_checkpoint_line_truncates_long_values(captured):
    log_checkpoint(get_logger("tests"), "condense", standalone_question="q" * 150, documents=2)

    assert captured == [f"stage=condense standalone_question='{'q' * 100}...' documents=2"]
