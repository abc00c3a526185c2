import logging

import pytest


@pytest.fixture(autouse=True)
def reset_log_handlers():
    """Drop stream handlers installed by the CLI so later tests don't log to a closed capture."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)
