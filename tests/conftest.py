# Copyright (c) QuantCo and pydiverse contributors 2025-2025
# SPDX-License-Identifier: BSD-3-Clause

import logging
import os

import pytest

from pydiverse.replica.config import CONFIG_ENV_VAR, ReplicaConfig
from pydiverse.replica.util.structlog import setup_logging

# Setup

log_level = (
    logging.ERROR
    if os.environ.get("ERROR_ONLY", "0") != "0"
    else logging.INFO
    if os.environ.get("DEBUG", "0") == "0"
    else logging.DEBUG
)
setup_logging(log_level=log_level)


# Pytest Configuration


@pytest.fixture(autouse=True, scope="function")
def structlog_test_info(request):
    """Add testcase information to structlog context"""
    if os.environ.get("DEBUG", "0") == "0" and os.environ.get("LOG_TEST_NAME", "0") == "0":
        yield
        return

    import structlog

    with structlog.contextvars.bound_contextvars(testcase=request.node.name):
        yield


@pytest.fixture(autouse=True)
def isolated_default_config(monkeypatch):
    """Make sure no test picks up a config file from the developer's machine"""
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    ReplicaConfig.reset_default()
    yield
    ReplicaConfig.reset_default()


@pytest.fixture
def captured_logs():
    """Log entries emitted by loggers created during the test, as dicts"""
    import structlog
    from structlog.testing import LogCapture

    capture = LogCapture()
    previous = structlog.get_config()
    structlog.configure(
        processors=[capture],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        cache_logger_on_first_use=False,
    )
    yield capture.entries
    structlog.configure(**previous)
