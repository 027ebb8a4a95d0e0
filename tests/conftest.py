"""
Pytest fixtures for rezcore tests
"""

import logging

import pytest

from tests.factories import make_plan_hash_input

CONFIG_KEYS = ('REZCORE_LOG_LEVEL', 'REZCORE_OUTPUT_FORMAT')


@pytest.fixture(autouse=True)
def reset_rezcore_environment(monkeypatch):
    """Keep REZCORE_* variables and CLI log handlers from leaking between tests"""
    for key in CONFIG_KEYS:
        monkeypatch.delenv(key, raising=False)

    yield

    logger = logging.getLogger("rezcore")
    for handler in [h for h in logger.handlers if getattr(h, "_rezcore", False)]:
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture(scope="session")
def golden_plan_input():
    """Frozen plan hash input reused across hash determinism tests"""
    return make_plan_hash_input()
