"""Pytest configuration and shared fixtures."""

import logging

import logfire
import pytest


logger = logging.getLogger(__name__)


@pytest.fixture(scope="session", autouse=True)
def quiet_logfire() -> None:
    """Keep spans local during tests."""
    logfire.configure(send_to_logfire=False, console=False)


@pytest.fixture
def sample_signup() -> dict[str, str]:
    """Returns valid sign-up form data."""
    return {
        "email": "new.owner@example.com",
        "password": "walkies123",
        "nickname": "보리아빠",
        "role": "OWNER",
    }
