# tests/conftest.py
"""Pytest configuration and fixtures"""
import pytest
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from wildyak.core.engine.domain import Context, IncomingMessage, State, YakSession  # noqa: E402
from wildyak.infra.metrics import get_metrics_collector  # noqa: E402


async def empty_init(args, session):
    return {}


async def echo_init(args, session):
    """Context data is whatever the topic was entered with"""
    return args


def text_message(text, channel="web"):
    return IncomingMessage(channel=channel, text=text)


def global_state(yak_session, external_session=None):
    """State of a global context attached to ``yak_session``, as the orchestrator builds it"""
    return State(context=Context(topic=None, yak_session=yak_session), session=external_session)


@pytest.fixture
def yak_session():
    return YakSession(id="user_1", type="web")


@pytest.fixture
def external_session():
    return {"id": "user_1", "type": "web"}


@pytest.fixture(autouse=True)
def reset_metrics():
    get_metrics_collector().reset()
    yield
