import pytest

from chatnorm.models import TokenInfo
from chatnorm.signatures import StaticSignatureProvider
from chatnorm.tool_utils import ToolNameCache

REASONING_SIG = "reasoning-sig"
TOOL_SIG = "tool-sig"


@pytest.fixture
def signatures():
    return StaticSignatureProvider(reasoning_signature=REASONING_SIG, tool_signature=TOOL_SIG)


@pytest.fixture
def name_cache():
    return ToolNameCache()


@pytest.fixture
def token():
    return TokenInfo(session_id="session-1", project_id="project-1")
