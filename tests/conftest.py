import sys
from pathlib import Path

import pytest

pytest_plugins = [
    "tests.fixtures.http_fixtures",
    "tests.fixtures.model_fixtures",
    "tests.fixtures.service_fixtures",
]

# conftest.py -> tests -> project root
project_root = Path(__file__).resolve().parent.parent

# Add the project root to sys.path so 'import langtutor' resolves without installing.
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


@pytest.fixture
def anyio_backend():
    """Run coroutine tests on asyncio only."""
    return "asyncio"
