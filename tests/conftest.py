import sys
from pathlib import Path

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from coastal_obs.core.rate_limiter import RateLimiter


@pytest.fixture
def limiter():
    """Rate limiter that never sleeps."""
    return RateLimiter({}, sleep=lambda seconds: None)
