"""Test utilities for warble applications::

    from warble.testing import TestClient
"""

from warble.testing.client import TestClient
from warble.testing.sse import SSETestResult, parse_sse_frames

__all__ = [
    "SSETestResult",
    "TestClient",
    "parse_sse_frames",
]
