"""
Pytest configuration for the lazyseq tests.

Puts the repository root on the Python path so the tests run against the
working tree without installing the package.
"""

import sys
from pathlib import Path

# Add the parent directory (for lazyseq) and this directory (for test helpers) to the Python path
for path in (Path(__file__).parent.parent, Path(__file__).parent):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

import pytest

from recording import RecordingSequence


@pytest.fixture
def five():
    """Recording sequence over [1, 2, 3, 4, 5]"""
    return RecordingSequence([1, 2, 3, 4, 5])


@pytest.fixture
def empty():
    return RecordingSequence([])


@pytest.fixture
def failing_third():
    """Recording sequence whose third pull raises"""
    return RecordingSequence([1, 2, 3, 4, 5], fail_at=3, error_factory=lambda: IOError("read failed"))
