"""
Shared fixtures for the hierarchy browser tests.

Puts the repository root on sys.path so `hier_browser` imports without an install, and
provides a small connectivity report in its record, container and CSV forms.
"""

from __future__ import annotations

import os
import sys
from typing import List

import pytest

# -----------------------------------------------------------------------------
# Path Configuration
# -----------------------------------------------------------------------------
_REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _REPO_ROOT not in sys.path:
    sys.path.insert(0, _REPO_ROOT)

from hier_browser.record_loader import RawRecord, RecordSetContainer  # noqa: E402


# -----------------------------------------------------------------------------
# Shared Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def sample_records() -> List[RawRecord]:
    """Five rows covering violations, positive slack, an internal pair and a reversed row."""
    return [
        RawRecord("top/a", "top/b", 5, -2.5, -10.0, "to"),
        RawRecord("top/b", "top/c", 12, -0.5, -1.0, "to"),
        RawRecord("top/a", "top/a/x", 1, 0.0, 0.0, "from"),
        RawRecord("top/c", "top/d", 40, 0.3, 0.0, "to"),
        RawRecord("top/a/x", "top/d", 7, -4.0, -30.0, "to"),
    ]


@pytest.fixture
def record_set(sample_records: List[RawRecord]) -> RecordSetContainer:
    return RecordSetContainer.from_records(sample_records)


@pytest.fixture
def csv_bytes() -> bytes:
    return (
        b"hier,connnecting_hier,connections,wns,tns,direction\n"
        b"top/a,top/b,5,-2.5,-10,to\n"
        b"top/b,top/c,12,-0.5,-1,to\n"
        b"top/a,top/a/x,1,0,0,from\n"
    )
