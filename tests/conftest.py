"""
Pytest config.

Local imports like `import nhc` rely on the repo root being on sys.path. When invoking a global
`pytest` entrypoint without an editable install that doesn't happen reliably during collection,
so we pin it here.

Builders and fake fetchers live in `factories.py` so tests never touch the network (except the
loopback sockets used by the noise port tests).
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()


@pytest.fixture
def node_address():
    from nhc.core.models import NodeAddress

    return NodeAddress(url="http://node.example")


@pytest.fixture
def fixed_clock():
    from factories import NOW_USECS

    return lambda: NOW_USECS
