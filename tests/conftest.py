"""Shared pytest fixtures for dep-inspector tests."""

from __future__ import annotations

import pytest

GO_MOD = """\
module example.com/consumer

go 1.21

require (
\tgithub.com/foo/bar v1.2.3
\tgolang.org/x/sys v0.10.0 // indirect
)
"""

GO_SUM = """\
github.com/foo/bar v1.2.3 h1:abc=
github.com/foo/bar v1.2.3/go.mod h1:def=
golang.org/x/sys v0.10.0 h1:ghi=
"""


@pytest.fixture
def module_dir(tmp_path):
    """A Go module directory holding a go.mod and go.sum."""
    (tmp_path / "go.mod").write_text(GO_MOD)
    (tmp_path / "go.sum").write_text(GO_SUM)
    return tmp_path


@pytest.fixture
def go_mod():
    return GO_MOD


@pytest.fixture
def go_sum():
    return GO_SUM
