"""
Tests for the crud-admin CLI.
"""

import pytest
import typer
from typer.testing import CliRunner

from crud_admin.admin import AdminPool
from crud_admin.cli import app, load_pool

runner = CliRunner()


class TestLoadPool:
    """Test resolving module:attribute paths."""

    def test_factory(self):
        """A callable is called to build the pool."""
        pool = load_pool("sample_app:build_pool")
        assert isinstance(pool, AdminPool)
        assert pool.has_admin("admin.category")

    @pytest.mark.parametrize("path", [
        "sample_app:ACL_USERS",
        "sample_app:missing",
        "no_such_module:pool",
        "nonsense",
    ])
    def test_bad_paths(self, path):
        with pytest.raises(typer.BadParameter):
            load_pool(path)


class TestCommands:
    """Test CLI commands."""

    def test_routes(self):
        result = runner.invoke(app, ["routes", "sample_app:build_pool"])
        assert result.exit_code == 0
        assert "Test admin routes" in result.output

    def test_routes_bad_pool(self):
        result = runner.invoke(app, ["routes", "nonsense"])
        assert result.exit_code != 0

    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "Python" in result.output
