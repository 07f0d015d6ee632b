"""Every module in the package imports cleanly."""

import importlib
import pkgutil

import pytest

import unvcpfl_cli

MODULES = sorted(m.name for m in pkgutil.walk_packages(unvcpfl_cli.__path__, prefix="unvcpfl_cli."))


def test_modules_discovered():
    assert "unvcpfl_cli.profiles.store" in MODULES
    assert "unvcpfl_cli.main" in MODULES


@pytest.mark.parametrize("module_name", MODULES)
def test_module_imports(module_name):
    importlib.import_module(module_name)
