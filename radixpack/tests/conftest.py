"""Unit tests configuration file."""

import os

import pytest

TESTS_DIR = os.path.dirname(os.path.realpath(__file__))


def pytest_configure(config):
    """Disable verbose output when running tests."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False


@pytest.fixture
def example_schema_path():
    """Path of the schema file shared by the schema and CLI tests."""
    return os.path.join(TESTS_DIR, "schema", "example.radix")


@pytest.fixture
def example_schema(example_schema_path):
    with open(example_schema_path, encoding="utf-8") as f:
        return f.read()
