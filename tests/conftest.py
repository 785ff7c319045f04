"""
Shared pytest fixtures and configuration for agentsync tests.
"""

import json
import os
import shutil
import tempfile

import pytest


@pytest.fixture
def temp_dir():
    """Create a temporary directory that's automatically cleaned up."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def isolated_home(temp_dir, monkeypatch):
    """Point HOME at an empty directory and chdir into a separate work dir."""
    home = os.path.join(temp_dir, "home")
    work = os.path.join(temp_dir, "work")
    os.makedirs(home)
    os.makedirs(work)
    monkeypatch.setenv("HOME", home)
    monkeypatch.chdir(work)
    return home, work


def write_file(path, content):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'w', encoding='utf-8', newline='') as f:
        f.write(content)
    return path


def read_file(path):
    with open(path, 'r', encoding='utf-8', newline='') as f:
        return f.read()


def write_config(directory, config, filename="agentsync.config.json"):
    """Write a config dict as JSON and return its path."""
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, filename)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(config, f, indent=2)
    return path


@pytest.fixture
def basic_project(temp_dir):
    """A template plus a config with two targets, none of them written yet."""
    write_file(os.path.join(temp_dir, "AGENTS_TEMPLATE.md"),
               "# Instructions for {{ AGENT_NAME }}\nUser: {{ USER }}\n")
    config_path = write_config(temp_dir, {
        "template_path": "AGENTS_TEMPLATE.md",
        "targets": [
            {"agent": "claude", "path": "CLAUDE.md", "variables": {"USER": "dev"}},
            {"agent": "codex", "path": "nested/AGENTS.md", "variables": {"USER": "dev"}},
        ],
    })
    return {
        "dir": temp_dir,
        "config": config_path,
        "claude": os.path.join(temp_dir, "CLAUDE.md"),
        "codex": os.path.join(temp_dir, "nested", "AGENTS.md"),
    }


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
