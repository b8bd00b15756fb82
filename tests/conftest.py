"""Shared fixtures: isolated home and project directories."""

import json
from pathlib import Path

import pytest

from core.config import SyncConfig
from core.filesystem import FileSystemAccessor


def _write_json(path: Path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding='utf-8')


def _write_text(path: Path, content: str):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding='utf-8')


@pytest.fixture
def home_dir(tmp_path):
    """User-level configuration root, kept apart from the real home."""
    home = tmp_path / 'home'
    home.mkdir()
    return home


@pytest.fixture
def project_dir(tmp_path):
    project = tmp_path / 'project'
    project.mkdir()
    return project


@pytest.fixture
def config(home_dir):
    return SyncConfig(home_dir=home_dir)


@pytest.fixture
def fs():
    return FileSystemAccessor()


@pytest.fixture
def write_json():
    return _write_json


@pytest.fixture
def write_text():
    return _write_text
