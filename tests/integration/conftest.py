"""Shared fixtures for integration tests

Integration tests run the whole pipeline against real files:
- Articles stored as HTML/Markdown/text in a temporary directory
- Corpus snapshots written by FileCacheStore
- The analyze_corpus CLI script

No network access is needed.
"""

import importlib.util
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent.parent

ARTICLE_FILES = {
    "tea.html": (
        "<html><head><title>Tea Time</title></head><body>"
        "<h1>Tea Time</h1>"
        "<p>I enjoy tea. We enjoyed it every morning! Enjoy life.</p>"
        "<p>Running late, the runner drank <a href='https://example.com'>green tea</a>.</p>"
        "</body></html>"
    ),
    "music.md": "# Music Notes\n\nThey enjoy music. Runners listen while running.\n",
    "garden.txt": "Garden diary\n\nThe gardener planted flowers. Flowers need water and patience.\n",
}


@pytest.fixture
def articles_dir(tmp_path):
    directory = tmp_path / "articles"
    directory.mkdir()
    for name, content in ARTICLE_FILES.items():
        (directory / name).write_text(content, encoding="utf-8")
    return directory


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / "cache"


@pytest.fixture
def cli():
    """The analyze_corpus script loaded as a module (main() is not called)"""
    spec = importlib.util.spec_from_file_location("analyze_corpus", PROJECT_ROOT / "scripts" / "analyze_corpus.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module
