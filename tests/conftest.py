import json
from pathlib import Path

import pytest

from catalog_timestamps import TimestampSource, TimestampUnavailable


class FakeTimestamps(TimestampSource):
    """Fixed timestamps per path, default for anything else"""

    def __init__(self, stamps=None, default=1_700_000_000):
        self.stamps = dict(stamps or {})
        self.default = default
        self.calls = []

    def resolve(self, path):
        self.calls.append(path)
        if self.default is None and path not in self.stamps:
            raise TimestampUnavailable(path)
        return self.stamps.get(path, self.default)


def make_app(name, category, **extra):
    app = {
        "name": name,
        "category": category,
        "description": f"{name} description",
        "version": "1.0.0",
        "commit": "abc123",
        "owner": "octo",
        "repo": "apps",
        "path": f"apps/{name.lower()}",
    }
    app.update(extra)
    return app


@pytest.fixture
def repo(tmp_path):
    """A repository root with an empty repositories/ tree"""
    (tmp_path / "repositories").mkdir()
    return tmp_path


@pytest.fixture
def add_metadata(repo):
    def _add(relative_dir, content):
        directory = repo / "repositories" / relative_dir
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / "metadata.json"
        if isinstance(content, str):
            path.write_text(content, encoding="utf-8")
        else:
            path.write_text(json.dumps(content), encoding="utf-8")
        return path
    return _add


@pytest.fixture
def fake_timestamps():
    return FakeTimestamps()


def read_json(path: Path):
    return json.loads(path.read_text(encoding="utf-8"))
