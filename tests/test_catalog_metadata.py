"""
Unit tests for metadata discovery and validation.
"""
import json

import pytest

from catalog_metadata import (
    REQUIRED_FIELDS,
    MetadataCollector,
    load_apps,
    load_metadata,
    load_valid_categories,
    metadata_path,
)
from conftest import make_app


class TestMetadataCollector:
    """Test recursive metadata.json discovery."""

    def test_finds_nested_files(self, repo, add_metadata):
        add_metadata("octo/apps/zeta", make_app("Zeta", "Games"))
        add_metadata("octo/apps/alpha", make_app("Alpha", "Games"))
        (repo / "repositories" / "octo" / "README.md").write_text("not metadata")

        files = MetadataCollector(repo / "repositories", repo).discover_all()

        assert [f.relative_path for f in files] == [
            "repositories/octo/apps/alpha/metadata.json",
            "repositories/octo/apps/zeta/metadata.json",
        ]
        assert [f.directory_path for f in files] == ["octo/apps/alpha", "octo/apps/zeta"]
        assert all(f.full_path.is_absolute() for f in files)

    def test_only_exact_filename_matches(self, repo):
        directory = repo / "repositories" / "octo"
        directory.mkdir()
        (directory / "metadata.json.bak").write_text("{}")
        (directory / "Metadata.json").write_text("{}")

        assert MetadataCollector(repo / "repositories", repo).discover_all() == []

    def test_missing_directory_warns_and_returns_empty(self, tmp_path, capsys):
        files = MetadataCollector(tmp_path / "nope", tmp_path).discover_all()

        assert files == []
        assert "does not exist" in capsys.readouterr().err

    def test_symlink_loop_is_skipped(self, repo, add_metadata, capsys):
        add_metadata("octo/apps/chess", make_app("Chess", "Games"))
        (repo / "repositories" / "octo" / "apps" / "loop").symlink_to(repo / "repositories" / "octo")

        files = MetadataCollector(repo / "repositories", repo).discover_all()

        assert [f.directory_path for f in files] == ["octo/apps/chess"]
        assert "symlink loop" in capsys.readouterr().err

    def test_file_at_repositories_root_has_empty_directory_path(self, repo, add_metadata):
        add_metadata("", make_app("Root", "Games"))

        (metadata_file,) = MetadataCollector(repo / "repositories", repo).discover_all()

        assert metadata_file.directory_path == ""
        assert metadata_file.relative_path == "repositories/metadata.json"

    def test_unreadable_directory_is_skipped(self, repo, add_metadata, monkeypatch, capsys):
        add_metadata("good/app", make_app("Good", "Games"))
        bad = repo / "repositories" / "bad"
        bad.mkdir()

        collector = MetadataCollector(repo / "repositories", repo)
        original_iterdir = type(bad).iterdir

        def iterdir(self):
            if self == bad:
                raise PermissionError("denied")
            return original_iterdir(self)

        monkeypatch.setattr(type(bad), "iterdir", iterdir)
        files = collector.discover_all()

        assert [f.directory_path for f in files] == ["good/app"]
        assert "Could not read directory" in capsys.readouterr().err


class TestLoadMetadata:
    """Test parsing and required field validation."""

    def load(self, repo, add_metadata, content, **kwargs):
        add_metadata("octo/apps/thing", content)
        (metadata_file,) = MetadataCollector(repo / "repositories", repo).discover_all()
        return load_metadata(metadata_file, **kwargs)

    def test_valid_entry_gets_file_path(self, repo, add_metadata):
        app = self.load(repo, add_metadata, make_app("Thing", "Games", icon="icon.png"))

        assert app["name"] == "Thing"
        assert app["icon"] == "icon.png"
        assert app["filePath"] == "repositories/octo/apps/thing"
        assert metadata_path(app) == "repositories/octo/apps/thing/metadata.json"

    @pytest.mark.parametrize("field", REQUIRED_FIELDS)
    def test_missing_required_field_is_skipped(self, repo, add_metadata, capsys, field):
        content = make_app("Thing", "Games")
        del content[field]

        assert self.load(repo, add_metadata, content) is None
        assert f"missing or empty field '{field}'" in capsys.readouterr().err

    @pytest.mark.parametrize("value", ["", None])
    def test_empty_required_field_is_skipped(self, repo, add_metadata, value):
        assert self.load(repo, add_metadata, make_app("Thing", "Games", version=value)) is None

    def test_malformed_json_is_skipped(self, repo, add_metadata, capsys):
        assert self.load(repo, add_metadata, "{not json") is None
        assert "Skipping repositories/octo/apps/thing/metadata.json" in capsys.readouterr().err

    def test_non_object_is_skipped(self, repo, add_metadata, capsys):
        assert self.load(repo, add_metadata, "[1, 2, 3]") is None
        assert "expected a JSON object" in capsys.readouterr().err

    @pytest.mark.parametrize("field, value", [("category", 5), ("name", ["Thing"]), ("category", {"a": 1})])
    def test_non_string_name_or_category_is_skipped(self, repo, add_metadata, capsys, field, value):
        content = make_app("Thing", "Games")
        content[field] = value

        assert self.load(repo, add_metadata, content) is None
        assert f"field '{field}' must be a string" in capsys.readouterr().err

    def test_custom_required_fields(self, repo, add_metadata):
        content = make_app("Thing", "Games")
        del content["category"]

        app = self.load(repo, add_metadata, content, required=("name",))

        assert app is not None
        assert "category" not in app


class TestLoadApps:
    """Test loading a batch of metadata files."""

    def test_counts_skipped_entries(self, repo, add_metadata):
        add_metadata("a", make_app("A", "Games"))
        broken = make_app("B", "Games")
        del broken["version"]
        add_metadata("b", broken)
        add_metadata("c", "garbage")

        apps, skipped = load_apps(MetadataCollector(repo / "repositories", repo).discover_all())

        assert [a["name"] for a in apps] == ["A"]
        assert skipped == 2

    def test_all_required_fields_present_in_loaded_apps(self, repo, add_metadata):
        for index in range(3):
            add_metadata(f"app{index}", make_app(f"App{index}", "Tools"))

        apps, _ = load_apps(MetadataCollector(repo / "repositories", repo).discover_all())

        for app in apps:
            for field in REQUIRED_FIELDS:
                assert app[field] not in (None, "")


class TestLoadValidCategories:
    """Test the categories configuration file."""

    def test_json_list(self, tmp_path):
        path = tmp_path / "categories.json"
        path.write_text(json.dumps(["Games", "Themes", "Utilities"]))

        assert load_valid_categories(path) == ["Games", "Themes", "Utilities"]

    def test_yaml_list(self, tmp_path):
        path = tmp_path / "categories.yaml"
        path.write_text("- Games\n- Themes\n")

        assert load_valid_categories(path) == ["Games", "Themes"]

    def test_missing_file_gives_empty_list(self, tmp_path, capsys):
        assert load_valid_categories(tmp_path / "categories.json") == []
        assert "Could not load" in capsys.readouterr().err

    def test_wrong_shape_gives_empty_list(self, tmp_path):
        path = tmp_path / "categories.json"
        path.write_text('{"Games": 1}')

        assert load_valid_categories(path) == []
