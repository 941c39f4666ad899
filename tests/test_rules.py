"""Tests for task file loading."""

import json

import pytest

from pys3sync.exceptions import S3SyncConfigError, ValidationError
from pys3sync.models import ActionKind
from pys3sync.sync.rules import expand_sources, load_task_file, rules_from_dicts


@pytest.fixture
def project(tmp_path):
    """Project directory with a dist/ tree."""
    dist = tmp_path / "dist"
    (dist / "css").mkdir(parents=True)
    (dist / "index.html").write_text("<html></html>")
    (dist / "css" / "site.css").write_text("body {}")
    (dist / "css" / "site.css.map").write_text("{}")
    (dist / "notes.txt").write_text("notes")
    return tmp_path


def write_task_file(directory, data):
    path = directory / "s3sync.json"
    path.write_text(json.dumps(data))
    return path


class TestExpandSources:
    """Tests for expand_sources function."""

    def test_globstar(self, project):
        files = expand_sources(["**/*.css"], project / "dist")
        assert files == ["css/site.css"]

    def test_negation(self, project):
        files = expand_sources(["**", "!**/*.map", "!notes.txt"], project / "dist")
        assert files == ["css/site.css", "index.html"]

    def test_plain_paths_must_exist(self, project):
        files = expand_sources(["index.html", "missing.html"], project / "dist")
        assert files == ["index.html"]

    def test_sorted_and_unique(self, project):
        files = expand_sources(["notes.txt", "*.txt", "index.html"], project / "dist")
        assert files == ["index.html", "notes.txt"]


class TestRulesFromDicts:
    """Tests for rules_from_dicts function."""

    def test_expanded_entry_gives_one_rule_per_file(self, project):
        entries = [{"expand": True, "cwd": "dist/", "src": ["**"], "dest": "site/"}]

        rules = rules_from_dicts(entries, project)

        assert [rule.dest for rule in rules] == [
            "site/css/site.css",
            "site/css/site.css.map",
            "site/index.html",
            "site/notes.txt",
        ]
        assert all(rule.expand for rule in rules)
        assert rules[0].src == ("css/site.css",)
        assert rules[0].cwd == str(project / "dist")

    def test_plain_entry_keeps_files_together(self, project):
        entries = [{"src": ["dist/index.html", "dist/notes.txt"], "dest": "first/"}]

        rules = rules_from_dicts(entries, project)

        assert len(rules) == 1
        assert rules[0].action == ActionKind.UPLOAD
        assert rules[0].src == ("dist/index.html", "dist/notes.txt")
        assert rules[0].cwd == str(project)

    def test_non_upload_entries(self, project):
        entries = [
            {"action": "download", "cwd": "backup/", "dest": "site/"},
            {"action": "delete", "dest": "old/", "exclude": "**/*.keep", "flipExclude": True},
            {"action": "copy", "src": "site/", "dest": "archive/"},
        ]

        rules = rules_from_dicts(entries, project)

        assert [rule.action for rule in rules] == [
            ActionKind.DOWNLOAD,
            ActionKind.DELETE,
            ActionKind.COPY,
        ]
        assert rules[0].cwd == str(project / "backup")
        assert rules[1].flip_exclude is True
        assert rules[2].src == ("site/",)

    def test_unknown_entry_key(self, project):
        with pytest.raises(ValidationError, match="unknown keys"):
            rules_from_dicts([{"dest": "a/", "rename": True}], project)

    def test_unknown_action(self, project):
        with pytest.raises(ValidationError, match="Unknown action"):
            rules_from_dicts([{"action": "move", "dest": "a/"}], project)


class TestLoadTaskFile:
    """Tests for load_task_file function."""

    def test_options_and_files(self, project):
        path = write_task_file(
            project,
            {
                "options": {
                    "bucket": "my-bucket",
                    "uploadConcurrency": 4,
                    "differential": True,
                    "gzipRename": "ext",
                },
                "files": [{"expand": True, "cwd": "dist/", "src": ["*.html"], "dest": "/"}],
            },
        )

        options, rules = load_task_file(path)

        assert options.bucket == "my-bucket"
        assert options.upload_concurrency == 4
        assert options.differential is True
        assert options.gzip_rename == "ext"
        assert [rule.dest for rule in rules] == ["index.html"]

    def test_named_tasks(self, project):
        path = write_task_file(
            project,
            {
                "options": {"bucket": "shared", "access": "private"},
                "tasks": {
                    "prod": {
                        "options": {"bucket": "prod-bucket"},
                        "files": [{"action": "delete", "dest": "old/"}],
                    },
                    "staging": {"files": []},
                },
            },
        )

        options, rules = load_task_file(path, "prod")

        assert options.bucket == "prod-bucket"
        assert options.access == "private"
        assert len(rules) == 1

    def test_task_required_when_several(self, project):
        path = write_task_file(project, {"tasks": {"a": {}, "b": {}}})
        with pytest.raises(ValidationError, match="choose one of: a, b"):
            load_task_file(path)

    def test_single_task_selected_implicitly(self, project):
        path = write_task_file(project, {"tasks": {"only": {"options": {"bucket": "b"}}}})
        options, rules = load_task_file(path)
        assert options.bucket == "b"
        assert rules == []

    def test_unknown_task(self, project):
        path = write_task_file(project, {"tasks": {"a": {}}})
        with pytest.raises(ValidationError, match="Unknown task"):
            load_task_file(path, "b")

    def test_unknown_option(self, project):
        path = write_task_file(project, {"options": {"colour": "blue"}, "files": []})
        with pytest.raises(ValidationError, match="Unknown option"):
            load_task_file(path)

    def test_invalid_json(self, project):
        path = project / "broken.json"
        path.write_text("{not json")
        with pytest.raises(S3SyncConfigError, match="Invalid JSON"):
            load_task_file(path)

    def test_missing_file(self, project):
        with pytest.raises(S3SyncConfigError, match="Cannot read"):
            load_task_file(project / "missing.json")
