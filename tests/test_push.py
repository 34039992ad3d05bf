"""Tests for push reconciliation."""

from __future__ import annotations

import logging

import pytest

from linguasync.errors import ConfigurationError, RemoteProtocolError
from linguasync.file_sets import FileType, UpdateOption
from linguasync.push import SyncActionKind, plan_push, push


def _file_set(**overrides):
    data = {
        "language_files_folder": "src/lang",
        "base_file_name": "messages.properties",
        "export_pattern": "%locale%/messages_%locale_with_underscore%.properties",
    }
    data.update(overrides)
    return data


@pytest.fixture
def lang_dir(workspace):
    path = workspace / "src" / "lang"
    path.mkdir(parents=True)
    (path / "messages.properties").write_text("hello=Hello\n", encoding="utf-8")
    return path


class TestPush:
    """Tests for push()."""

    def test_existing_file_is_updated(self, service, make_context, lang_dir):
        """Target file already present: Update, no folder creation."""
        service.add_file("app/messages.properties")
        context = make_context(file_sets=[_file_set(remote_path="app")])

        report = push(context, confirmed=True)

        assert [action.kind for action in report.actions] == [SyncActionKind.UPDATE]
        assert service.operations("create_directory") == []
        assert service.operations("update_file") == [("update_file", "app/messages.properties", None)]
        assert service.node("app/messages.properties").content == b"hello=Hello\n"

    def test_missing_file_is_created(self, service, make_context, lang_dir):
        context = make_context(file_sets=[_file_set()])
        report = push(context, confirmed=True)
        assert [action.kind for action in report.actions] == [SyncActionKind.CREATE]
        assert service.operations("create_file") == [("create_file", "messages.properties", None)]
        options = service.node("messages.properties").options
        assert options["type"] is FileType.properties
        assert options["export_pattern"] == "%locale%/messages_%locale_with_underscore%.properties"
        assert options["escape_quotes"] == 0
        assert options["title"] is None

    def test_missing_local_file_is_skipped(self, service, make_context, lang_dir, caplog):
        """A missing local file skips that file set only."""
        (lang_dir / "errors.properties").write_text("e=E\n", encoding="utf-8")
        context = make_context(
            file_sets=[
                _file_set(base_file_name="absent.properties"),
                _file_set(base_file_name="errors.properties"),
            ]
        )

        with caplog.at_level(logging.WARNING, logger="linguasync"):
            report = push(context, confirmed=True)

        assert [action.kind for action in report.actions] == [SyncActionKind.SKIP, SyncActionKind.CREATE]
        assert "not found - upload skipped" in caplog.text
        assert service.operations("create_file") == [("create_file", "errors.properties", None)]

    def test_folders_provisioned(self, service, make_context, workspace):
        """remote_path and base file folders are created before upload."""
        folder = workspace / "res" / "values"
        folder.mkdir(parents=True)
        (folder / "strings.xml").write_text("<resources/>", encoding="utf-8")
        context = make_context(
            file_sets=[
                {
                    "language_files_folder": "res",
                    "base_file_name": "values/strings.xml",
                    "remote_path": "android",
                    "export_pattern": "values-%android_code%/strings.xml",
                }
            ]
        )

        report = push(context, confirmed=True)

        assert report.created_folders == ["android", "android/values"]
        assert service.operations("create_file") == [("create_file", "android/values/strings.xml", None)]
        assert service.node("android/values/strings.xml").options["type"] is FileType.android

    def test_branch_created_and_used(self, service, make_context, lang_dir):
        """A new branch is created, re-described, and passed with uploads."""
        context = make_context(branch="feature", file_sets=[_file_set(remote_path="app")])

        push(context, confirmed=True)

        assert service.operations("create_directory") == [
            ("create_directory", "feature", True),
            ("create_directory", "feature/app", False),
        ]
        assert service.operations("create_file") == [("create_file", "app/messages.properties", "feature")]
        assert service.node("feature/app/messages.properties") is not None

    def test_update_option_sent_unless_default(self, service, make_context, lang_dir):
        service.add_file("messages.properties")
        context = make_context(
            file_sets=[_file_set(update_option="update_as_unapproved", escape_quotes=2, title="Messages")]
        )
        push(context, confirmed=True)
        options = service.node("messages.properties").options
        assert options["update_option"] is UpdateOption.update_as_unapproved
        assert options["escape_quotes"] == 2
        assert options["title"] == "Messages"

    def test_default_update_option_not_sent(self, service, make_context, lang_dir):
        service.add_file("messages.properties")
        context = make_context(file_sets=[_file_set()])
        push(context, confirmed=True)
        assert service.node("messages.properties").options["update_option"] is None

    def test_push_defaults_apply(self, service, make_context, lang_dir):
        service.add_file("messages.properties")
        context = make_context(
            file_sets=[_file_set()],
            push={"escape_quotes": 3, "update_option": "update_without_changes"},
        )
        push(context, confirmed=True)
        options = service.node("messages.properties").options
        assert options["escape_quotes"] == 3
        assert options["update_option"] is UpdateOption.update_without_changes

    def test_not_confirmed(self, service, make_context, lang_dir):
        context = make_context(file_sets=[_file_set()])
        with pytest.raises(ConfigurationError, match="not confirmed"):
            push(context)
        assert service.calls == []

    def test_confirmed_by_config(self, service, make_context, lang_dir):
        context = make_context(file_sets=[_file_set()], push={"confirm": True})
        push(context)
        assert len(service.operations("create_file")) == 1

    def test_project_name_mismatch(self, service, make_context, lang_dir):
        """A different remote project aborts before any mutation."""
        context = make_context(project={"identifier": "demo", "name": "other"}, file_sets=[_file_set()])
        with pytest.raises(ConfigurationError, match="push aborted"):
            push(context, confirmed=True)
        assert service.mutations == []

    def test_remote_failure_aborts(self, service, make_context, lang_dir):
        """The first failed upload aborts the run with the file named."""
        (lang_dir / "errors.properties").write_text("e=E\n", encoding="utf-8")
        service.fail_on["create_file"] = RemoteProtocolError("boom", code="3", remote_message="Invalid")
        context = make_context(
            file_sets=[_file_set(), _file_set(base_file_name="errors.properties")]
        )
        with pytest.raises(RemoteProtocolError, match="messages.properties") as excinfo:
            push(context, confirmed=True)
        assert excinfo.value.code == "3"
        assert len(service.operations("create_file")) == 1

    def test_file_sets_pushed_in_order(self, service, make_context, lang_dir):
        """Each file set is uploaded before the next one provisions its folder."""
        (lang_dir / "errors.properties").write_text("e=E\n", encoding="utf-8")
        context = make_context(
            file_sets=[_file_set(), _file_set(base_file_name="errors.properties", remote_path="sub")]
        )

        push(context, confirmed=True)

        assert [call[0] for call in service.mutations] == ["create_file", "create_directory", "create_file"]

    def test_folder_failure_keeps_earlier_uploads(self, service, make_context, lang_dir):
        """A failed folder creation stops the run after earlier file sets are pushed."""
        (lang_dir / "errors.properties").write_text("e=E\n", encoding="utf-8")
        service.fail_on["create_directory"] = RemoteProtocolError("denied", code="13", remote_message="Denied")
        context = make_context(
            file_sets=[_file_set(), _file_set(base_file_name="errors.properties", remote_path="sub")]
        )

        with pytest.raises(RemoteProtocolError):
            push(context, confirmed=True)

        assert service.operations("create_file") == [("create_file", "messages.properties", None)]
        assert service.operations("create_directory") == [("create_directory", "sub", False)]
        assert service.node("messages.properties") is not None

    def test_escape_special_characters_sent(self, service, make_context, lang_dir):
        (lang_dir / "errors.properties").write_text("e=E\n", encoding="utf-8")
        service.add_file("errors.properties")
        context = make_context(
            file_sets=[
                _file_set(escape_special_characters=1),
                _file_set(base_file_name="errors.properties", escape_special_characters=0),
            ]
        )
        push(context, confirmed=True)
        assert service.node("messages.properties").options["escape_special_characters"] == 1
        assert service.node("errors.properties").options["escape_special_characters"] == 0

    def test_no_file_sets(self, make_context):
        with pytest.raises(ConfigurationError):
            push(make_context(), confirmed=True)


class TestPlanPush:
    """Tests for plan_push()."""

    def test_classification_is_deterministic(self, service, make_context, lang_dir):
        service.add_file("messages.properties")
        context = make_context(file_sets=[_file_set()])
        first = plan_push(context)
        second = plan_push(context)
        assert [a.kind for a in first.actions] == [a.kind for a in second.actions] == [SyncActionKind.UPDATE]

    def test_folder_named_like_file_is_create(self, service, make_context, lang_dir):
        """A folder with the push name isn't an existing file."""
        service.add_folder("messages.properties")
        report = plan_push(make_context(file_sets=[_file_set()]))
        assert report.actions[0].kind is SyncActionKind.CREATE

    def test_dry_run_makes_no_mutations(self, service, make_context, lang_dir):
        """Dry runs neither create branches nor folders."""
        context = make_context(branch="feature", file_sets=[_file_set(remote_path="app")])
        report = push(context, dry_run=True)
        assert report.dry_run
        assert report.branch.name == "feature"
        assert [a.kind for a in report.actions] == [SyncActionKind.CREATE]
        assert service.mutations == []

    def test_dry_run_existing_file(self, service, make_context, lang_dir):
        service.add_file("app/messages.properties")
        report = plan_push(make_context(file_sets=[_file_set(remote_path="app")]))
        assert report.actions[0].kind is SyncActionKind.UPDATE
        assert report.actions[0].remote_path == "app/messages.properties"

    def test_plan_does_not_provision(self, service, make_context, lang_dir):
        """Planning reports Create under a missing folder and creates nothing."""
        report = plan_push(make_context(file_sets=[_file_set(remote_path="app")]))
        assert [a.kind for a in report.actions] == [SyncActionKind.CREATE]
        assert report.created_folders == []
        assert service.mutations == []
