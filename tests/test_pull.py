"""Tests for build, fetch and pull."""

from __future__ import annotations

import io
import zipfile

import pytest

from linguasync.branches import ROOT, BranchHandle
from linguasync.client import ExportStatus
from linguasync.errors import BranchNotFoundError, ConfigurationError, RemoteProtocolError
from linguasync.pull import (
    STATUS_DOWNLOAD_FILENAME,
    build_translations,
    fetch,
    pull,
    purge_directory,
    status_file_name,
    unpack_archive,
)


FILE_SET = {
    "language_files_folder": "src/lang",
    "base_file_name": "messages.properties",
    "export_pattern": "messages_%locale_with_underscore%.properties",
}


@pytest.fixture
def pull_context(make_context):
    def _make(branch="master", **sections):
        sections.setdefault("file_sets", [FILE_SET])
        sections.setdefault("build", {"poll_interval": 0.001, "timeout": 0.05})
        return make_context(branch=branch, **sections)

    return _make


class TestBuildTranslations:
    """Tests for build_translations()."""

    def test_built(self, service, pull_context):
        status = build_translations(pull_context(), ROOT)
        assert status is ExportStatus.built
        assert service.calls == [
            (
                "request_export",
                None,
                {
                    "skip_untranslated_strings": True,
                    "skip_untranslated_files": False,
                    "export_approved_only": False,
                },
            )
        ]

    def test_skipped_is_accepted(self, service, pull_context):
        """A skipped build still counts as success."""
        service.export_states = [ExportStatus.skipped]
        assert build_translations(pull_context(), ROOT) is ExportStatus.skipped

    def test_polls_until_finished(self, service, pull_context):
        service.export_states = [ExportStatus.in_progress, ExportStatus.in_progress, ExportStatus.finished]
        status = build_translations(pull_context(), BranchHandle("dev"))
        assert status is ExportStatus.finished
        assert service.operations("export_status") == [("export_status", "dev"), ("export_status", "dev")]

    def test_failed(self, service, pull_context):
        service.export_states = [ExportStatus.failed]
        with pytest.raises(RemoteProtocolError, match="Failed to build"):
            build_translations(pull_context(), ROOT)

    def test_timeout(self, service, pull_context):
        service.export_states = [ExportStatus.in_progress]
        with pytest.raises(RemoteProtocolError, match="Timed out"):
            build_translations(pull_context(), ROOT)

    def test_conflicting_skip_flags(self, pull_context):
        """Both skip flags together are rejected when the config is loaded."""
        with pytest.raises(ValueError, match="cannot be true"):
            pull_context(build={"skip_untranslated_strings": True, "skip_untranslated_files": True})


class TestPurgeDirectory:
    """Tests for purge_directory()."""

    def test_creates_missing(self, tmp_path):
        target = tmp_path / "a" / "b"
        purge_directory(target)
        assert target.is_dir()

    def test_removes_contents(self, tmp_path):
        (tmp_path / "old" / "nested").mkdir(parents=True)
        (tmp_path / "old" / "nested" / "x.txt").write_text("x")
        (tmp_path / "stale.txt").write_text("x")
        purge_directory(tmp_path)
        assert tmp_path.is_dir()
        assert list(tmp_path.iterdir()) == []

    def test_not_a_folder(self, tmp_path):
        target = tmp_path / "file"
        target.write_text("x")
        with pytest.raises(ConfigurationError, match="isn't a folder"):
            purge_directory(target)


class TestUnpackArchive:
    """Tests for unpack_archive()."""

    def _zip(self, entries):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            for name, content in entries.items():
                zf.writestr(name, content)
        buffer.seek(0)
        return buffer

    def test_extracts_nested(self, tmp_path):
        files = unpack_archive(self._zip({"de/app/messages_de.properties": b"a=b", "fr/": b""}), tmp_path)
        assert files == [(tmp_path / "de" / "app" / "messages_de.properties").resolve()]
        assert (tmp_path / "fr").is_dir()

    def test_rejects_escaping_entries(self, tmp_path):
        staging = tmp_path / "staging"
        staging.mkdir()
        with pytest.raises(RemoteProtocolError, match="outside the download folder"):
            unpack_archive(self._zip({"../evil.txt": b"x"}), staging)
        assert not (tmp_path / "evil.txt").exists()

    def test_corrupt_archive(self, tmp_path):
        with pytest.raises(RemoteProtocolError, match="unpack"):
            unpack_archive(io.BytesIO(b"not a zip"), tmp_path)


class TestFetch:
    """Tests for fetch()."""

    def test_downloads_into_staging(self, service, pull_context, workspace):
        service.set_archive({"de/messages_de.properties": b"a=b"})
        report = fetch(pull_context())

        staging = workspace / "build" / "linguasync"
        assert report.staging_dir == staging.resolve()
        assert (staging / "de" / "messages_de.properties").read_bytes() == b"a=b"
        assert report.export_status is ExportStatus.built
        assert report.branch is ROOT

    def test_stale_files_purged(self, service, pull_context, workspace):
        """Staging only ever holds the latest archive."""
        staging = workspace / "build" / "linguasync"
        (staging / "it").mkdir(parents=True)
        (staging / "it" / "messages_it.properties").write_text("old")
        service.set_archive({"de/messages_de.properties": b"a=b"})

        fetch(pull_context())

        assert not (staging / "it").exists()
        assert (staging / "de" / "messages_de.properties").exists()

    def test_no_build(self, service, pull_context):
        service.set_archive({"de/messages_de.properties": b"a=b"})
        report = fetch(pull_context(), build=False)
        assert report.export_status is None
        assert service.operations("request_export") == []

    def test_build_disabled_in_config(self, service, pull_context):
        service.set_archive({})
        fetch(pull_context(build={"enabled": False}))
        assert service.operations("request_export") == []

    def test_branch_archive(self, service, pull_context):
        service.add_branch("dev")
        service.set_archive({"de/messages_de.properties": b"dev"}, branch="dev")
        report = fetch(pull_context(branch="dev"))
        assert report.branch.name == "dev"
        assert service.operations("download_archive") == [("download_archive", "dev")]

    def test_missing_branch(self, service, pull_context):
        """Pull never creates branches."""
        with pytest.raises(BranchNotFoundError):
            fetch(pull_context(branch="feature"))
        assert service.mutations == []
        assert service.operations("download_archive") == []

    def test_empty_branch(self, service, pull_context):
        """A 404 download means the branch holds no files."""
        service.add_branch("dev")
        with pytest.raises(RemoteProtocolError, match='Could not find any files in branch "dev"') as excinfo:
            fetch(pull_context(branch="dev"), build=False)
        assert excinfo.value.status_code == 404

    def test_staging_untouched_on_failed_download(self, service, pull_context, workspace):
        staging = workspace / "build" / "linguasync"
        staging.mkdir(parents=True)
        (staging / "keep.txt").write_text("x")
        with pytest.raises(RemoteProtocolError):
            fetch(pull_context(), build=False)
        assert (staging / "keep.txt").exists()

    def test_status_files_deduplicated(self, service, pull_context, workspace):
        """One status request per distinct language."""
        service.set_archive({})
        service.status_documents = {None: b'[{"code": "de"}]', "fr": b'{"data": []}'}
        report = fetch(
            pull_context(
                status_files=[
                    {"target_file": "status/all.json"},
                    {"target_file": "status/all-again.json"},
                    {"target_file": "status/fr.json", "language": "fr"},
                ]
            ),
            build=False,
        )
        assert service.operations("get_status") == [("get_status", None), ("get_status", "fr")]
        staging = workspace / "build" / "linguasync"
        assert (staging / STATUS_DOWNLOAD_FILENAME).read_bytes() == b'[{"code": "de"}]'
        assert (staging / status_file_name("fr")).read_bytes() == b'{"data": []}'
        assert len(report.status_files) == 2

    def test_no_file_sets(self, pull_context):
        with pytest.raises(ConfigurationError):
            fetch(pull_context(file_sets=[]))


class TestPull:
    """Tests for pull()."""

    def test_fetch_then_deploy(self, service, pull_context, workspace):
        service.set_archive({"de/messages_de.properties": b"a=b", "fr/messages_fr.properties": b"c=d"})
        fetch_report, deploy_report = pull(pull_context())

        lang = workspace / "src" / "lang"
        assert (lang / "messages_de.properties").read_bytes() == b"a=b"
        assert (lang / "messages_fr.properties").read_bytes() == b"c=d"
        assert len(fetch_report.files) == 2
        assert len(deploy_report.deployed) == 2
