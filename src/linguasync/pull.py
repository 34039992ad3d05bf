"""Pull reconciliation: build, fetch and (via ``deploy``) distribute translations.

``fetch`` resolves the branch read-only, optionally asks the service to build
the export, downloads the branch archive, purges the staging directory and
unpacks the archive into it, then stores the requested status documents
next to the unpacked files. ``pull`` is ``fetch`` followed by ``deploy``.

Any failure aborts the run; whatever was already unpacked stays in staging.
"""

from __future__ import annotations

import shutil
import tempfile
import time
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, Dict, List, Optional, Tuple

from .branches import BranchHandle, resolve_branch
from .client import ExportStatus
from .context import SyncContext
from .errors import ConfigurationError, RemoteProtocolError
from .observability import log_debug, log_info, timeit

if TYPE_CHECKING:
    from .deploy import DeployReport


STATUS_DOWNLOAD_FILENAME = "linguasync_status.json"


def status_file_name(language: Optional[str] = None) -> str:
    """Staging file name of the status document for ``language`` (None = all)."""
    if not language:
        return STATUS_DOWNLOAD_FILENAME
    return f"linguasync_status_{language}.json"


@dataclass
class FetchReport:
    branch: BranchHandle
    staging_dir: Path
    export_status: Optional[ExportStatus] = None
    files: List[Path] = field(default_factory=list)
    status_files: List[Path] = field(default_factory=list)


def build_options(context: SyncContext) -> Dict[str, bool]:
    build = context.config.build
    return {
        "skip_untranslated_strings": build.skip_untranslated_strings,
        "skip_untranslated_files": build.skip_untranslated_files,
        "export_approved_only": build.export_approved_only,
    }


def build_translations(context: SyncContext, branch: BranchHandle) -> ExportStatus:
    """Ask the service to build the export and wait for it.

    ``skipped`` (nothing changed since the last build) is accepted as is.

    Raises:
        RemoteProtocolError: If the build fails or doesn't finish in time.
    """
    settings = context.config.build
    if branch.is_root:
        log_info("Asking the service to build translations")
    else:
        log_info(f'Asking the service to build translations for branch "{branch.name}"')

    status = context.client.request_export(branch.name, build_options(context))
    expiry = time.monotonic() + settings.timeout
    while status is ExportStatus.in_progress:
        if time.monotonic() >= expiry:
            raise RemoteProtocolError(
                f"Timed out while waiting for build to finish (timeout = {settings.timeout} s)"
            )
        log_debug("Waiting for build", seconds=settings.poll_interval)
        time.sleep(settings.poll_interval)
        status = context.client.export_status(branch.name)

    if status is ExportStatus.failed:
        raise RemoteProtocolError(f"Failed to build translations with status: {status.value}")
    if status is ExportStatus.skipped:
        log_info("Translations are already up to date, build skipped")
    else:
        log_info("Successfully built translations")
    return status


def purge_directory(path: Path) -> None:
    """Empty ``path``, creating it when missing. The directory itself is kept."""
    if not path.exists():
        log_debug("Creating staging folder", path=path)
        path.mkdir(parents=True)
        return
    if not path.is_dir():
        raise ConfigurationError(f'Download folder "{path}" isn\'t a folder')
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


def unpack_archive(archive: BinaryIO, destination: Path) -> List[Path]:
    """Extract a zip archive below ``destination``.

    Returns the extracted files in archive order.

    Raises:
        RemoteProtocolError: If the archive is corrupt or an entry would be
            written outside ``destination``.
    """
    root = destination.resolve()
    extracted: List[Path] = []
    try:
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                target = (root / info.filename).resolve()
                if target != root and root not in target.parents:
                    raise RemoteProtocolError(f'Archive entry "{info.filename}" points outside the download folder')
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                log_debug("Writing archive entry", entry=info.filename)
                with zf.open(info) as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                extracted.append(target)
    except zipfile.BadZipFile as exc:
        raise RemoteProtocolError(f"Failed to unpack translations archive: {exc}") from exc
    return extracted


def download_status_files(context: SyncContext, staging: Path) -> List[Path]:
    """Store each distinct status query's raw response in ``staging``."""
    written: List[Path] = []
    languages = dict.fromkeys(status_file.language or None for status_file in context.config.status_files)
    for language in languages:
        content = context.client.get_status(language)
        target = staging / status_file_name(language)
        log_info(f'Writing translations status to "{target}"')
        target.write_bytes(content)
        written.append(target)
    return written


def fetch(context: SyncContext, *, build: Optional[bool] = None) -> FetchReport:
    """Download the branch's translations into the staging directory.

    Args:
        context: Run context
        build: Override ``build.enabled``

    Raises:
        ConfigurationError: If no file sets are configured.
        BranchNotFoundError: If the branch doesn't exist remotely.
        RemoteProtocolError: If any remote call fails.
    """
    if not context.config.file_sets:
        raise ConfigurationError("No file sets are defined")

    staging = context.staging_dir
    with timeit("fetch", branch=context.branch_name) as info:
        snapshot = context.describe()
        branch = resolve_branch(context.client, snapshot, context.branch_name, context.root_branch)
        report = FetchReport(branch=branch, staging_dir=staging)

        do_build = context.config.build.enabled if build is None else build
        if do_build:
            report.export_status = build_translations(context, branch)

        log_info("Downloading translations")
        with tempfile.TemporaryFile() as spool:
            try:
                size = context.client.download_archive(branch.name, spool)
            except RemoteProtocolError as exc:
                if exc.status_code == 404:
                    raise RemoteProtocolError(
                        f'Could not find any files in branch "{branch.name or context.root_branch}"',
                        code=exc.code,
                        remote_message=exc.remote_message,
                        status_code=exc.status_code,
                    ) from exc
                raise
            log_debug("Downloaded archive", bytes=size)
            spool.seek(0)
            purge_directory(staging)
            report.files = unpack_archive(spool, staging)

        if report.files:
            log_info(f"Successfully downloaded {len(report.files)} files")
        else:
            log_info("No translations available for this project!")

        report.status_files = download_status_files(context, staging)
        info.update(files=len(report.files), status_files=len(report.status_files))
    return report


def pull(context: SyncContext, *, build: Optional[bool] = None) -> Tuple[FetchReport, "DeployReport"]:
    """Fetch translations, then deploy them to their configured locations."""
    from .deploy import deploy

    fetch_report = fetch(context, build=build)
    return fetch_report, deploy(context)
