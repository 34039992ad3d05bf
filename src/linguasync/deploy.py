"""Deploy staged translations to their configured locations.

The staging directory holds one folder per service language code, each
mirroring the remote tree as exported. Every file below a language folder is
matched against the file sets' export patterns (prefixed with the file set's
push folder). The first matching file set decides where the file goes:

* without ``target_file_name``: the matched path, placeholder values passed
  through the file set's conversions, minus the ``remote_path`` prefix;
* with ``target_file_name``: that template, with ``%crowdin_code%``,
  ``%crowdin_code_with_underscore%`` and the matched placeholders filled in.

The result is resolved against the file set's ``language_files_folder``.
Files are copied byte for byte.
"""

from __future__ import annotations

import json
import os
import re
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .config_schema import FileSetConfig, StatusFileConfig
from .context import SyncContext
from .errors import ConfigurationError, LocalIOError
from .file_sets import (
    CROWDIN_CODE,
    CROWDIN_CODE_UNDERSCORE,
    PLACEHOLDER_PATTERN,
    PathPlaceholder,
    compile_export_pattern,
    matches_filter,
)
from .observability import log_debug, log_error, log_info, log_warning, timeit
from .path_resolver import format_path, push_folder, resolve_local
from .pull import status_file_name


@dataclass(frozen=True)
class MatchInfo:
    file_set: FileSetConfig
    pattern: "re.Pattern[str]"
    placeholders: Tuple[PathPlaceholder, ...]


@dataclass
class DeployReport:
    deployed: List[Tuple[Path, Path]] = field(default_factory=list)
    skipped: List[Path] = field(default_factory=list)
    status_files: List[Path] = field(default_factory=list)


def build_matches(file_sets: List[FileSetConfig]) -> List[MatchInfo]:
    """Compile each file set's push folder + export pattern, in configuration order."""
    matches: List[MatchInfo] = []
    for file_set in file_sets:
        try:
            pattern, placeholders = compile_export_pattern(push_folder(file_set), file_set.export_pattern)
        except ValueError as exc:
            raise ConfigurationError(f'Invalid export pattern for file set "{file_set.title}": {exc}') from exc
        matches.append(MatchInfo(file_set, pattern, tuple(placeholders)))
    return matches


def _target_from_match(match: "re.Match[str]", info: MatchInfo, name: str) -> str:
    file_set = info.file_set
    pieces: List[str] = []
    position = 0
    for group in range(1, (match.re.groups or 0) + 1):
        pieces.append(name[position:match.start(group)])
        pieces.append(file_set.convert(match.group(group)))
        position = match.end(group)
    pieces.append(name[position:])
    target = "".join(pieces)

    remote_path = format_path(file_set.remote_path)
    if remote_path and target.startswith(remote_path + "/"):
        target = target[len(remote_path) + 1:]
    return target


def _target_from_template(match: "re.Match[str]", info: MatchInfo, code: str) -> str:
    file_set = info.file_set
    template = file_set.target_file_name or ""

    def replace(m: "re.Match[str]") -> str:
        token = m.group()
        placeholder = PathPlaceholder.of(token)
        if placeholder is not None:
            if placeholder in info.placeholders:
                return file_set.convert(match.group(info.placeholders.index(placeholder) + 1))
            raise ConfigurationError(
                f'target_file_name refers placeholder "{token}" not found in the exported '
                f'file name "{file_set.export_pattern}"'
            )
        lowered = token.lower()
        if lowered == CROWDIN_CODE:
            return file_set.convert(code)
        if lowered == CROWDIN_CODE_UNDERSCORE:
            return file_set.convert(file_set.convert(code).replace("-", "_"))
        raise ConfigurationError(f'Unknown placeholder "{token}"')

    return PLACEHOLDER_PATTERN.sub(replace, template)


def resolve_target(relative: str, matches: List[MatchInfo]) -> Optional[Tuple[MatchInfo, str]]:
    """Map a staged path ``<code>/<exported path>`` to (file set, target name).

    Returns None for files outside a language folder or matching no file set.
    """
    parts = relative.split("/", 1)
    if len(parts) < 2 or not parts[1]:
        return None
    code, name = parts
    for info in matches:
        match = info.pattern.fullmatch(name)
        if match is None:
            continue
        if info.file_set.target_file_name:
            target = _target_from_template(match, info, code)
        else:
            target = _target_from_match(match, info, name)
        if not target:
            raise LocalIOError(f'Resolved target filename for "{relative}" is blank')
        return info, target
    return None


def _included(file_set: FileSetConfig, relative: str, file_name: str) -> bool:
    if file_set.includes and not matches_filter(relative, file_name, file_set.includes):
        return False
    if file_set.excludes and matches_filter(relative, file_name, file_set.excludes):
        return False
    return True


def _iter_staged(staging: Path):
    """Staged files below ``staging``, hidden folders skipped, in sorted order."""
    for dirpath, dirnames, filenames in os.walk(staging):
        hidden = [name for name in dirnames if name.startswith(".")]
        for name in hidden:
            log_debug("Skipping folder", path=Path(dirpath) / name)
            dirnames.remove(name)
        dirnames.sort()
        for name in sorted(filenames):
            yield Path(dirpath) / name


def deploy_status_file(status_file: StatusFileConfig, source: Path, base_dir: Path) -> Path:
    """Write a JSON status document with language codes converted."""
    try:
        document = json.loads(source.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise LocalIOError(f'Could not parse status document "{source}": {exc}') from exc

    languages = document
    if isinstance(document, dict):
        languages = document.get("languages", document.get("data", []))
    if isinstance(languages, list):
        for entry in languages:
            if isinstance(entry, dict) and isinstance(entry.get("code"), str):
                entry["code"] = status_file.convert(entry["code"])

    target = resolve_local(base_dir, status_file.target_file)
    target.parent.mkdir(parents=True, exist_ok=True)
    log_info(f'Deploying status file "{target}" from "{source}"')
    target.write_text(json.dumps(document, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return target


def deploy(context: SyncContext) -> DeployReport:
    """Copy staged translations into the configured language folders.

    Raises:
        ConfigurationError: If no file sets are configured, the staging
            directory is missing, or a target template is invalid.
    """
    config = context.config
    if not config.file_sets:
        raise ConfigurationError("No file sets are defined")
    staging = context.staging_dir
    if not staging.is_dir():
        if not staging.exists():
            raise ConfigurationError(f"Download folder ({staging}) doesn't exist. Call fetch first.")
        raise ConfigurationError(f"Download folder ({staging}) isn't a folder.")

    report = DeployReport()
    matches = build_matches(config.file_sets)
    with timeit("deploy", staging=str(staging)) as info:
        for path in _iter_staged(staging):
            relative = path.relative_to(staging).as_posix()
            if "/" not in relative:
                # Root level holds status documents, not translations
                continue
            try:
                resolved = resolve_target(relative, matches)
            except LocalIOError as exc:
                log_error(f'Unable to process file "{path}": {exc}')
                report.skipped.append(path)
                continue
            if resolved is None:
                log_warning(f'Couldn\'t parse "{path}" - skipping file')
                report.skipped.append(path)
                continue

            match_info, target_name = resolved
            file_set = match_info.file_set
            if not _included(file_set, relative, path.name):
                log_debug("Skipping filtered file", path=relative, file_set=file_set.title)
                report.skipped.append(path)
                continue

            folder = resolve_local(context.base_dir, file_set.language_files_folder)
            target = folder.joinpath(*target_name.split("/"))
            if not target.parent.exists():
                log_info(f'Creating folder "{target.parent}"')
                target.parent.mkdir(parents=True)
            log_info(f'Deploying file "{target}" from "{path}"')
            shutil.copyfile(path, target)
            report.deployed.append((path, target))

        for status_file in config.status_files:
            source = staging / status_file_name(status_file.language)
            if not source.is_file():
                log_warning(f'Status document "{source}" not found - status file "{status_file.target_file}" skipped')
                continue
            report.status_files.append(deploy_status_file(status_file, source, context.base_dir))

        info.update(deployed=len(report.deployed), skipped=len(report.skipped), status_files=len(report.status_files))
    return report
