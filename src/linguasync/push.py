"""Push reconciliation.

For every configured file set, in configuration order:

1. skip it with a warning when the local base file is missing;
2. make sure its remote folder exists (creating missing folders);
3. classify it as Update when the remote folder already holds a file of
   that name, Create otherwise;
4. upload it with its type, title, export pattern and escaping options.

The run stops at the first remote failure. Nothing already uploaded is
rolled back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from .branches import BranchHandle, resolve_branch
from .config_schema import FileSetConfig
from .context import SyncContext
from .errors import BranchNotFoundError, ConfigurationError, LocalIOError, RemoteProtocolError
from .file_sets import UpdateOption
from .namespace import BRANCH_OR_FOLDER, FILE_ONLY, Container, NamespaceSnapshot, resolve, split_path
from .observability import log_action, log_info, log_warning, timeit
from .path_resolver import push_folder, push_name
from .provisioning import FolderProvisioner


class SyncActionKind(Enum):
    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"


@dataclass(frozen=True)
class SyncAction:
    """What push does (or did) for one file set.

    ``remote_path`` is relative to the branch scope (or the namespace root).
    """

    kind: SyncActionKind
    file_set: FileSetConfig
    local_path: Path
    remote_path: str
    reason: Optional[str] = None


@dataclass
class PushReport:
    """Result of ``plan_push`` or ``push``."""

    branch: BranchHandle
    actions: List[SyncAction] = field(default_factory=list)
    created_folders: List[str] = field(default_factory=list)
    dry_run: bool = False

    def _of(self, kind: SyncActionKind) -> Tuple[SyncAction, ...]:
        return tuple(action for action in self.actions if action.kind is kind)

    @property
    def created(self) -> Tuple[SyncAction, ...]:
        return self._of(SyncActionKind.CREATE)

    @property
    def updated(self) -> Tuple[SyncAction, ...]:
        return self._of(SyncActionKind.UPDATE)

    @property
    def skipped(self) -> Tuple[SyncAction, ...]:
        return self._of(SyncActionKind.SKIP)


def _file_set_label(file_set: FileSetConfig, local_path: Path) -> str:
    if file_set.title and file_set.title != file_set.base_file_name:
        return f'"{local_path}" for file set "{file_set.title}"'
    return f'"{local_path}"'


def _check_project_name(context: SyncContext, snapshot: NamespaceSnapshot) -> None:
    expected = context.config.project.name
    if expected and snapshot.project_name != expected:
        raise ConfigurationError(
            f'Remote project name ({snapshot.project_name}) differs from the configured '
            f'project name ({expected}) - push aborted!'
        )


@dataclass
class _Target:
    """Branch scope a push run resolves file sets against."""

    branch: BranchHandle
    snapshot: NamespaceSnapshot
    scope: Optional[Container]


def _resolve_scope(context: SyncContext, snapshot: NamespaceSnapshot, dry_run: bool) -> _Target:
    """Resolve the branch, creating it unless dry-running.

    The scope is None when a dry run targets a branch that doesn't exist yet.
    """
    if dry_run:
        try:
            branch = resolve_branch(context.client, snapshot, context.branch_name, context.root_branch)
        except BranchNotFoundError:
            if not context.branch_name or not context.branch_name.strip():
                raise
            return _Target(BranchHandle(context.branch_name.strip(), created=True), snapshot, None)
        return _Target(branch, snapshot, snapshot.scope(branch.name))

    branch = resolve_branch(context.client, snapshot, context.branch_name, context.root_branch, create=True)
    if branch.created:
        # The branch was just created; the old snapshot doesn't know it
        snapshot = context.describe()
    return _Target(branch, snapshot, snapshot.scope(branch.name))


def _open_run(context: SyncContext, dry_run: bool) -> Tuple[PushReport, _Target]:
    snapshot = context.describe()
    _check_project_name(context, snapshot)
    target = _resolve_scope(context, snapshot, dry_run)
    return PushReport(branch=target.branch, dry_run=dry_run), target


def _classify(
    context: SyncContext,
    provisioner: FolderProvisioner,
    target: _Target,
    report: PushReport,
    file_set: FileSetConfig,
) -> SyncAction:
    """Provision the folder of one file set and classify it.

    Folders are only created outside a dry run; ``target`` moves to the
    refreshed snapshot when they are.
    """
    local_path = context.source_file(file_set)
    remote_path = push_name(file_set)
    if not local_path.is_file():
        log_warning(f"{_file_set_label(file_set, local_path)} not found - upload skipped")
        return SyncAction(SyncActionKind.SKIP, file_set, local_path, remote_path, reason="missing local file")

    folder = push_folder(file_set)
    container: Optional[Container] = target.scope
    if target.scope is not None and folder:
        if report.dry_run:
            container = resolve(target.scope, folder, BRANCH_OR_FOLDER)  # type: ignore[assignment]
        else:
            result = provisioner.create_folders(target.snapshot, target.scope, folder)
            report.created_folders.extend(result.created)
            if result.snapshot is not target.snapshot:
                target.snapshot = result.snapshot
                target.scope = result.snapshot.scope(target.branch.name)
            container = result.node

    file_name = split_path(remote_path)[-1]
    exists = container is not None and resolve(container, file_name, FILE_ONLY) is not None
    kind = SyncActionKind.UPDATE if exists else SyncActionKind.CREATE
    return SyncAction(kind, file_set, local_path, remote_path)


def plan_push(context: SyncContext) -> PushReport:
    """Classify every file set as Create, Update or Skip without mutating anything.

    Files under a branch or folder that doesn't exist yet classify as Create.

    Raises:
        ConfigurationError: If the remote project name doesn't match.
        BranchNotFoundError: If the local branch can't be determined.
        RemoteProtocolError: If describing the project fails.
    """
    report, target = _open_run(context, dry_run=True)
    provisioner = FolderProvisioner(context.client, describe=context.describe)
    for file_set in context.config.file_sets:
        report.actions.append(_classify(context, provisioner, target, report, file_set))
    return report


def _execute(context: SyncContext, branch: BranchHandle, action: SyncAction) -> None:
    """Upload one file set.

    Raises:
        LocalIOError: If the local file vanished or can't be read.
        RemoteProtocolError: If the upload fails.
    """
    file_set = action.file_set
    config = context.config
    try:
        content = action.local_path.read_bytes()
    except OSError as exc:
        raise LocalIOError(
            f"An error occurred while reading {_file_set_label(file_set, action.local_path)}"
            f" - upload skipped: {exc}"
        ) from exc

    title = file_set.title if file_set.title != file_set.base_file_name else None
    update = action.kind is SyncActionKind.UPDATE
    log_info(
        f'{"Updating" if update else "Adding"} file "{file_set.base_file_name}"'
        + (f' for file set "{file_set.title}"' if title else "")
    )
    try:
        if update:
            update_option = config.update_option_for(file_set)
            context.client.update_file(
                action.remote_path,
                content,
                update_option=None if update_option is UpdateOption.delete_translations else update_option,
                branch=branch.name,
                title=title,
                export_pattern=file_set.export_pattern,
                escape_quotes=config.escape_quotes_for(file_set),
                escape_special_characters=file_set.escape_special_characters,
            )
        else:
            context.client.create_file(
                action.remote_path,
                content,
                file_set.file_type,
                branch=branch.name,
                title=title,
                export_pattern=file_set.export_pattern,
                escape_quotes=config.escape_quotes_for(file_set),
                escape_special_characters=file_set.escape_special_characters,
            )
    except RemoteProtocolError as exc:
        raise RemoteProtocolError(
            f'An error occurred while {"updating" if update else "adding"} file "{action.local_path}": {exc}',
            code=exc.code,
            remote_message=exc.remote_message,
            status_code=exc.status_code,
        ) from exc


def push(context: SyncContext, *, confirmed: bool = False, dry_run: bool = False) -> PushReport:
    """Push every configured file set to the remote project.

    Each file set is provisioned, classified and uploaded before the next
    one starts, so a failure leaves every earlier file set fully pushed.

    Args:
        context: Run context
        confirmed: The caller confirmed the push (``push.confirm`` also counts)
        dry_run: Only plan; no remote mutation

    Raises:
        ConfigurationError: If the push isn't confirmed or the project name
            doesn't match. Raised before any remote mutation.
    """
    if not dry_run and not (confirmed or context.config.push.confirm):
        raise ConfigurationError("Push is not confirmed - aborting!")
    if not context.config.file_sets:
        raise ConfigurationError("No file sets configured - nothing to push")

    with timeit("push", branch=context.branch_name, dry_run=dry_run) as info:
        if dry_run:
            report = plan_push(context)
            info["planned"] = len(report.actions)
            return report

        report, target = _open_run(context, dry_run=False)
        provisioner = FolderProvisioner(context.client, describe=context.describe)
        for file_set in context.config.file_sets:
            action = _classify(context, provisioner, target, report, file_set)
            if action.kind is not SyncActionKind.SKIP:
                try:
                    _execute(context, report.branch, action)
                except LocalIOError as exc:
                    log_warning(str(exc))
                    action = SyncAction(SyncActionKind.SKIP, file_set, action.local_path, action.remote_path,
                                        reason="unreadable local file")
            report.actions.append(action)
        info.update(
            created=len(report.created),
            updated=len(report.updated),
            skipped=len(report.skipped),
            folders=len(report.created_folders),
        )
    log_action("push_summary", branch=str(report.branch), actions=[
        f"{action.kind.value}:{action.remote_path}" for action in report.actions
    ])
    return report
