#!/usr/bin/env python3
"""linguasync CLI - keep translation resource files in sync with the remote service."""
from __future__ import annotations

import argparse
import sys
from contextlib import contextmanager
from typing import Iterator

# Fail fast on unsupported interpreter version
if sys.version_info < (3, 10):
    print(f"linguasync requires Python 3.10+; found {sys.version.split()[0]}", file=sys.stderr)
    sys.exit(1)


def _common_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--project-path", help="Project directory for config discovery (default: cwd)")
    common.add_argument("--config", dest="config_file", help="Explicit project config file")
    common.add_argument("-v", "--verbose", action="store_true", help="Print progress to stderr")
    return common


@contextmanager
def _open_context(args: argparse.Namespace, *, branch: str | None = None, remote: bool = True) -> Iterator:
    """Load config, set up logging and yield a run context.

    Offline stages (``remote=False``) get no client and need no API key.
    The HTTP client is closed when the block exits.
    """
    from pathlib import Path

    from .client import open_client
    from .config_loader import load_config
    from .context import SyncContext
    from .credentials import get_api_key
    from .errors import ConfigurationError
    from .observability import configure_logging

    config = load_config(
        Path(args.project_path) if args.project_path else None,
        config_file=Path(args.config_file) if args.config_file else None,
    )
    configure_logging(
        level=config.logging.level,
        log_dir=config.logging.dir or None,
        disable_file=config.logging.disable_file,
        max_bytes=config.logging.max_bytes,
        backup_count=config.logging.backup_count,
        verbose=args.verbose,
    )
    if not remote:
        yield SyncContext.from_config(config, None, branch_name=branch)
        return
    if not config.project.identifier:
        raise ConfigurationError("No project identifier configured. Set [project] identifier or LINGUASYNC_PROJECT")
    with open_client(config, get_api_key()) as client:
        yield SyncContext.from_config(config, client, branch_name=branch)


def _print_tree(container, indent: int = 0) -> None:
    from .namespace import NodeKind, children_of

    for node in children_of(container):
        suffix = "/" if node.kind is not NodeKind.FILE else ""
        marker = " [branch]" if node.kind is NodeKind.BRANCH else ""
        print(f"{'  ' * indent}{node.name}{suffix}{marker}")
        _print_tree(node, indent + 1)


def main(argv: list[str] | None = None) -> None:
    common = _common_options()
    ap = argparse.ArgumentParser(
        prog="linguasync",
        description="Synchronize translation resource files with a remote translation service",
    )
    ap.add_argument("--version", action="store_true", help="Show version and exit")

    sub = ap.add_subparsers(dest="cmd")

    p_push = sub.add_parser("push", parents=[common], help="Upload base files, creating branches and folders as needed")
    p_push.add_argument("--yes", action="store_true", help="Confirm the push")
    p_push.add_argument("--dry-run", action="store_true", help="Show planned actions without changing anything")
    p_push.add_argument("--branch", help="Branch override (default: current git branch)")

    p_fetch = sub.add_parser("fetch", parents=[common], help="Download translations into the staging folder")
    p_fetch.add_argument("--no-build", action="store_true", help="Don't ask the service to build first")
    p_fetch.add_argument("--branch", help="Branch override (default: current git branch)")

    sub.add_parser("deploy", parents=[common], help="Copy staged translations to their configured locations")

    p_pull = sub.add_parser("pull", parents=[common], help="Fetch and deploy translations")
    p_pull.add_argument("--no-build", action="store_true", help="Don't ask the service to build first")
    p_pull.add_argument("--branch", help="Branch override (default: current git branch)")

    p_build = sub.add_parser("build", parents=[common], help="Ask the service to build translations")
    p_build.add_argument("--branch", help="Branch override (default: current git branch)")

    p_tree = sub.add_parser("tree", parents=[common], help="List the remote project namespace")
    p_tree.add_argument("--branch", help="Only list this remote branch")

    p_creds = sub.add_parser("credentials", help="Credentials management")
    creds_sub = p_creds.add_subparsers(dest="creds_cmd")
    p_creds_set = creds_sub.add_parser("set", help="Store the API key in ~/.linguasync/credentials.toml")
    p_creds_set.add_argument("--key", help="API key (prompted when omitted)")

    p_config = sub.add_parser("config", help="Configuration management")
    config_sub = p_config.add_subparsers(dest="config_cmd")

    p_config_show = config_sub.add_parser("show", help="Show resolved configuration")
    p_config_show.add_argument("--project-path", help="Project directory for config discovery")
    p_config_show.add_argument("--json", dest="as_json", action="store_true", help="Output as JSON")
    p_config_show.add_argument("--sources", action="store_true", help="Show config source files")

    p_config_validate = config_sub.add_parser("validate", help="Validate configuration files")
    p_config_validate.add_argument("--project-path", help="Project directory for config discovery")
    p_config_validate.add_argument("--strict", action="store_true", help="Treat warnings as errors")

    args = ap.parse_args(argv)

    if args.version:
        from . import __version__

        print(f"linguasync {__version__}")
        sys.exit(0)

    if not args.cmd:
        ap.print_help()
        sys.exit(0)

    from .errors import SyncError

    try:
        _run(args)
    except SyncError as exc:
        print(f"❌ {exc}", file=sys.stderr)
        sys.exit(1)
    sys.exit(0)


def _run(args: argparse.Namespace) -> None:
    if args.cmd == "push":
        from .push import push

        with _open_context(args, branch=args.branch) as context:
            report = push(context, confirmed=args.yes, dry_run=args.dry_run)
            label = "Planned" if report.dry_run else "Pushed"
            print(f"{label} for branch {report.branch}:")
            for folder in report.created_folders:
                print(f"  + folder {folder}")
            for action in report.actions:
                print(f"  {action.kind.value:<6} {action.remote_path}")
        return

    if args.cmd == "fetch":
        from .pull import fetch

        with _open_context(args, branch=args.branch) as context:
            report = fetch(context, build=False if args.no_build else None)
            print(f"✅ Downloaded {len(report.files)} files to {report.staging_dir}")
        return

    if args.cmd == "deploy":
        from .deploy import deploy

        with _open_context(args, remote=False) as context:
            report = deploy(context)
            print(f"✅ Deployed {len(report.deployed)} files ({len(report.skipped)} skipped)")
        return

    if args.cmd == "pull":
        from .pull import pull

        with _open_context(args, branch=args.branch) as context:
            fetched, deployed = pull(context, build=False if args.no_build else None)
            print(f"✅ Downloaded {len(fetched.files)} files, deployed {len(deployed.deployed)}")
        return

    if args.cmd == "build":
        from .branches import resolve_branch
        from .pull import build_translations

        with _open_context(args, branch=args.branch) as context:
            branch = resolve_branch(context.client, context.describe(), context.branch_name, context.root_branch)
            status = build_translations(context, branch)
            print(f"✅ Build {status.value} for branch {branch}")
        return

    if args.cmd == "tree":
        with _open_context(args) as context:
            snapshot = context.describe()
            print(f"{snapshot.project_name or context.config.project.identifier}:")
            _print_tree(snapshot.scope(args.branch) if args.branch else snapshot, 1)
        return

    if args.cmd == "credentials":
        if args.creds_cmd != "set":
            print("Usage: linguasync credentials set [--key KEY]")
            return
        import getpass

        from .credentials import load_credentials, save_credentials

        key = args.key or getpass.getpass("API key: ")
        if not key.strip():
            print("❌ Empty API key", file=sys.stderr)
            sys.exit(1)
        creds = load_credentials()
        creds.api.key = key.strip()
        path = save_credentials(creds)
        print(f"✅ Saved credentials to {path}")
        return

    if args.cmd == "config":
        _config_command(args)
        return


def _config_command(args: argparse.Namespace) -> None:
    from pathlib import Path
    import json as json_module

    if not args.config_cmd:
        print("Usage: linguasync config {show|validate}")
        return

    from .config_loader import load_config, get_config_paths, ConfigError

    project_path = Path(args.project_path) if args.project_path else None

    if args.config_cmd == "show":
        if args.sources:
            paths = get_config_paths(project_path)
            print("Config sources (in priority order):")
            print()
            for name, path in paths.items():
                if path and path.exists():
                    print(f"  ✓ {name}: {path}")
                elif path:
                    print(f"  ✗ {name}: {path} (not found)")
                else:
                    print(f"  - {name}: (not applicable)")
            print()
            print("Environment variables override all file configs.")
            return

        config = load_config(project_path)
        if args.as_json:
            print(json_module.dumps(config.model_dump(mode="json", by_alias=True), indent=2))
            return

        import tomlkit

        doc = tomlkit.document()
        doc.add(tomlkit.comment(" linguasync configuration (resolved)"))
        doc.add(tomlkit.nl())
        config_dict = config.model_dump(mode="json", by_alias=True, exclude_none=True)
        for section, values in config_dict.items():
            if isinstance(values, list):
                array = tomlkit.aot()
                for item in values:
                    array.append(tomlkit.item(item))
                doc.add(section, array)
            elif isinstance(values, dict):
                table = tomlkit.table()
                for key, val in values.items():
                    table.add(key, val)
                doc.add(section, table)
            else:
                doc.add(section, values)
        print(tomlkit.dumps(doc))
        return

    if args.config_cmd == "validate":
        paths = get_config_paths(project_path)
        errors = []
        warnings = []

        found_any = False
        for name, path in paths.items():
            if name == "user_credentials":
                continue
            if path and path.exists():
                found_any = True
                print(f"  ✓ Found: {path}")
        if not found_any:
            warnings.append("No config files found. Using defaults.")

        try:
            config = load_config(project_path)
            print()
            print("✓ Configuration is valid.")

            if not config.project.identifier:
                warnings.append("No project identifier configured.")
            if not config.file_sets:
                warnings.append("No file sets configured; push, fetch and deploy will refuse to run.")
            if config.push.confirm:
                warnings.append("push.confirm=true: pushes run without --yes.")
        except ConfigError as e:
            errors.append(str(e))

        if warnings:
            print()
            print("Warnings:")
            for w in warnings:
                print(f"  ⚠ {w}")

        if errors:
            print()
            print("Errors:", file=sys.stderr)
            for e in errors:
                print(f"  ❌ {e}", file=sys.stderr)
            sys.exit(1)

        if args.strict and warnings:
            print()
            print("--strict: Treating warnings as errors.", file=sys.stderr)
            sys.exit(1)


if __name__ == "__main__":
    main()
