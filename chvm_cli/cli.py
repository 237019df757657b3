"""Command line surface for chvm."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Callable, Mapping, Sequence

from chvm_core import __version__
from chvm_core.config import load_config
from chvm_core.download import DownloadProgress
from chvm_core.errors import ChvmError
from chvm_core.host import HostInfo, check_platform
from chvm_core.layout import HomeLayout
from chvm_core.log import configure_logging
from chvm_core.manager import VersionManager
from chvm_core.paths import resolve_home

logger = logging.getLogger(__name__)

_MIB = 1024 * 1024


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chvm",
        description="Chromium version manager for macOS on Apple Silicon.",
    )
    parser.add_argument("--version", action="version", version=f"chvm v{__version__}")
    parser.add_argument("--home", help="chvm home directory (defaults to $CHVM_HOME or the user data dir)")
    parser.add_argument("--verbose", action="store_true", help="also log debug output to stderr")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = False

    ls_cmd = subparsers.add_parser("ls", help="list available and installed versions")
    ls_cmd.add_argument("--json", action="store_true", help="print the catalog and registry as JSON")
    ls_cmd.add_argument("--all", action="store_true", help="show every build, not only the newest per major")
    ls_cmd.set_defaults(func=_handle_ls, label="ls")

    update_cmd = subparsers.add_parser("update", help="refresh the list of available versions")
    update_cmd.add_argument("--force", action="store_true", help="accepted for compatibility; always rebuilds")
    update_cmd.add_argument("--limit", type=int, help="only consider the first N snapshot revisions")
    update_cmd.set_defaults(func=_handle_update, label="update")

    install_cmd = subparsers.add_parser("install", aliases=["i"], help="install a version")
    install_cmd.add_argument("version", help="version, version prefix, revision, latest or oldest")
    install_cmd.add_argument("--quiet", action="store_true", help="minimal output")
    install_cmd.set_defaults(func=_handle_install, label="install")

    open_cmd = subparsers.add_parser("open", help="open a version, installing it when needed")
    open_cmd.add_argument("version", help="version, version prefix, revision, latest or oldest")
    open_cmd.add_argument("--disable-cors", action="store_true", help="launch with web security disabled")
    open_cmd.set_defaults(func=_handle_open, label="open")

    uninstall_cmd = subparsers.add_parser("uninstall", help="remove an installed version")
    uninstall_cmd.add_argument("version", help="installed version, prefix or revision")
    uninstall_cmd.add_argument("--force", action="store_true", help="also clear leftovers of unregistered builds")
    uninstall_cmd.set_defaults(func=_handle_uninstall, label="uninstall")

    return parser


def main(
    argv: Sequence[str] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    host: HostInfo | None = None,
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    func: Callable[[argparse.Namespace, VersionManager], int] | None = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        return 0

    env = os.environ if env is None else env
    try:
        check_platform(host)
        layout = HomeLayout.from_root(resolve_home(args.home, env)).ensure()
        level = logging.ERROR if getattr(args, "quiet", False) else logging.INFO
        configure_logging(layout.logs_dir, level=level, verbose=args.verbose)
        manager = VersionManager(load_config(layout))
        return func(args, manager)
    except (ChvmError, OSError) as exc:
        logger.error("%s failed: %s", args.label, exc)
        print(f"[chvm:{args.label}] error: {exc}", file=sys.stderr)
        return 1


def _handle_ls(args: argparse.Namespace, manager: VersionManager) -> int:
    if args.json:
        payload = {
            "available": [entry.to_dict() for entry in manager.available()],
            "installed": {key: record.to_dict() for key, record in manager.installed().items()},
        }
        print(json.dumps(payload, indent=2))
        return 0

    rows = manager.listing(show_all=args.all)
    if not rows:
        print('[chvm:ls] no versions available. Run "chvm update" first.')
        return 0
    for row in rows:
        entry = row.entry
        status = "* installed" if row.installed else ""
        version = entry.version or f"[{entry.revision}]"
        print(f"[chvm:ls] {version}\t{entry.revision}\t{entry.channel or '-'}\t{status}".rstrip())
    return 0


def _handle_update(args: argparse.Namespace, manager: VersionManager) -> int:
    catalog = manager.update(limit=args.limit)
    if not catalog:
        print("[chvm:update] no versions found with matching revisions. Try again later.")
        return 0
    print(f"[chvm:update] updated! {len(catalog)} versions available.")
    return 0


def _progress_printer(label: str) -> Callable[[DownloadProgress], None]:
    last = {"percent": -1}

    def _report(progress: DownloadProgress) -> None:
        if progress.percent == last["percent"]:
            return
        last["percent"] = progress.percent
        end = "\n" if progress.percent >= 100 else ""
        print(
            f"\r[chvm:{label}] downloading: {progress.percent}% "
            f"({progress.transferred // _MIB}MB / {progress.total // _MIB}MB)",
            end=end,
            flush=True,
        )

    return _report


def _handle_install(args: argparse.Namespace, manager: VersionManager) -> int:
    on_progress = None if args.quiet else _progress_printer("install")
    result = manager.install(args.version, on_progress)
    name = result.version or f"Revision {result.revision}"
    if result.already_installed:
        print(f"[chvm:install] version {name} is already installed.")
        return 0
    print(f"[chvm:install] installed {name} to {result.path}")
    return 0


def _handle_open(args: argparse.Namespace, manager: VersionManager) -> int:
    if args.disable_cors:
        print(
            "[chvm:open] WARNING: running with --disable-web-security. "
            "This is insecure and should only be used for development."
        )
    app_path = manager.open(
        args.version,
        disable_cors=args.disable_cors,
        on_progress=_progress_printer("open"),
    )
    print(f"[chvm:open] opened {app_path.stem}")
    return 0


def _handle_uninstall(args: argparse.Namespace, manager: VersionManager) -> int:
    key = manager.uninstall(args.version, force=args.force)
    print(f"[chvm:uninstall] uninstalled {key}")
    return 0
