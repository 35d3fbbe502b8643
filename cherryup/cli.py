"""cherryup.cli

Command-line front end for cherryup: promote commits along a branch flow (e.g.
`main -> dev -> release`) in one or more repositories, pausing for the operator whenever a
conflict or the pre-publish checkpoint needs attention.

Entry points
- `cherryup.cli:main` (console script `cherryup`)
- `python3 -m cherryup ...` (delegates to this module)

Flags
- `--dir <path>`: start directory repository paths are resolved against.
- `--flow <text>`: branch flow, e.g. `"main -> dev -> release, hotfix -> main"`.
- `--author <name>`: operator name used in working branch names.
- `--repo NAME=PATH`: repository to include (repeatable). Replaces the configured set.
- `--remote <name>`: remote to promote from and push to (default `origin`).
- `--config <path>`: configuration file (default `$CHERRYUP_CONFIG` or
  `~/.config/cherryup/config.json`).
- `--dry-run`: read the repositories but change nothing (no stash, checkout, pick, push).
- `--no-save`: do not write the merged configuration back.

Configuration
Stored values are loaded first, flags override them, and the merged configuration is saved
back unless `--no-save` is given, so the next run starts from the last one.

Interactive loop
After every call the step list is re-rendered (when something changed) and the operator is
asked `[p]roceed / [s]top / [q]uit`:
- proceed: `process.proceed()`. A conflict, dirty tree, git failure or refused engine call is
  printed and the loop continues; resolve the problem in the repository and proceed again.
- stop: `process.stop()`, which cancels what can be cancelled and still restores stashes.
  After a stop, proceed answers keep driving `process.stop()` until it completes.
- quit: leave without finishing; repositories stay as they are.

Exit codes
- 0: the run finished or was stopped.
- 1: configuration error before the run started (unreadable config file, bad flow,
  missing repository).
- 130: quit, interrupted or end of input with the run incomplete.
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable
from pathlib import Path
from typing import TextIO

from .config import Config, default_config_path
from .errors import ConfigurationError
from .flow import parse_flow
from .process import CherryUpProcess
from .render import render_steps

PROMPT = "[p]roceed / [s]top / [q]uit > "


def _repo_arg(value: str) -> tuple[str, str]:
    name, sep, path = value.partition("=")
    if not sep or not name.strip() or not path.strip():
        raise argparse.ArgumentTypeError(f"expected NAME=PATH, got {value!r}")
    return name.strip(), path.strip()


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="cherryup", description="Promote commits along a chain of branches.")
    p.add_argument("--dir", default=None, help="Start directory repository paths are resolved against.")
    p.add_argument("--flow", default=None, help="Branch flow, e.g. 'main -> dev -> release'.")
    p.add_argument("--author", default=None, help="Operator name used in working branch names.")
    p.add_argument(
        "--repo",
        action="append",
        type=_repo_arg,
        default=None,
        metavar="NAME=PATH",
        help="Repository to include (repeatable). Replaces the configured repositories.",
    )
    p.add_argument("--remote", default=None, help="Remote to promote from and push to (default: origin).")
    p.add_argument("--config", default=None, help="Path to the cherryup configuration file.")
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Read the repositories but change nothing.",
    )
    p.add_argument(
        "--no-save",
        action="store_true",
        help="Do not write the merged configuration back.",
    )
    return p


def merge_config(cfg: Config, args: argparse.Namespace) -> Config:
    if args.dir is not None:
        cfg.start_dir = str(Path(args.dir).expanduser().resolve())
    if args.flow is not None:
        cfg.branch_flow = args.flow
    if args.author is not None:
        cfg.author_filter = args.author
    if args.remote is not None:
        cfg.remote = args.remote
    if args.repo:
        cfg.repositories = dict(args.repo)
    return cfg


class _Refresh:
    def __init__(self) -> None:
        self.pending = True

    def __call__(self) -> None:
        self.pending = True


def drive(
    process: CherryUpProcess,
    *,
    prompt: Callable[[str], str] = input,
    out: TextIO | None = None,
) -> int:
    out = out or sys.stdout
    color = out.isatty()
    refresh = _Refresh()
    stopping = False
    unsubscribe = process.subscribe(refresh)
    try:
        while True:
            if refresh.pending:
                out.write(render_steps(process.steps, color=color))
                out.flush()
                refresh.pending = False

            answer = prompt(PROMPT).strip().lower()
            if answer in ("", "p", "proceed") and not stopping:
                action, verb = process.proceed, "finished"
            elif answer in ("", "p", "proceed", "s", "stop"):
                # Once cancelled, the run can only be driven to the end of its stop path.
                stopping = True
                action, verb = process.stop, "stopped"
            elif answer in ("q", "quit"):
                print("[cherryup] leaving with the run incomplete.", file=sys.stderr)
                return 130
            else:
                print(f"[cherryup] unknown answer: {answer!r}", file=sys.stderr)
                continue

            try:
                finished = action()
            except RuntimeError as exc:
                print(f"[cherryup] error: {exc}", file=sys.stderr)
                continue

            if finished:
                out.write(render_steps(process.steps, color=color))
                print(f"[cherryup] {verb}.", file=sys.stderr)
                return 0
    except (KeyboardInterrupt, EOFError):
        print(file=sys.stderr)
        print("[cherryup] interrupted with the run incomplete.", file=sys.stderr)
        return 130
    finally:
        unsubscribe()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(list(sys.argv[1:] if argv is None else argv))

    config_path = Path(args.config).expanduser() if args.config else default_config_path()
    try:
        stored = Config.load(config_path)
    except ConfigurationError as exc:
        print(f"[cherryup] error: {exc}", file=sys.stderr)
        return 1
    cfg = merge_config(stored, args)
    if not args.no_save:
        cfg.save(config_path)

    branch_flow = parse_flow(cfg.branch_flow)
    if not branch_flow:
        print(
            "[cherryup] error: configure the branch flow in the following format: branch1 -> branch2 -> branch3",
            file=sys.stderr,
        )
        return 1

    try:
        process = CherryUpProcess.create(
            cfg.repository_paths(),
            branch_flow,
            author_filter=cfg.author_filter,
            remote=cfg.remote,
            dry_run=bool(args.dry_run),
        )
    except ConfigurationError as exc:
        print(f"[cherryup] error: {exc}", file=sys.stderr)
        return 1

    print(f"[cherryup] flow: {', '.join(str(t) for t in branch_flow)}", file=sys.stderr)
    with process:
        return drive(process)
