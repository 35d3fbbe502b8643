"""Persisted operator configuration.

The configuration is a small JSON object stored at `$CHERRYUP_CONFIG` or, when that is not
set, `~/.config/cherryup/config.json`:

    {
      "start_dir": "/work/product",
      "branch_flow": "main -> dev -> release",
      "author_filter": "jdoe",
      "remote": "origin",
      "repositories": {"product": ".", "plugins": "plugins"}
    }

- `start_dir`: directory the repository paths are resolved against.
- `branch_flow`: promotion chain, parsed with `cherryup.flow.parse_flow`.
- `author_filter`: operator name used in working branch names; empty means "use the local
  part of each repository's `user.email`".
- `remote`: remote whose branches are promoted and pushed to.
- `repositories`: name -> path (relative to `start_dir` or absolute). Empty means the
  start directory itself, named after its folder.

A missing file yields the defaults. Malformed JSON or a wrongly shaped object raises
`ConfigurationError`. Unknown keys are kept in `Config.extra` and written
back unchanged. Files are UTF-8 JSON with `indent=2` and a trailing newline.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import ConfigurationError

CONFIG_ENV = "CHERRYUP_CONFIG"
DEFAULT_BRANCH_FLOW = "main -> dev"
DEFAULT_REMOTE = "origin"

_KNOWN_KEYS = {"start_dir", "branch_flow", "author_filter", "remote", "repositories"}


def default_config_path() -> Path:
    env = os.environ.get(CONFIG_ENV)
    if env:
        return Path(env).expanduser()
    return Path.home() / ".config" / "cherryup" / "config.json"


@dataclass
class Config:
    start_dir: str
    branch_flow: str = DEFAULT_BRANCH_FLOW
    author_filter: str = ""
    remote: str = DEFAULT_REMOTE
    repositories: dict[str, str] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict, repr=False)

    @staticmethod
    def default() -> "Config":
        return Config(start_dir=str(Path.cwd()))

    @staticmethod
    def load(path: Path) -> "Config":
        if not path.exists():
            return Config.default()

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"{path} is not valid JSON: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigurationError(f"{path}: cherryup config must be a JSON object, got {type(raw).__name__}")

        repositories = raw.get("repositories") or {}
        if not isinstance(repositories, dict):
            raise ConfigurationError(f"{path}: field 'repositories' must be an object of name -> path")

        defaults = Config.default()
        return Config(
            start_dir=str(raw.get("start_dir") or defaults.start_dir),
            branch_flow=str(raw.get("branch_flow") if raw.get("branch_flow") is not None else defaults.branch_flow),
            author_filter=str(raw.get("author_filter") or ""),
            remote=str(raw.get("remote") or DEFAULT_REMOTE),
            repositories={str(k): str(v) for k, v in repositories.items()},
            extra={k: v for k, v in raw.items() if k not in _KNOWN_KEYS},
        )

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        d: dict[str, Any] = {
            "start_dir": self.start_dir,
            "branch_flow": self.branch_flow,
            "author_filter": self.author_filter,
            "remote": self.remote,
            "repositories": dict(self.repositories),
        }
        d.update(self.extra)
        path.write_text(json.dumps(d, indent=2, ensure_ascii=True) + "\n", encoding="utf-8")

    def repository_paths(self) -> dict[str, Path]:
        root = Path(self.start_dir).expanduser()
        if not self.repositories:
            return {root.resolve().name or "repo": root}
        return {name: root / Path(path).expanduser() for name, path in self.repositories.items()}
