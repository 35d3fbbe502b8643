"""Module entrypoint for ``python -m cherryup``.

A thin wrapper around :func:`cherryup.cli.main`; the CLI return code becomes the process
exit status via ``SystemExit``.
"""

from __future__ import annotations

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
