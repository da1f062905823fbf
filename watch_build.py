#!/usr/bin/env -S uv run
"""
Watcher: rebuilds the site when components/, pages/, main.css, the watch
client or site.yml change. Exits with status 5 when sitebuild itself changes
so the host can restart it.
"""
from __future__ import annotations

import sys

from sitebuild.cli import main


if __name__ == "__main__":
    raise SystemExit(main(["watch", *sys.argv[1:]]))
