#!/usr/bin/env -S uv run
"""Build the site in the current directory into build/."""

from __future__ import annotations

import sys

from sitebuild.cli import main


if __name__ == "__main__":
    raise SystemExit(main(["build", *sys.argv[1:]]))
