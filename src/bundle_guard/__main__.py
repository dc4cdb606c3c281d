"""
`python -m bundle_guard` entrypoint.

The installed console script `bundle-guard` calls the same
`bundle_guard.cli:main`.
"""

from .cli import main


if __name__ == "__main__":
    raise SystemExit(main())
