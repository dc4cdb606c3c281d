#!/usr/bin/env python3
"""
Run bundle-guard straight from a checkout, without `pip install`:

  python3 bundle_guard.py assign ios/Runner.xcodeproj -b com.acme.app
  python3 bundle_guard.py scan build/ios/ipa/Runner.ipa -b com.acme.app
"""

import os
import sys

_SRC = os.path.join(os.path.dirname(os.path.abspath(__file__)), "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

# Imported as `bundle_guard` (e.g. from the repo root), this file stands in for
# the real package directory so `bundle_guard.cli` and friends still resolve.
__path__ = [os.path.join(_SRC, "bundle_guard")]


def main(argv: list[str] | None = None) -> int:
    from bundle_guard.cli import main as cli_main

    return cli_main(argv)


if __name__ == "__main__":
    raise SystemExit(main())
