"""Console entrypoint shim.

The CLI is implemented in `messagehub_health.verifier.main`.
"""

from __future__ import annotations

from messagehub_health.verifier.main import main

__all__ = ["main"]


if __name__ == "__main__":
    raise SystemExit(main())
