"""Allow ``python -m ecp_visual`` to launch the server."""

from __future__ import annotations

from .app.master import run


if __name__ == "__main__":
    raise SystemExit(run())
