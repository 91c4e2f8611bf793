"""Local dev entrypoint for the Metadoc API."""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path


def _ensure_src_on_path() -> None:
    backend_dir = Path(__file__).resolve().parent
    src_dir = backend_dir / "src"
    if str(src_dir) not in sys.path:
        sys.path.insert(0, str(src_dir))


if __name__ == "__main__":
    _ensure_src_on_path()

    import uvicorn

    log_level = os.environ.get("METADOC_LOG_LEVEL", "info").lower()
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    uvicorn.run(
        "metadoc.api.app:app",
        host="127.0.0.1",
        port=int(os.environ.get("METADOC_PORT", "8000")),
        reload=True,
        log_level=log_level,
    )
