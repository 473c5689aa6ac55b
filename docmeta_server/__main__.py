from __future__ import annotations

import uvicorn

from .config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "docmeta_server.server:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.uvicorn_log_level,
        reload=False,
    )


if __name__ == "__main__":
    main()
