from __future__ import annotations

import uvicorn

from marketetl.api.app import create_api_app
from marketetl.core.config import settings


app = create_api_app()


def run() -> None:
    uvicorn.run(
        "marketetl.main:app",
        host="0.0.0.0",
        port=8000,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
