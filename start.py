"""Plotpad - Start Script

Reads PORT (or PLOTPAD_PORT) and starts uvicorn. Always a single worker:
each process owns exactly one interpreter session.
"""

import os
import uvicorn

from plotpad.config import settings

if __name__ == "__main__":
    port = int(os.environ.get("PORT", settings.PORT))

    print(f"Starting Plotpad on {settings.HOST}:{port}")
    print(f"  Preload packages: {', '.join(settings.PRELOAD_PACKAGES) or '(none)'}")

    uvicorn.run(
        "plotpad.main:app",
        host=settings.HOST,
        port=port,
        workers=1,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=True,
    )
