"""CMS entrypoint.

Run with:
  python -m cms
"""

import os
import uvicorn

from cms.logging_setup import setup_logging


def main() -> None:
    host = os.getenv("CMS_HOST", "0.0.0.0")
    port = int(os.getenv("CMS_PORT", "8080"))
    reload = os.getenv("CMS_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    setup_logging(os.getenv("CMS_LOG_LEVEL", "INFO"), os.getenv("CMS_LOG_FORMAT", "text"))
    uvicorn.run("cms.app:create_app", factory=True, host=host, port=port, reload=reload)


if __name__ == "__main__":
    main()
