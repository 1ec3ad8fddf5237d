# launcher.py
import logging
import os
import sys

import uvicorn
from dotenv import load_dotenv

ENV_FILE = ".env"

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - [Launcher] - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def main() -> None:
    load_dotenv(ENV_FILE, override=True)

    if not os.getenv("SECRET_KEY"):
        logging.critical("❌ SECRET_KEY is not set. Define it in .env before starting.")
        sys.exit(1)

    host = os.getenv("UVICORN_HOST", "0.0.0.0")
    port = int(os.getenv("UVICORN_PORT", "7777"))
    workers = int(os.getenv("UVICORN_WORKERS", "1"))

    # In-process fanout only reaches sockets held by the same worker
    if workers > 1 and not os.getenv("REDIS_URL"):
        logging.warning("⚠️ UVICORN_WORKERS > 1 without REDIS_URL: falling back to 1 worker.")
        workers = 1

    logging.info(f"🚀 Starting API on http://{host}:{port} ({workers} worker(s))")
    uvicorn.run(
        "servicedesk.main:app",
        host=host,
        port=port,
        workers=workers,
        log_level="info",
        server_header=False,
        proxy_headers=True,
        forwarded_allow_ips="*",
    )


if __name__ == "__main__":
    main()
