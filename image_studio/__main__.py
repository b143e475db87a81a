"""Run the upload relay and generation API as a standalone process."""
from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

logger = logging.getLogger("image-studio")


def main() -> int:
    load_dotenv(Path.cwd() / ".env.local")

    from image_studio.config import get_settings

    settings = get_settings()
    missing = settings.storage.missing()
    if missing:
        logging.basicConfig(level=logging.INFO)
        logger.error("Missing %s", ", ".join(missing))
        return 1

    port = int(os.getenv("PORT", "3001"))
    logger.info("Upload API running on port %s", port)
    uvicorn.run("image_studio.main:app", host=os.getenv("HOST", "0.0.0.0"), port=port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
