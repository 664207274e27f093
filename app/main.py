import logging
import os
import sys

import uvicorn
from dotenv import load_dotenv

from app.playlist_podcast.config import load_settings
from app.playlist_podcast.errors import ConfigurationError
from app.playlist_podcast.server import create_app

load_dotenv()

root = logging.getLogger()
root.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())

handler = logging.StreamHandler(sys.stdout)
formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
handler.setFormatter(formatter)
root.addHandler(handler)

logger = logging.getLogger(__name__)

try:
    settings = load_settings()
except ConfigurationError as e:
    logger.critical(f"Configuration error: {e}")
    sys.exit(1)

if settings.convert_to_mp3:
    # Audio is always extracted as mp3; the flag is accepted for compatibility.
    logger.info("CONVERT_TO_MP3 is set; audio is always served as mp3")

app = create_app(settings)


if __name__ == "__main__":
    logger.info(f"Server started at 0.0.0.0:{settings.port}")
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
