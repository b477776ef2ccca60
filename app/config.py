## app/config.py

import os

from dotenv import load_dotenv

load_dotenv()

# Optional: the UI also accepts the key as a password field
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")

DEFAULT_TEXT_MODEL = os.getenv("COMIC_TEXT_MODEL", "gemini-2.5-flash")
DEFAULT_IMAGE_MODEL = os.getenv("COMIC_IMAGE_MODEL", "gemini-2.0-flash-preview-image-generation")

MAX_COMIC_PAGES = 200
DEFAULT_NUM_PAGES = 6
MAX_STORY_CHARS = int(os.getenv("COMIC_MAX_STORY_CHARS", "60000"))

FIXED_IMAGE_SEED = 42

MAX_RETRIES = int(os.getenv("COMIC_MAX_RETRIES", "2"))
RETRY_BASE_DELAY = float(os.getenv("COMIC_RETRY_BASE_DELAY", "2.0"))

LOG_LEVEL = os.getenv("COMIC_LOG_LEVEL", "INFO").upper()
