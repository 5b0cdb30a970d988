import logging
from typing import Dict
from shopgenie.config import strings as default_strings

logger = logging.getLogger(__name__)

class StringService:
    def __init__(self):
        self._strings_cache: Dict[str, str] = {}
        self._load_defaults()
        logger.info("StringService initialized.")

    def get_string(self, key: str, default: str = "") -> str:
        """Gets a string from the cache, falling back to a default value."""
        return self._strings_cache.get(key, default)

    def _load_defaults(self):
        """Loads default strings from the strings.py file."""
        for key in dir(default_strings):
            if key.isupper():
                self._strings_cache[key] = getattr(default_strings, key)

# Globally accessible instance
string_service = StringService()
