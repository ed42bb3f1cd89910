import os
import logging

logger = logging.getLogger(__name__)

# Full list of settings to manage
ALL_SETTINGS = [
    # System
    'LOG_LEVEL',

    # Ordering
    'CFI_COMPARATOR',

    # Merging
    'CFI_FAST_MERGE_ENABLED',

    # HTML mapping
    'CFI_HTML_PARSER',
]

# Default values
DEFAULT_CONFIG = {
    'LOG_LEVEL': 'INFO',
    'CFI_COMPARATOR': 'auto',
    'CFI_FAST_MERGE_ENABLED': 'true',
    'CFI_HTML_PARSER': 'lxml',
}


class ConfigLoader:
    """
    Loads configuration from environment variables.
    Every managed setting is resolved once: environment first, then default.
    """

    @staticmethod
    def load_settings(environ=None) -> dict:
        """
        Resolve all settings.

        Args:
            environ: Mapping to read from (defaults to os.environ)
        """
        environ = os.environ if environ is None else environ
        settings = {}

        for key in ALL_SETTINGS:
            # Priority: 1. Env Var, 2. Default, 3. Empty string
            val = environ.get(key, DEFAULT_CONFIG.get(key, ""))

            # Check for None explicitly
            if val is None:
                val = ""

            settings[key] = str(val).strip()

        logger.debug(f"⚙️  Loaded {len(settings)} settings")
        return settings

    @staticmethod
    def get_bool(settings: dict, key: str) -> bool:
        value = settings.get(key, DEFAULT_CONFIG.get(key, "false"))
        return str(value).lower() == "true"
