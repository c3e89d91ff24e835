# studyflow/clients/credentials.py

import os

from studyflow.config.settings import Settings
from studyflow.utils.logging import get_logger

logger = get_logger(__name__)


class ConfiguredCredential:
    """
    Credential picker backed by configuration.

    There is no interactive key chooser on a server, so "selecting" a
    credential means picking up OPENAI_API_KEY if it was set after startup.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    async def has_credential(self) -> bool:
        return bool((self._settings.openai_api_key or "").strip())

    async def select_credential(self) -> bool:
        key = os.getenv("OPENAI_API_KEY", "").strip()
        if not key:
            logger.warning("No API credential available for video generation.")
            return False
        self._settings.openai_api_key = key
        return True
