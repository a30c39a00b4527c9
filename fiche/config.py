"""
Lookup tables of the fiche generator.

Values live in a properties-style file (``key=value`` lines, lists written as
``prefix.0``, ``prefix.1``, ...) read with python-dotenv. The external file
``config/application.properties`` wins over the copy bundled with the package.
"""

import logging
import os

from dotenv import dotenv_values

logger = logging.getLogger(__name__)

EXTERNAL_CONFIG_PATH = os.path.join('config', 'application.properties')
BUNDLED_CONFIG_PATH  = os.path.join(os.path.dirname(__file__), 'application.properties')

# ── Keys read by the tag resolver ─────────────────────────────────────
COMMENT_NO_PARAMS  = 'commentaire.sans.parametrage'
OPERATION_CONTRAT  = 'commentaire.operation.contrat'
OPERATION_AVENANT  = 'commentaire.operation.avenant'
PRESTATION_SANTE   = 'commentaire.prestation.sante'
PRESTATION_PREV    = 'commentaire.prestation.prev'


class Config:
    """Read-only view over the loaded key/value pairs."""

    def __init__(self, values: dict[str, str | None] | None = None, source: str | None = None):
        self._values = {k: v for k, v in (values or {}).items() if v is not None}
        self.source = source

    @classmethod
    def load(cls, path: str | None = None) -> 'Config':
        """
        Load the lookup tables.

        path : explicit file; otherwise FICHE_CONFIG, then the external file,
               then the bundled one.
        """
        candidates = [path] if path else [
            os.getenv('FICHE_CONFIG'), EXTERNAL_CONFIG_PATH, BUNDLED_CONFIG_PATH,
        ]
        for candidate in candidates:
            if candidate and os.path.isfile(candidate):
                values = dotenv_values(candidate, encoding='utf-8')
                logger.info("Configuration loaded from %s (%d keys)",
                            os.path.abspath(candidate), len(values))
                return cls(values, source=candidate)

        raise FileNotFoundError(
            f"Configuration file not found: {path or EXTERNAL_CONFIG_PATH}"
        )

    def get_value(self, key: str, default: str | None = None) -> str | None:
        return self._values.get(key, default)

    def get_list(self, prefix: str) -> list[str]:
        """Values of prefix.0, prefix.1, ... up to the first missing index."""
        values = []
        index = 0
        while f'{prefix}.{index}' in self._values:
            values.append(self._values[f'{prefix}.{index}'])
            index += 1
        return values

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)
