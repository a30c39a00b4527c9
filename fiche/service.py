"""Validation + generation of a fiche de contrôle, behind one error type."""

import logging

from fiche.config import Config
from fiche.docx.docx_generator_xml import DocxGenerator
from fiche.models import Fiche
from fiche.utils import generate_file_name
from fiche.validation import validate

logger = logging.getLogger(__name__)


class DocumentGenerationError(Exception):
    """
    A fiche could not be turned into a document.

    Either validation failed (`validation_errors` lists every field in error)
    or generation itself failed (the original exception is the __cause__).
    """

    def __init__(self, message: str, validation_errors: dict[str, str] | None = None):
        super().__init__(message)
        self.message = message
        self.validation_errors = dict(validation_errors or {})

    @property
    def has_validation_errors(self) -> bool:
        return bool(self.validation_errors)

    def __str__(self) -> str:
        if not self.validation_errors:
            return self.message
        details = '; '.join(f'{field}: {msg}' for field, msg in self.validation_errors.items())
        return f'{self.message} ({details})'


class DocumentGenerationService:

    def __init__(self, config: Config | None = None, generator: DocxGenerator | None = None):
        self.generator = generator or DocxGenerator(config)

    def generate(self, fiche: Fiche, o_path: str) -> str:
        """Validate `fiche` and write its document to `o_path`."""
        logger.info("Starting generation for %s", getattr(fiche, 'num_formulaire', None))

        validation = validate(fiche)
        if not validation.is_valid:
            logger.warning("Validation failed: %s", validation.errors)
            raise DocumentGenerationError('Validation failed', validation.errors)

        try:
            return self.generator.generate(fiche, o_path)
        except Exception as e:
            logger.error("Document generation failed", exc_info=True)
            raise DocumentGenerationError(f'Generation error: {e}') from e

    @staticmethod
    def file_name(fiche: Fiche) -> str:
        return generate_file_name(fiche.num_formulaire, fiche.contrat_juridique, fiche.liste_pc)
