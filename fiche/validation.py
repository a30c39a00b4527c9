import logging

from fiche.models import Fiche
from fiche.utils import parse_date

logger = logging.getLogger(__name__)

MIN_PC_LENGTH = 5


class ValidationResult:
    """Field -> message map of every rule a fiche breaks."""

    def __init__(self):
        self._errors: dict[str, str] = {}

    def add_error(self, field: str, message: str) -> None:
        self._errors[field] = message

    @property
    def is_valid(self) -> bool:
        return not self._errors

    @property
    def errors(self) -> dict[str, str]:
        return dict(self._errors)

    def __repr__(self) -> str:
        return f'ValidationResult(errors={self._errors!r})'


def _blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def validate(fiche: Fiche | None) -> ValidationResult:
    """Check the mandatory fields and formats; all violations are collected."""
    result = ValidationResult()

    if fiche is None:
        result.add_error('fiche', 'Form data is missing')
        return result

    if _blank(fiche.contrat_juridique):
        result.add_error('contrat_juridique', 'The Contrat Juridique (CJ) is required')

    if _blank(fiche.num_formulaire):
        result.add_error('num_formulaire', 'The form / request number is required')

    if not fiche.liste_pc or _blank(fiche.liste_pc[0]):
        result.add_error('liste_pc', 'At least one PC code is required')

    if _blank(fiche.date_effet):
        result.add_error('date_effet', 'The effective date is required')
    else:
        try:
            parse_date(fiche.date_effet)
        except ValueError:
            result.add_error('date_effet', 'Invalid date format, use dd/mm/yyyy')

    for i, pc in enumerate(fiche.liste_pc or []):
        if not _blank(pc) and len(pc.strip()) < MIN_PC_LENGTH:
            result.add_error(f'liste_pc[{i}]',
                             f'A PC code must have at least {MIN_PC_LENGTH} characters')

    logger.debug("Validation %s: %r", 'passed' if result.is_valid else 'failed', result)
    return result
