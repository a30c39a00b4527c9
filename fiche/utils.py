import re
from datetime import date, datetime

DATE_FORMAT = '%d/%m/%Y'

MAX_PC_LENGTH = 8

INVALID_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|]')


def format_date(value: date | datetime | None) -> str:
    if value is None:
        return ''
    return value.strftime(DATE_FORMAT)


def parse_date(text: str | None) -> date | None:
    """'dd/mm/yyyy' -> date; blank -> None. Raises ValueError on a bad format."""
    if text is None or not text.strip():
        return None
    return datetime.strptime(text.strip(), DATE_FORMAT).date()


def generate_file_name(num_formulaire: str, contrat_juridique: str, liste_pc: list[str]) -> str:
    """
    Suggested document name, without extension.

    Format: 'NumFormulaire - CJ - PC1 PC2 PC3'. PC codes are cut to
    MAX_PC_LENGTH characters and blank ones skipped.
    """
    codes = []
    for pc in liste_pc or []:
        pc = (pc or '').strip()
        if pc:
            codes.append(pc[:MAX_PC_LENGTH])

    name = f'{num_formulaire} - {contrat_juridique} - {" ".join(codes)}'
    return INVALID_FILENAME_CHARS.sub('_', name)
