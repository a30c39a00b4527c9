"""Reading a fiche from JSON and its captures from image files (CLI input)."""

import json
from collections import Counter
from enum import Enum
from typing import Iterable

from PIL import Image, ImageOps

from fiche.models import (
    CaptureCategory, ElementPleiade, Fiche, NatureDemande, Risque, ScreenCapture, TypeDemande,
)

_TEXT_FIELDS = (
    'contrat_juridique', 'num_formulaire', 'date_effet', 'dispositif', 'raison_social',
    'parametreur', 'taux_chargement', 'structure', 'structure2',
)


def parse_enum(cls: type[Enum], value: str | None):
    """Member by name ('E_CONTRACTU') or display name ('E-Contractu')."""
    if value is None or not str(value).strip():
        return None
    key = str(value).strip()
    for member in cls:
        if key.upper() == member.name or key.lower() == member.display_name.lower():
            return member
    raise ValueError(f"Unknown {cls.__name__}: '{value}'")


def _str(value) -> str | None:
    return None if value is None else str(value)


def _str_list(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def fiche_from_dict(data: dict) -> Fiche:
    fiche = Fiche(**{name: _str(data.get(name)) for name in _TEXT_FIELDS})
    fiche.type_demande   = parse_enum(TypeDemande, data.get('type_demande'))
    fiche.risque         = parse_enum(Risque, data.get('risque'))
    fiche.nature_demande = parse_enum(NatureDemande, data.get('nature_demande'))
    fiche.elements = [ElementPleiade.parse(e).display_name for e in _str_list(data.get('elements'))]
    fiche.formules = _str_list(data.get('formules'))
    fiche.liste_pc = _str_list(data.get('liste_pc'))
    return fiche


def load_fiche(path: str) -> Fiche:
    with open(path, encoding='utf-8') as f:
        return fiche_from_dict(json.load(f))


def load_image(path: str) -> Image.Image:
    """Open an image with its EXIF orientation applied."""
    with Image.open(path) as im:
        return ImageOps.exif_transpose(im).copy()


def load_captures(specs: Iterable[str]) -> list[ScreenCapture]:
    """
    'CATEGORY=path' items -> captures, in the given order.

    Numbering within a category starts at 0, as in the capture panel.
    """
    captures = []
    counts = Counter()
    for spec in specs:
        name, sep, path = spec.partition('=')
        if not sep or not path:
            raise ValueError(f"Capture must be CATEGORY=path: '{spec}'")
        category = parse_enum(CaptureCategory, name)
        if category is None:
            raise ValueError(f"Capture without category: '{spec}'")
        captures.append(ScreenCapture(category, load_image(path), counts[category]))
        counts[category] += 1
    return captures
