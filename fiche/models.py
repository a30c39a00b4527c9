"""
Business record of a fiche de contrôle and the enumerations it is built from.

Capture categories carry their rendering policy in `CATEGORY_POLICIES` so the
image packager never branches on individual members.
"""

from dataclasses import dataclass, field
from enum import Enum

from PIL import Image


class NatureDemande(Enum):
    CREATION       = ('Création', 'créé')
    MODIFICATION   = ('Modification', 'modifié')
    RESILIATION    = ('Résiliation', 'résilié')
    REPRISE_PASSIF = ('Reprise de passif', 'repris de passif')
    AUCUN          = ('Aucun Paramétrage', 'inchangé')

    def __init__(self, display_name: str, libelle: str):
        self.display_name = display_name
        self.libelle = libelle    # text of the {{ACTION}} tag


class TypeDemande(Enum):
    O2          = 'O2'
    E_CONTRACTU = 'E-Contractu'

    @property
    def display_name(self) -> str:
        return self.value


class Risque(Enum):
    FSS  = 'FSS'
    PREV = 'Prev'

    @property
    def display_name(self) -> str:
        return self.value


class ElementPleiade(Enum):
    # creation: joined with '+'
    PG      = 'PG'
    PC      = 'PC'
    RG      = 'RG'
    # modification: joined with ' / '
    FORMULE = 'Formule'
    COTIS   = 'Cotis'
    TX_CHGT = 'Tx Chgt'
    DISPO   = 'Dispo'
    CJ      = 'CJ'
    AUTRE   = 'Autre'

    @property
    def display_name(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> 'ElementPleiade':
        """Member name ('TX_CHGT') or display name ('Tx Chgt'), case-insensitive."""
        key = text.strip()
        for member in cls:
            if key.upper() == member.name or key.lower() == member.display_name.lower():
                return member
        raise ValueError(f"Unknown Pléiade element: '{text}'")


# ── Capture categories ────────────────────────────────────────────────
# Widths in EMU = (column width dxa - 216 dxa cell margins) * 635
#   Formulaire column: 5168 dxa -> 3 144 520 EMU
#   Plei@de column   : 5742 dxa -> 3 509 010 EMU
_FORM_WIDTH_EMU    = 3_144_520
_PLEIADE_WIDTH_EMU = 3_509_010


class CaptureCategory(Enum):
    COTISATIONS_FORMULAIRE = ('Cotisations Formulaire',     'CAPTURES_COTISATIONS_FORMULAIRE', True,  _FORM_WIDTH_EMU)
    TX_CHGT_FORMULAIRE     = ('Taux chargement Formulaire', 'CAPTURES_TX_CHGT_FORMULAIRE',     False, _FORM_WIDTH_EMU)
    AUTRES_FORMULAIRES     = ('Autres formulaires',         'CAPTURES_AUTRES_FORMULAIRES',     True,  _FORM_WIDTH_EMU)
    TX_CHGT_PLEIADE        = ('Taux chargement Pléiade',    'CAPTURES_TX_CHGT_PLEIADE',        True,  _PLEIADE_WIDTH_EMU)
    COTISATIONS_PLEIADE    = ('Cotisations Pléiade',        'CAPTURES_COTISATIONS_PLEIADE',    True,  _PLEIADE_WIDTH_EMU)
    TEST_ADHESION          = ("Test d'adhésion",            'CAPTURES_TEST_ADHESION',          True,  _PLEIADE_WIDTH_EMU)
    AUTRES_INFORMATIONS    = ('Autres informations',        'CAPTURES_AUTRES_INFORMATIONS',    True,  _PLEIADE_WIDTH_EMU)

    def __init__(self, display_name: str, word_tag: str, multiple: bool, target_width_emu: int):
        self.display_name = display_name
        self.word_tag = word_tag
        self.multiple = multiple
        self.target_width_emu = target_width_emu

    @property
    def policy(self) -> 'CategoryPolicy':
        return CATEGORY_POLICIES[self]

    def __str__(self) -> str:
        return self.display_name


class EmptyRendering(Enum):
    NOT_APPLICABLE = 'na'       # "N/A" paragraph
    DELETE         = 'delete'   # paragraph removed


class LabelKind(Enum):
    NONE       = 'none'
    COMPARISON = 'comparison'   # "Before:" / "After:"
    SLOT       = 'slot'         # PC code at the same index


@dataclass(frozen=True)
class CategoryPolicy:
    when_empty: EmptyRendering
    labels: LabelKind = LabelKind.NONE


CATEGORY_POLICIES: dict[CaptureCategory, CategoryPolicy] = {
    CaptureCategory.COTISATIONS_FORMULAIRE: CategoryPolicy(EmptyRendering.NOT_APPLICABLE),
    CaptureCategory.TX_CHGT_FORMULAIRE:     CategoryPolicy(EmptyRendering.NOT_APPLICABLE),
    CaptureCategory.AUTRES_FORMULAIRES:     CategoryPolicy(EmptyRendering.DELETE),
    CaptureCategory.TX_CHGT_PLEIADE:        CategoryPolicy(EmptyRendering.DELETE, LabelKind.COMPARISON),
    CaptureCategory.COTISATIONS_PLEIADE:    CategoryPolicy(EmptyRendering.DELETE, LabelKind.COMPARISON),
    CaptureCategory.TEST_ADHESION:          CategoryPolicy(EmptyRendering.NOT_APPLICABLE, LabelKind.SLOT),
    CaptureCategory.AUTRES_INFORMATIONS:    CategoryPolicy(EmptyRendering.DELETE),
}


@dataclass
class ScreenCapture:
    category: CaptureCategory
    image: Image.Image
    index: int = 0      # order within a multiple category

    @property
    def display_name(self) -> str:
        """'Cotisations Formulaire' or "Test d'adhésion (2)"."""
        if self.category.multiple and self.index > 0:
            return f'{self.category.display_name} ({self.index})'
        return self.category.display_name


@dataclass
class Fiche:
    """Form data of one fiche de contrôle, as collected by the caller."""
    contrat_juridique: str | None = None
    num_formulaire:    str | None = None
    type_demande:      TypeDemande | None = None
    risque:            Risque | None = None
    nature_demande:    NatureDemande | None = None
    elements:          list[str] = field(default_factory=list)
    date_effet:        str | None = None
    dispositif:        str | None = None
    raison_social:     str | None = None
    parametreur:       str | None = None
    formules:          list[str] = field(default_factory=list)
    taux_chargement:   str | None = None
    structure:         str | None = None
    structure2:        str | None = None
    liste_pc:          list[str] = field(default_factory=list)
    captures:          list[ScreenCapture] = field(default_factory=list)

    @property
    def formule(self) -> str:
        return ' + '.join(self.formules) if self.formules else ''

    @property
    def produit_gestion(self) -> str:
        """First five characters of the first PC code."""
        if not self.liste_pc or self.liste_pc[0] is None:
            return ''
        return self.liste_pc[0].strip()[:5]
