"""Builds the {{TAG}} -> value table of the Word template from a fiche."""

import logging
from datetime import date
from types import MappingProxyType
from typing import Mapping, Protocol

from fiche import config as keys
from fiche.models import Fiche, NatureDemande, Risque, TypeDemande
from fiche.utils import format_date

logger = logging.getLogger(__name__)

CREATION_SEPARATOR = '+'
DEFAULT_SEPARATOR  = ' / '

PC_SLOTS = 3

_OPERATION_KEYS = {
    NatureDemande.CREATION:     keys.OPERATION_CONTRAT,
    NatureDemande.MODIFICATION: keys.OPERATION_AVENANT,
}

_PRESTATION_KEYS = {
    Risque.FSS:  keys.PRESTATION_SANTE,
    Risque.PREV: keys.PRESTATION_PREV,
}


class Lookups(Protocol):
    def get_value(self, key: str, default: str | None = None) -> str | None: ...


def _text(value) -> str:
    return '' if value is None else str(value)


def _lookup(lookups: Lookups, key: str | None) -> str:
    """Configured text for key, '' when unknown, blank or unreadable."""
    if key is None:
        return ''
    try:
        value = lookups.get_value(key)
    except Exception as e:
        logger.error("Cannot read configuration key '%s': %s", key, e)
        return ''
    if value is None or not value.strip():
        logger.debug("No configuration value for '%s'", key)
        return ''
    return value


def nature_demande_label(fiche: Fiche) -> str:
    """'Création PG+PC+RG' or 'Modification Cotis / Tx Chgt / CJ'."""
    nature = fiche.nature_demande
    if nature is None:
        return ''
    label = nature.display_name
    elements = [e for e in fiche.elements or [] if e]
    if elements:
        sep = CREATION_SEPARATOR if nature is NatureDemande.CREATION else DEFAULT_SEPARATOR
        label += ' ' + sep.join(elements)
    return label


def pc_slot(liste_pc: list[str] | None, index: int) -> str:
    if not liste_pc or index >= len(liste_pc) or liste_pc[index] is None:
        return ''
    return liste_pc[index].strip()


def resolve_tags(fiche: Fiche, lookups: Lookups, today: date | None = None) -> Mapping[str, str]:
    """
    Substitution table for every tag of the template, in replacement order.

    Never raises on inapplicable combinations or lookup misses: the tag
    resolves to '' and its paragraph is dropped by the rewriter.
    """
    nature = fiche.nature_demande

    operation = _lookup(lookups, _OPERATION_KEYS.get(nature))

    prestation = ''
    if nature is NatureDemande.CREATION and fiche.type_demande is TypeDemande.E_CONTRACTU:
        prestation = _lookup(lookups, _PRESTATION_KEYS.get(fiche.risque))

    aucun_parametrage = ''
    if nature is NatureDemande.AUCUN:
        aucun_parametrage = _lookup(lookups, keys.COMMENT_NO_PARAMS)

    tags = {
        'NUM_FORMULAIRE':    _text(fiche.num_formulaire),
        'CONTRAT_JURIDIQUE': _text(fiche.contrat_juridique),
        'NATURE_DEMANDE':    nature_demande_label(fiche),
        'DATE_DU_JOUR':      format_date(today or date.today()),
        'DATE_EFFET':        _text(fiche.date_effet),
        'DISPOSITIF':        _text(fiche.dispositif),
        'RAISON_SOCIAL':     _text(fiche.raison_social),
        'PARAMETREUR':       _text(fiche.parametreur),
        'PRODUIT_GESTION':   fiche.produit_gestion,
        'FORMULE':           fiche.formule,
        'TAUX_CHARGEMENT':   _text(fiche.taux_chargement),
        'STRUCTURE2':        _text(fiche.structure2),
        'STRUCTURE':         _text(fiche.structure),
        'TYPE_DEMANDE':      fiche.type_demande.display_name if fiche.type_demande else '',
        'RISQUE':            fiche.risque.display_name if fiche.risque else '',
        'ACTION':            nature.libelle if nature else '',
        'OPERATION':         operation,
        'EQUIPE_PRESTATION': prestation,
        # TODO: fill FERMETURE_RG once RG closures are captured on the form
        'FERMETURE_RG':      '',
        'AUCUN_PARAMETRAGE': aucun_parametrage,
    }
    for i in range(PC_SLOTS):
        tags[f'PC{i + 1}'] = pc_slot(fiche.liste_pc, i)

    return MappingProxyType(tags)
