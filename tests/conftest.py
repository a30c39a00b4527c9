"""Shared fixtures: a minimal .docx template, sample form data and bitmaps."""

import zipfile

import pytest
from PIL import Image

from fiche.config import Config
from fiche.models import Fiche, NatureDemande, Risque, TypeDemande

W_NS = 'http://schemas.openxmlformats.org/wordprocessingml/2006/main'
R_NS = 'http://schemas.openxmlformats.org/officeDocument/2006/relationships'
WP_NS = 'http://schemas.openxmlformats.org/drawingml/2006/wordprocessingDrawing'

CONTENT_TYPES = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    '<Types xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
    '<Default Extension="rels" ContentType="application/vnd.openxmlformats-package.relationships+xml"/>'
    '<Default Extension="xml" ContentType="application/xml"/>'
    '<Override PartName="/word/document.xml" '
    'ContentType="application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml"/>'
    '</Types>'
)

DOCUMENT_RELS = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    '<Relationships xmlns="http://schemas.openxmlformats.org/package/2006/relationships">'
    '<Relationship Id="rId1" Type="http://schemas.openxmlformats.org/officeDocument/2006/relationships/styles" '
    'Target="styles.xml"/>'
    '</Relationships>'
)

STYLES = (
    '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
    f'<w:styles xmlns:w="{W_NS}"><w:style w:type="paragraph" w:styleId="Normal"/></w:styles>'
)


def document_xml(body: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'
        f'<w:document xmlns:w="{W_NS}" xmlns:r="{R_NS}" xmlns:wp="{WP_NS}">'
        f'<w:body>{body}</w:body></w:document>'
    )


def paragraph(text: str) -> str:
    return f'<w:p><w:pPr><w:pStyle w:val="Normal"/></w:pPr><w:r><w:t>{text}</w:t></w:r></w:p>'


def write_docx(path, body: str, extra: dict | None = None) -> str:
    entries = {
        '[Content_Types].xml': CONTENT_TYPES,
        'word/document.xml': document_xml(body),
        'word/_rels/document.xml.rels': DOCUMENT_RELS,
        'word/styles.xml': STYLES,
    }
    entries.update(extra or {})
    with zipfile.ZipFile(path, 'w', zipfile.ZIP_DEFLATED) as z:
        for name, content in entries.items():
            z.writestr(name, content)
    return str(path)


@pytest.fixture
def make_template(tmp_path):
    """make_template(body, extra=None) -> path of a .docx whose body is `body`."""
    def _make(body: str, extra: dict | None = None, name: str = 'modele.docx') -> str:
        return write_docx(tmp_path / name, body, extra)
    return _make


@pytest.fixture
def bitmap():
    """make(w, h) -> RGB Pillow image."""
    def _make(w: int = 10, h: int = 5) -> Image.Image:
        return Image.new('RGB', (w, h), (200, 30, 30))
    return _make


@pytest.fixture
def lookups():
    return Config({
        'commentaire.sans.parametrage': 'Aucun paramétrage nécessaire',
        'commentaire.operation.contrat': 'Création du contrat',
        'commentaire.operation.avenant': "Création d'un avenant",
        'commentaire.prestation.sante': 'Équipe Santé',
        'commentaire.prestation.prev': 'Équipe Prévoyance',
    })


@pytest.fixture
def fiche():
    return Fiche(
        contrat_juridique='CJ001',
        num_formulaire='F-2024-001',
        type_demande=TypeDemande.O2,
        risque=Risque.FSS,
        nature_demande=NatureDemande.CREATION,
        elements=['PG', 'PC', 'RG'],
        date_effet='01/01/2025',
        dispositif='Dispositif A',
        raison_social='ACME & Fils',
        parametreur='Alice Martin',
        formules=['Base', 'Option 1'],
        taux_chargement='12,5',
        structure='Famille',
        structure2='Isole',
        liste_pc=['TPSS01', 'TPSS02', ''],
    )
