"""
Fiche de contrôle generator: direct XML rewrite of the .docx template.

A .docx is a ZIP of XML parts, so the template is streamed entry by entry:
word/document.xml gets the tag substitutions and the captures, the two parts
declaring images are patched, every other entry is copied untouched, and the
PNGs are appended under word/media/.
"""

import logging
import os
import zipfile
from datetime import date
from typing import Mapping

from fiche.config import Config
from fiche.docx.image_packager import ImagePackager
from fiche.docx.token_rewriter import substitute
from fiche.models import CaptureCategory, Fiche
from fiche.tag_resolver import Lookups, resolve_tags

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_PATH = os.path.join('templates', 'modele.docx')

DOCUMENT_KEY      = 'word/document.xml'
RELS_KEY          = 'word/_rels/document.xml.rels'
CONTENT_TYPES_KEY = '[Content_Types].xml'


def resolve_template_path(t_path: str | None = None) -> str:
    """Explicit path, then TEMPLATE_PATH, then templates/modele.docx."""
    return t_path or os.getenv('TEMPLATE_PATH') or DEFAULT_TEMPLATE_PATH


def rewrite_document(xml: str, tags: Mapping[str, str], packager: ImagePackager,
                     slot_labels: list[str] | None = None) -> str:
    """All edits of word/document.xml, in order: tags, captures, leftover capture tags."""
    for name, value in tags.items():
        xml = substitute(xml, name, value)

    xml = packager.replace_capture_tags(xml, slot_labels)

    # fragmented capture tags the block replacement could not locate
    for category in CaptureCategory:
        xml = substitute(xml, category.word_tag, '')
    return xml


class DocxGenerator:
    """Builds one .docx per call; no state is kept between calls."""

    def __init__(self, lookups: Lookups | None = None, t_path: str | None = None):
        self.lookups = lookups if lookups is not None else Config.load()
        self.t_path = t_path

    def generate(self, fiche: Fiche, o_path: str, today: date | None = None) -> str:
        """
        Write the fiche de contrôle of `fiche` to `o_path`.

        fiche  : validated form data (captures included)
        o_path : output .docx path; removed again if generation fails
        """
        logger.info("Generating document for form %s", fiche.num_formulaire)

        t_path = resolve_template_path(self.t_path)
        if not os.path.isfile(t_path):
            logger.error("Word template not found: %s", t_path)
            raise FileNotFoundError(f"Word template not found: {t_path}")
        if not zipfile.is_zipfile(t_path):
            raise ValueError(f"Word template is not a .docx (ZIP) file: {t_path}")
        logger.info("Template loaded from %s", os.path.abspath(t_path))

        tags = resolve_tags(fiche, self.lookups, today=today)

        packager = ImagePackager()
        packager.prepare(fiche.captures)
        if not packager.has_images():
            logger.info("No captures to insert")

        os.makedirs(os.path.dirname(o_path) or '.', exist_ok=True)
        try:
            self._write_package(t_path, o_path, tags, packager, fiche.liste_pc)
        except Exception:
            if os.path.exists(o_path):
                os.unlink(o_path)
            raise

        logger.info("Document generated: %s", os.path.abspath(o_path))
        return o_path

    def _write_package(self, t_path: str, o_path: str, tags: Mapping[str, str],
                       packager: ImagePackager, slot_labels: list[str] | None) -> None:
        with zipfile.ZipFile(t_path, 'r') as zin, \
                zipfile.ZipFile(o_path, 'w', zipfile.ZIP_DEFLATED) as zout:
            # ZipInfo reuse keeps each entry's compression and timestamps
            for info in zin.infolist():
                content = zin.read(info)

                if info.filename == DOCUMENT_KEY:
                    logger.debug("Rewriting %s", DOCUMENT_KEY)
                    xml = rewrite_document(content.decode('utf-8'), tags, packager, slot_labels)
                    content = xml.encode('utf-8')
                elif info.filename == RELS_KEY:
                    content = packager.patch_relationships(content)
                elif info.filename == CONTENT_TYPES_KEY:
                    content = packager.patch_content_types(content)

                zout.writestr(info, content)

            for path, data in packager.media_entries():
                zout.writestr(path, data, compress_type=zipfile.ZIP_DEFLATED)
                logger.debug("Image added to package: %s", path)
