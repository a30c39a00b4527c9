"""
Screen captures -> inline pictures of word/document.xml.

One ImagePackager per generated document: it owns the relationship / file
name counters and the prepared PNGs, and patches the two package parts that
declare them (word/_rels/document.xml.rels and [Content_Types].xml).
"""

import io
import itertools
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Sequence

from lxml import etree
from PIL import Image, UnidentifiedImageError

from fiche.docx.token_rewriter import enclosing_paragraph, escape_xml, find_tag
from fiche.models import CaptureCategory, EmptyRendering, LabelKind, ScreenCapture

logger = logging.getLogger(__name__)

# Start high enough to stay clear of the template's own rId / imageN / docPr ids
FIRST_RELATIONSHIP_ID = 100
FIRST_IMAGE_ID        = 100

MEDIA_DIR = 'word/media'
IMAGE_EXTENSION = 'png'
IMAGE_CONTENT_TYPE = 'image/png'
IMAGE_RELATIONSHIP_TYPE = 'http://schemas.openxmlformats.org/officeDocument/2006/relationships/image'

NOT_APPLICABLE_TEXT = 'N/A'
COMPARISON_LABELS = ('Before:', 'After:')
SEPARATOR_PARAGRAPH = '<w:p/>'


@dataclass(frozen=True)
class PreparedImage:
    data: bytes             # PNG
    file_name: str          # image100.png
    width_emu: int
    height_emu: int
    image_id: int           # DrawingML docPr / cNvPr id
    relationship_id: str    # rId100
    category: CaptureCategory

    @property
    def path(self) -> str:
        return f'{MEDIA_DIR}/{self.file_name}'


def _to_png(image: Image.Image | None) -> bytes:
    if image is None:
        raise ValueError('no image captured')
    w, h = image.size
    if not w or not h:
        raise ValueError(f'empty image ({w}x{h})')
    buf = io.BytesIO()
    image.save(buf, format='PNG')
    return buf.getvalue()


def _text_paragraph(text: str) -> str:
    return f'<w:p><w:r><w:t>{escape_xml(text)}</w:t></w:r></w:p>'


def _drawing(img: PreparedImage) -> str:
    """Inline DrawingML picture sized to the prepared EMU extent."""
    cx, cy = img.width_emu, img.height_emu
    return (
        '<w:drawing>'
        '<wp:inline distT="0" distB="0" distL="0" distR="0">'
        f'<wp:extent cx="{cx}" cy="{cy}"/>'
        f'<wp:docPr id="{img.image_id}" name="{img.file_name}"/>'
        '<a:graphic xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main">'
        '<a:graphicData uri="http://schemas.openxmlformats.org/drawingml/2006/picture">'
        '<pic:pic xmlns:pic="http://schemas.openxmlformats.org/drawingml/2006/picture">'
        '<pic:nvPicPr>'
        f'<pic:cNvPr id="{img.image_id}" name="{img.file_name}"/>'
        '<pic:cNvPicPr/>'
        '</pic:nvPicPr>'
        '<pic:blipFill>'
        f'<a:blip r:embed="{img.relationship_id}"/>'
        '<a:stretch><a:fillRect/></a:stretch>'
        '</pic:blipFill>'
        '<pic:spPr>'
        '<a:xfrm>'
        '<a:off x="0" y="0"/>'
        f'<a:ext cx="{cx}" cy="{cy}"/>'
        '</a:xfrm>'
        '<a:prstGeom prst="rect"><a:avLst/></a:prstGeom>'
        '</pic:spPr>'
        '</pic:pic>'
        '</a:graphicData>'
        '</a:graphic>'
        '</wp:inline>'
        '</w:drawing>'
    )


def _namespace(root: etree._Element) -> str:
    return root.tag.split('}')[0].lstrip('{') if '}' in root.tag else ''


def _qname(ns: str, local: str) -> str:
    return f'{{{ns}}}{local}' if ns else local


def _serialize(root: etree._Element) -> bytes:
    return etree.tostring(root, xml_declaration=True, encoding='UTF-8', standalone=True)


class ImagePackager:

    def __init__(self):
        self._rel_ids = itertools.count(FIRST_RELATIONSHIP_ID)
        self._image_ids = itertools.count(FIRST_IMAGE_ID)
        self._images: list[PreparedImage] = []

    @property
    def images(self) -> tuple[PreparedImage, ...]:
        return tuple(self._images)

    def has_images(self) -> bool:
        return bool(self._images)

    # ── 1. preparation ────────────────────────────────────────────────

    def prepare(self, captures: Iterable[ScreenCapture] | None) -> list[PreparedImage]:
        """
        Encode every capture to PNG and give it its ids and EMU size.

        A capture that cannot be encoded is logged and skipped; ids are only
        consumed by captures that made it.
        """
        prepared = []
        for capture in captures or []:
            try:
                data = _to_png(capture.image)
            except (OSError, ValueError, UnidentifiedImageError) as e:
                logger.error("Cannot convert capture '%s' to PNG, skipped: %s",
                             capture.display_name, e)
                continue

            w, h = capture.image.size
            image_id = next(self._image_ids)
            width_emu = capture.category.target_width_emu
            img = PreparedImage(
                data=data,
                file_name=f'image{image_id}.{IMAGE_EXTENSION}',
                width_emu=width_emu,
                height_emu=int(width_emu * h / w),
                image_id=image_id,
                relationship_id=f'rId{next(self._rel_ids)}',
                category=capture.category,
            )
            self._images.append(img)
            prepared.append(img)
            logger.debug("Prepared capture %s (%dx%d px) -> %s (%s)",
                         capture.display_name, w, h, img.file_name, img.relationship_id)

        logger.info("%d image(s) prepared for insertion", len(self._images))
        return prepared

    def images_by_category(self) -> dict[CaptureCategory, list[PreparedImage]]:
        grouped = defaultdict(list)
        for img in self._images:
            grouped[img.category].append(img)
        return grouped

    # ── 2. markup ─────────────────────────────────────────────────────

    def render_category_block(self, category: CaptureCategory,
                              entries: Sequence[PreparedImage],
                              slot_labels: Sequence[str] | None = None) -> str:
        """Paragraphs replacing the {{CAPTURES_...}} paragraph of `category`."""
        policy = category.policy
        if not entries:
            if policy.when_empty is EmptyRendering.NOT_APPLICABLE:
                return _text_paragraph(NOT_APPLICABLE_TEXT)
            return ''

        parts = []
        for i, img in enumerate(entries):
            if i > 0:
                parts.append(SEPARATOR_PARAGRAPH)

            if policy.labels is LabelKind.COMPARISON and i < len(COMPARISON_LABELS):
                parts.append(_text_paragraph(COMPARISON_LABELS[i]))
            elif policy.labels is LabelKind.SLOT and slot_labels and i < len(slot_labels):
                label = (slot_labels[i] or '').strip()
                if label:
                    parts.append(_text_paragraph(label))

            parts.append(f'<w:p><w:r>{_drawing(img)}</w:r></w:p>')
        return ''.join(parts)

    def replace_capture_tags(self, xml: str, slot_labels: Sequence[str] | None = None) -> str:
        """
        Swap the paragraph holding each {{CAPTURES_...}} tag for its block.

        Only the first occurrence per category is consumed; tags outside a
        paragraph are left to the caller's final sweep.
        """
        grouped = self.images_by_category()
        for category in CaptureCategory:
            found = find_tag(xml, category.word_tag)
            if found is None:
                continue
            para = enclosing_paragraph(xml, *found)
            if para is None:
                logger.warning("Tag {{%s}} is not inside a paragraph, left as is", category.word_tag)
                continue
            block = self.render_category_block(category, grouped.get(category, []), slot_labels)
            p_start, p_end = para
            xml = xml[:p_start] + block + xml[p_end:]
        return xml

    # ── 3-5. package parts ────────────────────────────────────────────

    def patch_relationships(self, rels_xml: bytes) -> bytes:
        """Declare every prepared image in word/_rels/document.xml.rels."""
        if not self._images:
            return rels_xml
        try:
            root = etree.fromstring(rels_xml)
        except etree.XMLSyntaxError as e:
            logger.error("Cannot parse document.xml.rels, relationships not added: %s", e)
            return rels_xml

        ns = _namespace(root)
        declared = {el.get('Id') for el in root}
        missing = [img for img in self._images if img.relationship_id not in declared]
        if not missing:
            return rels_xml

        for img in missing:
            etree.SubElement(root, _qname(ns, 'Relationship'), {
                'Id':     img.relationship_id,
                'Type':   IMAGE_RELATIONSHIP_TYPE,
                'Target': f'media/{img.file_name}',
            })
        return _serialize(root)

    def patch_content_types(self, types_xml: bytes) -> bytes:
        """Add the png Default to [Content_Types].xml when it is not declared yet."""
        if not self._images:
            return types_xml
        try:
            root = etree.fromstring(types_xml)
        except etree.XMLSyntaxError as e:
            logger.error("Cannot parse [Content_Types].xml, png type not added: %s", e)
            return types_xml

        ns = _namespace(root)
        for el in root.iter(_qname(ns, 'Default')):
            if (el.get('Extension') or '').lower() == IMAGE_EXTENSION:
                return types_xml

        etree.SubElement(root, _qname(ns, 'Default'), {
            'Extension':   IMAGE_EXTENSION,
            'ContentType': IMAGE_CONTENT_TYPE,
        })
        return _serialize(root)

    def media_entries(self) -> list[tuple[str, bytes]]:
        return [(img.path, img.data) for img in self._images]
