"""
{{TAG}} substitution inside word/document.xml, working on the raw markup.

Word often splits a tag typed by hand over several runs, e.g.

    <w:r><w:t>{{</w:t></w:r><w:r><w:rPr><w:b/></w:rPr><w:t>NUM_</w:t></w:r><w:r><w:t>FORMULAIRE}}</w:t></w:r>

so tags are matched on the document's plain text (the characters outside
markup tags) and mapped back to markup offsets.
"""

import bisect
import re
from typing import Iterator
from xml.sax.saxutils import escape

OPEN  = '{{'
CLOSE = '}}'

PARAGRAPH_END = '</w:p>'

# <w:p> and </w:p>, never <w:pPr>, <w:pStyle>, ...; self-closing <w:p/> is filtered by the callers
_PARAGRAPH_TAG = re.compile(r'<(/?)w:p(?:\s[^>]*)?>')

_XML_ENTITIES = {'"': '&quot;', "'": '&apos;'}


def tag(name: str) -> str:
    return f'{OPEN}{name}{CLOSE}'


def escape_xml(text: str | None) -> str:
    if not text:
        return ''
    return escape(text, _XML_ENTITIES)


# ── Plain-text scanner ────────────────────────────────────────────────

def _text_segments(xml: str) -> Iterator[tuple[int, str]]:
    """
    Two-state scanner over the markup: yields (offset, text) for every stretch
    of characters found outside '<...>'.
    """
    pos, n = 0, len(xml)
    in_tag = False
    while pos < n:
        if in_tag:
            end = xml.find('>', pos)
            if end == -1:       # unterminated tag: the rest is markup
                return
            pos = end + 1
            in_tag = False
        else:
            end = xml.find('<', pos)
            if end == -1:
                end = n
            if end > pos:
                yield pos, xml[pos:end]
            pos = end
            in_tag = True


class TextMap:
    """Plain text of a markup chunk and the markup offset of each of its characters."""

    def __init__(self, xml: str):
        self._text_starts: list[int] = []
        self._xml_starts:  list[int] = []
        parts = []
        length = 0
        for offset, text in _text_segments(xml):
            self._text_starts.append(length)
            self._xml_starts.append(offset)
            parts.append(text)
            length += len(text)
        self.text = ''.join(parts)

    def to_xml(self, index: int) -> int:
        """Markup offset of plain-text character `index`."""
        k = bisect.bisect_right(self._text_starts, index) - 1
        return self._xml_starts[k] + (index - self._text_starts[k])


def plain_text(xml: str) -> str:
    return ''.join(text for _, text in _text_segments(xml))


def _find_close(text: str, start: int) -> int:
    """
    End (exclusive) of the delimited span opening at `start`, or -1.

    Nested '{{' raise the depth so an inner pair does not terminate the outer one.
    """
    depth = 0
    pos = start
    while True:
        next_open = text.find(OPEN, pos)
        next_close = text.find(CLOSE, pos)
        if next_close == -1:
            return -1
        if next_open != -1 and next_open < next_close:
            depth += 1
            pos = next_open + len(OPEN)
        else:
            depth -= 1
            pos = next_close + len(CLOSE)
            if depth == 0:
                return pos


def find_spans(xml: str, name: str) -> list[tuple[int, int]]:
    """
    Markup spans [start, end) whose plain text is exactly {{name}}, whether the
    tag sits in one run or is split across several runs of one paragraph.
    Spans do not overlap.
    """
    if OPEN[0] not in xml:
        return []
    target = tag(name)
    tm = TextMap(xml)
    text = tm.text
    spans = []
    i = text.find(OPEN)
    while i != -1:
        end = _find_close(text, i)
        if end != -1 and text[i:end] == target:
            start, stop = tm.to_xml(i), tm.to_xml(end - 1) + 1
            # never splice two paragraphs together
            if PARAGRAPH_END not in xml[start:stop]:
                spans.append((start, stop))
                i = text.find(OPEN, end)
                continue
        i = text.find(OPEN, i + 1)
    return spans


def find_tag(xml: str, name: str) -> tuple[int, int] | None:
    """First occurrence of {{name}}, contiguous or fragmented."""
    candidates = []
    direct = xml.find(tag(name))
    if direct != -1:
        candidates.append((direct, direct + len(tag(name))))
    spans = find_spans(xml, name)
    if spans:
        candidates.append(spans[0])
    return min(candidates) if candidates else None


def enclosing_paragraph(xml: str, start: int, end: int) -> tuple[int, int] | None:
    """[start, end) of the innermost <w:p>...</w:p> around xml[start:end], or None."""
    p_start = None
    depth = 0
    for m in reversed(list(_PARAGRAPH_TAG.finditer(xml, 0, start))):
        if m.group(0).endswith('/>'):
            continue
        if m.group(1):
            depth += 1
        elif depth:
            depth -= 1
        else:
            p_start = m.start()
            break
    if p_start is None:
        return None

    depth = 0
    for m in _PARAGRAPH_TAG.finditer(xml, end):
        if m.group(0).endswith('/>'):
            continue
        if not m.group(1):
            depth += 1
        elif depth:
            depth -= 1
        else:
            return p_start, m.end()
    return None


# ── Replacement ───────────────────────────────────────────────────────

def replace_fragments(xml: str, name: str, escaped_value: str) -> str:
    """
    Replace every (possibly fragmented) {{name}} with `escaped_value`.

    The markup between the first '{' and the last '}' goes away, so the
    surrounding runs collapse into the first run's <w:t> holding the value.
    """
    for start, end in reversed(find_spans(xml, name)):
        xml = xml[:start] + escaped_value + xml[end:]
    return xml


def _remove_tag(xml: str, name: str) -> str:
    """Drop {{name}}, and its paragraph when nothing else is written in it."""
    target = tag(name)
    while True:
        found = find_tag(xml, name)
        if found is None:
            break
        start, end = found
        para = enclosing_paragraph(xml, start, end)
        if para is not None:
            p_start, p_end = para
            rest = plain_text(xml[p_start:p_end]).replace(target, '')
            if not rest.strip():
                xml = xml[:p_start] + xml[p_end:]
                continue
        xml = xml[:start] + xml[end:]

    return replace_fragments(xml, name, '')


def substitute(xml: str, name: str, value: str | None) -> str:
    """
    Replace {{name}} by value in a chunk of document.xml.

    An empty (or None) value removes the tag; a paragraph left blank by the
    removal is deleted entirely so no empty line remains in the document.
    """
    escaped = escape_xml(value)
    if not escaped:
        return _remove_tag(xml, name)

    xml = xml.replace(tag(name), escaped)
    return replace_fragments(xml, name, escaped)
