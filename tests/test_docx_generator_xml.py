"""End-to-end generation on a minimal .docx template."""

import zipfile
from datetime import date

import pytest
from lxml import etree

from conftest import DOCUMENT_RELS, STYLES, W_NS, paragraph
from fiche.docx.docx_generator_xml import (
    DEFAULT_TEMPLATE_PATH, DocxGenerator, resolve_template_path, rewrite_document,
)
from fiche.docx.image_packager import ImagePackager
from fiche.models import CaptureCategory, NatureDemande, ScreenCapture
from fiche.service import DocumentGenerationService

FRAGMENTED_CJ = (
    '<w:p><w:r><w:t xml:space="preserve">CJ: {{CONTRAT_</w:t></w:r>'
    '<w:r><w:rPr><w:b/></w:rPr><w:t>JURIDIQUE}}</w:t></w:r></w:p>'
)

BODY = (
    paragraph('Form {{NUM_FORMULAIRE}} of {{DATE_DU_JOUR}}')
    + FRAGMENTED_CJ
    + paragraph('{{RAISON_SOCIAL}}')
    + paragraph('{{AUCUN_PARAMETRAGE}}')
    + paragraph('{{PC1}} {{PC2}} {{PC3}}')
    + paragraph('{{CAPTURES_TEST_ADHESION}}')
    + paragraph('{{CAPTURES_COTISATIONS_FORMULAIRE}}')
    + paragraph('{{CAPTURES_AUTRES_INFORMATIONS}}')
)

TEMPLATE_IMAGE = b'\x89PNG\r\n\x1a\n template picture'


def read_entries(path) -> dict[str, bytes]:
    with zipfile.ZipFile(path) as z:
        return {name: z.read(name) for name in z.namelist()}


@pytest.fixture
def template(make_template):
    return make_template(BODY, extra={'word/media/image1.png': TEMPLATE_IMAGE})


@pytest.fixture
def generate(template, lookups, tmp_path):
    def _generate(fiche, name='out/fiche.docx'):
        o_path = str(tmp_path / name)
        DocxGenerator(lookups, t_path=template).generate(fiche, o_path, today=date(2025, 3, 7))
        return read_entries(o_path)
    return _generate


class TestGenerate:

    def test_tags_substituted(self, generate, fiche):
        document = generate(fiche)['word/document.xml'].decode('utf-8')
        assert 'Form F-2024-001 of 07/03/2025' in document
        assert 'CJ: CJ001' in document
        assert 'ACME &amp; Fils' in document
        assert 'TPSS01 TPSS02 ' in document
        assert '{{' not in document and '}}' not in document

    def test_empty_tag_paragraph_removed(self, generate, fiche):
        document = generate(fiche)['word/document.xml'].decode('utf-8')
        root = etree.fromstring(document.encode('utf-8'))
        texts = [''.join(p.itertext()) for p in root.iter(f'{{{W_NS}}}p')]
        assert '' not in texts
        assert texts == [
            'Form F-2024-001 of 07/03/2025',
            'CJ: CJ001',
            'ACME & Fils',
            'TPSS01 TPSS02 ',
            'N/A',
            'N/A',
        ]

    def test_aucun_parametrage_rendered(self, generate, fiche):
        fiche.nature_demande = NatureDemande.AUCUN
        document = generate(fiche)['word/document.xml'].decode('utf-8')
        assert 'Aucun paramétrage nécessaire' in document

    def test_captures_inserted(self, generate, fiche, bitmap):
        fiche.captures = [
            ScreenCapture(CaptureCategory.TEST_ADHESION, bitmap(), 0),
            ScreenCapture(CaptureCategory.TEST_ADHESION, bitmap(20, 20), 1),
        ]
        entries = generate(fiche)
        document = entries['word/document.xml'].decode('utf-8')
        etree.fromstring(entries['word/document.xml'])

        assert document.count('<w:drawing>') == 2
        assert document.index('TPSS01') < document.index('r:embed="rId100"')
        assert document.index('TPSS02', document.index('rId100')) < document.index('r:embed="rId101"')
        assert entries['word/media/image100.png'].startswith(b'\x89PNG')
        assert 'word/media/image101.png' in entries

        rels = entries['word/_rels/document.xml.rels'].decode('utf-8')
        assert 'Id="rId100"' in rels and 'Target="media/image101.png"' in rels
        assert 'Extension="png"' in entries['[Content_Types].xml'].decode('utf-8')

    def test_untouched_entries_are_byte_identical(self, generate, fiche, bitmap):
        fiche.captures = [ScreenCapture(CaptureCategory.AUTRES_INFORMATIONS, bitmap(), 0)]
        entries = generate(fiche)
        assert entries['word/styles.xml'] == STYLES.encode()
        assert entries['word/media/image1.png'] == TEMPLATE_IMAGE

    def test_no_captures_leaves_package_parts_alone(self, generate, fiche):
        entries = generate(fiche)
        assert entries['word/_rels/document.xml.rels'] == DOCUMENT_RELS.encode()
        assert [name for name in entries if name.startswith('word/media/')] == ['word/media/image1.png']

    def test_entry_order_kept_media_appended(self, generate, fiche, bitmap, template):
        fiche.captures = [ScreenCapture(CaptureCategory.TEST_ADHESION, bitmap(), 0)]
        names = list(generate(fiche))
        with zipfile.ZipFile(template) as z:
            assert names[:len(z.namelist())] == z.namelist()
        assert names[-1] == 'word/media/image100.png'

    def test_output_directory_created(self, generate, fiche, tmp_path):
        generate(fiche, name='a/b/c.docx')
        assert (tmp_path / 'a' / 'b' / 'c.docx').is_file()

    def test_returns_output_path(self, template, lookups, fiche, tmp_path):
        o_path = str(tmp_path / 'fiche.docx')
        assert DocxGenerator(lookups, t_path=template).generate(fiche, o_path) == o_path

    def test_no_captures_logged(self, template, lookups, fiche, tmp_path, caplog):
        with caplog.at_level('INFO', logger='fiche.docx.docx_generator_xml'):
            DocxGenerator(lookups, t_path=template).generate(fiche, str(tmp_path / 'fiche.docx'))
        assert 'No captures to insert' in caplog.text


class TestDefaultLookups:

    @pytest.fixture(autouse=True)
    def bundled_config_only(self, tmp_path, monkeypatch):
        monkeypatch.delenv('FICHE_CONFIG', raising=False)
        monkeypatch.chdir(tmp_path)

    def test_bundled_tables_are_loaded(self, make_template, fiche, tmp_path):
        t_path = make_template(paragraph('{{OPERATION}}') + paragraph('{{AUCUN_PARAMETRAGE}}'))
        o_path = str(tmp_path / 'fiche.docx')
        DocxGenerator(t_path=t_path).generate(fiche, o_path)
        document = read_entries(o_path)['word/document.xml'].decode('utf-8')
        assert 'Création du contrat dans Pléiade.' in document
        assert 'AUCUN_PARAMETRAGE' not in document

    def test_service_without_config(self, make_template, fiche, tmp_path):
        t_path = make_template(paragraph('{{OPERATION}}'))
        service = DocumentGenerationService()
        service.generator.t_path = t_path
        o_path = service.generate(fiche, str(tmp_path / 'fiche.docx'))
        document = read_entries(o_path)['word/document.xml'].decode('utf-8')
        assert 'Création du contrat dans Pléiade.' in document


class TestTemplateErrors:

    def test_missing_template(self, lookups, fiche, tmp_path):
        generator = DocxGenerator(lookups, t_path=str(tmp_path / 'absent.docx'))
        with pytest.raises(FileNotFoundError):
            generator.generate(fiche, str(tmp_path / 'out.docx'))
        assert not (tmp_path / 'out.docx').exists()

    def test_template_not_a_zip(self, lookups, fiche, tmp_path):
        t_path = tmp_path / 'modele.docx'
        t_path.write_text('not a zip')
        with pytest.raises(ValueError):
            DocxGenerator(lookups, t_path=str(t_path)).generate(fiche, str(tmp_path / 'out.docx'))

    def test_partial_output_removed_on_failure(self, make_template, lookups, fiche, tmp_path):
        t_path = make_template(BODY, extra={'word/document.xml': b'\xff\xfe\x00<w:document'})
        o_path = tmp_path / 'out.docx'
        with pytest.raises(UnicodeDecodeError):
            DocxGenerator(lookups, t_path=t_path).generate(fiche, str(o_path))
        assert not o_path.exists()


class TestTemplatePath:

    def test_explicit_path_wins(self, monkeypatch):
        monkeypatch.setenv('TEMPLATE_PATH', 'env.docx')
        assert resolve_template_path('explicit.docx') == 'explicit.docx'

    def test_environment(self, monkeypatch):
        monkeypatch.setenv('TEMPLATE_PATH', 'env.docx')
        assert resolve_template_path() == 'env.docx'

    def test_default(self, monkeypatch):
        monkeypatch.delenv('TEMPLATE_PATH', raising=False)
        assert resolve_template_path() == DEFAULT_TEMPLATE_PATH

    def test_generator_reads_environment(self, monkeypatch, template, lookups, fiche, tmp_path):
        monkeypatch.setenv('TEMPLATE_PATH', template)
        o_path = str(tmp_path / 'out.docx')
        DocxGenerator(lookups).generate(fiche, o_path)
        assert zipfile.is_zipfile(o_path)


def test_rewrite_document_sweeps_leftover_capture_tags():
    xml = '<w:tc>{{CAPTURES_TEST_ADHESION}}</w:tc>' + paragraph('{{NUM_FORMULAIRE}}')
    result = rewrite_document(xml, {'NUM_FORMULAIRE': '42'}, ImagePackager())
    assert result == '<w:tc></w:tc>' + paragraph('42')
