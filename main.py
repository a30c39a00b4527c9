import os
import sys
import logging
import argparse
from dotenv import load_dotenv

from fiche.config import Config
from fiche.docx.docx_generator_xml import DocxGenerator
from fiche.models import CaptureCategory
from fiche.record import load_captures, load_fiche
from fiche.service import DocumentGenerationError, DocumentGenerationService

load_dotenv()

OUTPUT_DIR = os.getenv('OUTPUT_DIR', 'output')


def main():
    categories = ', '.join(c.name for c in CaptureCategory)
    parser = argparse.ArgumentParser(description='Fiche de contrôle Word generator')
    parser.add_argument('record', help='form data (JSON)')
    parser.add_argument('--capture', action='append', default=[], metavar='CATEGORY=PATH',
                        help=f'screenshot to insert, repeatable ({categories})')
    parser.add_argument('--template', help='Word template (default: TEMPLATE_PATH or templates/modele.docx)')
    parser.add_argument('--config', help='lookup tables (default: config/application.properties)')
    parser.add_argument('--output', help=f'output .docx (default: {OUTPUT_DIR}/<form> - <CJ> - <PC>.docx)')
    args = parser.parse_args()

    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
    )

    try:
        print(f"[1/3] Reading form data... ({args.record})")
        fiche = load_fiche(args.record)
        config = Config.load(args.config)

        print(f"[2/3] Loading captures... ({len(args.capture)})")
        fiche.captures = load_captures(args.capture)
    except (OSError, ValueError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        sys.exit(1)

    service = DocumentGenerationService(generator=DocxGenerator(config, t_path=args.template))
    o_path = args.output or os.path.join(OUTPUT_DIR, f'{service.file_name(fiche)}.docx')

    print(f"[3/3] Generating document... ({o_path})")
    try:
        service.generate(fiche, o_path)
    except DocumentGenerationError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        for field, message in e.validation_errors.items():
            print(f"        - {field}: {message}", file=sys.stderr)
        sys.exit(1)
    print("Done")


if __name__ == '__main__':
    main()
