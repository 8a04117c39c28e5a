#!/usr/bin/env python3
"""
Register form definitions from a YAML fixture file.

Creates missing tables, then registers every form listed under ``forms:``
that is not already stored.  Existing forms (same id) are left alone.

Usage:
    python3 scripts/seed_forms.py --file scripts/sample_forms.yaml
    python3 scripts/seed_forms.py --file my_forms.yaml --db-url sqlite:///forms.db
"""

import argparse
import sys
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Seed form definitions from YAML.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--file",
        type=Path,
        default=ROOT / "scripts" / "sample_forms.yaml",
        help="Form fixture file (default: scripts/sample_forms.yaml).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings override file (default: $FORMS_CONFIG or shipped defaults).",
    )
    parser.add_argument(
        "--db-url",
        default=None,
        help="Database URL; overrides settings and $DATABASE_URL.",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()

    from forms_config import get_active_settings, load_form_definitions
    from forms_kernel.db.engine import create_tables, init_engine_from_url, session_scope
    from forms_kernel.exceptions import RecordNotFoundError
    from forms_kernel.logging_config import configure_logging, get_logger
    from forms_kernel.services.form_catalog import FormCatalog

    settings = get_active_settings(config_file=args.config)
    configure_logging(level=settings.logging.level)
    logger = get_logger("scripts.seed_forms")

    init_engine_from_url(args.db_url or settings.database.url, echo=settings.database.echo)
    create_tables()

    definitions = load_form_definitions(args.file.resolve())
    created = skipped = 0
    with session_scope() as session:
        catalog = FormCatalog(session)
        for definition in definitions:
            try:
                catalog.get_definition(definition.form_id, include_deleted=True)
                skipped += 1
                continue
            except RecordNotFoundError:
                pass
            catalog.add_definition(definition)
            created += 1

    logger.info("forms_seeded", extra={"created": created, "skipped": skipped})
    print(f"Seeded {created} form(s), {skipped} already present.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
