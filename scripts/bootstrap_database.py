#!/usr/bin/env python3
"""Bootstrap the clinical AI database with its settings row and default template."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from clinical_ai.bootstrap import seed_ai_settings, seed_default_templates  # noqa: E402
from clinical_ai.db import get_database_settings, initialise_schema  # noqa: E402


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create the clinical AI tables and seed default settings and templates.",
    )
    parser.add_argument(
        "--enable-ai",
        action="store_true",
        help="Seed the AI settings row with generation enabled",
    )
    parser.add_argument(
        "--provider",
        default="lovable_ai",
        help="Completion provider to record in the settings row ('openai' or 'lovable_ai')",
    )
    parser.add_argument("--model", help="Override the model recorded in the settings row")
    parser.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace existing settings and add a fresh default template",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    initialise_schema()
    settings_written = seed_ai_settings(
        enabled=args.enable_ai,
        provider=args.provider,
        model=args.model,
        overwrite=args.overwrite,
    )
    template_written = seed_default_templates(overwrite=args.overwrite)

    print(f"Database initialised at {get_database_settings().url}")
    print("AI settings seeded." if settings_written else "AI settings already existed; left unchanged.")
    print(
        "Default SOAP progress note template created."
        if template_written
        else "Default progress note template already existed."
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
