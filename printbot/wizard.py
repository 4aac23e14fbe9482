"""
Setup wizard: creates working directories, writes a default config.json
and lists the printers the OS reports.

    python -m printbot.wizard [--config PATH] [--force]
"""

import argparse
import json
import logging
import os
from typing import List, Optional

from printbot.env import DEFAULT_CONFIG_PATH, Settings, default_config_document
from printbot.printers import get_printer_service

logger = logging.getLogger("printbot.wizard")


def create_directories(settings: Settings) -> List[str]:
    created = []
    for path in (settings.temp_dir, settings.log_dir):
        if not os.path.isdir(path):
            os.makedirs(path, exist_ok=True)
            created.append(path)
    return created


def write_config(path: str, settings: Settings, force: bool = False) -> bool:
    """Write the nested config document; an existing file is kept unless force."""
    if os.path.exists(path) and not force:
        return False
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(default_config_document(settings), f, indent=2)
    return True


def detect_printers(settings: Settings) -> List[str]:
    try:
        return get_printer_service(settings).list_printers()
    except (OSError, RuntimeError, ImportError) as e:
        logger.warning("Printer detection failed: %s", e)
        return []


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Chat print bot setup")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH)
    parser.add_argument("--force", action="store_true", help="overwrite an existing config file")
    args = parser.parse_args(argv)

    logging.basicConfig(level="INFO", format="%(message)s")
    settings = Settings()

    for path in create_directories(settings):
        logger.info("Directory created: %s", path)

    if write_config(args.config, settings, force=args.force):
        logger.info("Config written: %s", args.config)
    else:
        logger.info("Config already exists, left unchanged: %s (use --force to overwrite)", args.config)

    printers = detect_printers(settings)
    if printers:
        logger.info("Printers detected:")
        for name in printers:
            logger.info("  - %s", name)
    else:
        logger.info("No printers detected. Make sure the printer is installed and connected.")

    logger.info(
        "\nNext steps:\n"
        "1. Edit %s (printerName, adminNumbers, allowedUsers)\n"
        "2. Set PRINTBOT_API_TOKEN in .env\n"
        "3. Start the bot: printbot",
        args.config,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
