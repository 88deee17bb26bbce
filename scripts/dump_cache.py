#!/usr/bin/env python3
"""Script to dump cached starred repositories to CSV and JSON."""

import logging
import sys
import os
import csv
import json
from datetime import datetime

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from src.domain.errors import CacheError
from src.infrastructure.cache import RepositoryCache
from src.infrastructure.config import Settings

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)

CSV_FIELDS = ["name", "url", "description", "readme"]


def dump_to_csv(envelope, output_file: str):
    """Dump cached repositories to CSV."""
    with open(output_file, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        writer.writeheader()
        writer.writerows(repo.to_dict() for repo in envelope.data)

    logger.info(f"Dumped {len(envelope.data)} repositories to {output_file}")


def dump_to_json(envelope, output_file: str):
    """Dump the cache envelope to JSON."""
    payload = {
        "created_at": envelope.created_at.isoformat(),
        "expires_at": envelope.expires_at.isoformat(),
        "data": [repo.to_dict() for repo in envelope.data],
    }
    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)

    logger.info(f"Dumped {len(envelope.data)} repositories to {output_file}")


def main():
    """Dump the starred repository cache to CSV and JSON."""
    try:
        settings = Settings()
        try:
            envelope = RepositoryCache().read_envelope(settings.cache_path)
        except CacheError as e:
            logger.error(f"No usable cache to dump: {e}")
            return 1

        output_dir = os.getenv("OUTPUT_DIR", "artifacts")
        os.makedirs(output_dir, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        csv_file = os.path.join(output_dir, f"starred_{timestamp}.csv")
        json_file = os.path.join(output_dir, f"starred_{timestamp}.json")

        dump_to_csv(envelope, csv_file)
        dump_to_json(envelope, json_file)

        logger.info(f"Cache dump completed. Files: {csv_file}, {json_file}")
        return 0
    except Exception as e:
        logger.error(f"Cache dump failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
