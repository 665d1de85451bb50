#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Script to create MongoDB indexes for performance optimization.

Run with ``python -m civic_tracker.scripts.create_indexes``.
"""

import sys
import logging

from ..services.mongodb import get_mongodb_service, close_mongodb_connection

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main() -> int:
    """Create MongoDB indexes."""
    logger.info("Starting MongoDB index creation...")
    mongodb_service = get_mongodb_service()

    try:
        health = mongodb_service.health_check()
        if health['status'] != 'healthy':
            logger.error(f"MongoDB is not healthy: {health}")
            return 1

        logger.info(f"Connected to MongoDB {health['version']} - Database: {health['database']}")
        mongodb_service.create_indexes()
        logger.info("MongoDB indexes created successfully!")
        return 0
    finally:
        close_mongodb_connection()


if __name__ == "__main__":
    sys.exit(main())
