"""Utility script to run Alembic migrations programmatically before app start.

Usage:
    python run_migrations.py

This can be invoked in a container entrypoint before launching uvicorn.
"""
from alembic.config import Config
from alembic import command
import logging
import os

BASE_DIR = os.path.dirname(__file__)
ALEMBIC_INI = os.path.join(BASE_DIR, 'alembic.ini')

logger = logging.getLogger("migrations")


def run():
    cfg = Config(ALEMBIC_INI)
    override = os.getenv('DB_URL') or os.getenv('DATABASE_URL')
    if override:
        cfg.set_main_option('sqlalchemy.url', override)
    logger.info("Upgrading database schema to head")
    command.upgrade(cfg, 'head')


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    run()
