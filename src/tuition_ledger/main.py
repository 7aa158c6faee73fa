from __future__ import annotations

import importlib

from dotenv import load_dotenv

from .common.app_logging import configure_logging, get_logger
from .config import get_settings_module
from .container import Container, build_container
from .database.bootstrap import apply_schema, list_tables


def build_from_environment() -> Container:
    """Load settings for APP_ENV and return a wired container."""
    load_dotenv(override=False)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    configure_logging(getattr(settings, "LOG_LEVEL", None), force=True)
    logger = get_logger(__name__)

    db_config = dict(getattr(settings, "DB_CONFIG"))
    logger.info(
        "settings=%s db=%s@%s:%s/%s",
        settings_module,
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
    )

    container = build_container(db_config=db_config, settings=settings)

    if bool(getattr(settings, "AUTO_INIT_DB", False)) and container.conn is not None:
        apply_schema(container.conn)
        logger.info("schema ready (tables=%d)", len(list_tables(container.conn)))

    return container
