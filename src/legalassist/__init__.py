# LegalAssist chat formatting package init
import logging
import os


def _configure_logging() -> None:
    level_name = (os.getenv("LEGALASSIST_LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logger = logging.getLogger("legalassist")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[LEGALASSIST][%(levelname)s] %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level)

    formatter_level_name = (os.getenv("LEGALASSIST_FORMATTER_LOG_LEVEL") or level_name).upper()
    formatter_level = getattr(logging, formatter_level_name, level)
    logging.getLogger("legalassist.formatter").setLevel(formatter_level)


_configure_logging()
