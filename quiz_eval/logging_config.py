import logging
import sys
from pythonjsonlogger import jsonlogger

# Define the logger
logger = logging.getLogger("quiz_eval")


def setup_logging(level: str = "INFO"):
    """Setup structured JSON logging."""
    handler = logging.StreamHandler(sys.stdout)

    formatter = jsonlogger.JsonFormatter(
        fmt='%(asctime)s %(levelname)s %(name)s %(message)s'
    )
    handler.setFormatter(formatter)

    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=log_level, handlers=[handler])

    logger.setLevel(log_level)

    # Prevent propagation to avoid double logging if root logger is used
    logger.propagate = False
    if not any(isinstance(h.formatter, jsonlogger.JsonFormatter) for h in logger.handlers):
        logger.addHandler(handler)

    # Silence some noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)


if __name__ == "__main__":
    setup_logging()
    logger.info("Structured logging initialized", extra={"test": True})
