import logging

LOGGER_NAME = "syshealth"


def setup_logging(log_level=logging.WARNING, log_file=None):
    """
    Diagnostics go to stderr so they never interleave with the report on
    stdout. An optional file handler records the same messages.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)

    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    ch = logging.StreamHandler()
    ch.setLevel(log_level)
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    if log_file:
        fh = logging.FileHandler(log_file)
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        logger.addHandler(fh)
        logger.debug("Logging to console and %s", log_file)

    return logger
