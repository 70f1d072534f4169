import logging


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the whole process."""
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.getLevelNamesMapping()[level],
    )
