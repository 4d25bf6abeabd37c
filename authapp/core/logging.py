# authapp/core/logging.py
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Logging de proceso. Nunca se loguean secretos ni códigos."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # el engine ya tiene echo=False; esto evita el ruido de sqlalchemy en DEBUG
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
