import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # keeps SQL statements out of the service log unless asked for
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
