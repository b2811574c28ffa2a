from schemabind.logger import get_logger

__version__ = "0.1.0"

log = get_logger("schemabind")
