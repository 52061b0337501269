from .logger import get_logger
from .warnings import catch_warnings, warn

__all__ = ["catch_warnings", "get_logger", "warn"]
