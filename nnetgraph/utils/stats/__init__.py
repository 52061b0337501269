from .moments import moment_statistics

__all__ = ["moment_statistics"]
