# EVALSYNC Output Module
# Rich console output

from evalsync.output.console import Console

__all__ = [
    "Console",
]
