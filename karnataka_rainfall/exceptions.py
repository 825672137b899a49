"""
Typed failures surfaced by the rainfall prediction core.

Data-quality problems (unparseable numbers, rows without a name or level,
child rows that appear before their parent) are absorbed where they occur
and never reach these classes. Only structural unavailability is raised.
"""

from typing import Dict, Optional


class RainfallError(Exception):
    """Base class for all rainfall core errors."""

    def __init__(self, message: str, context: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class NotReadyError(RainfallError):
    """No trained model or hierarchy is available yet."""


class NoDataError(RainfallError):
    """No usable history exists for the requested location."""


class NoTrainingDataError(RainfallError):
    """No observation has both a finite normal and a finite actual rainfall."""
