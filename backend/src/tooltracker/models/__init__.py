"""SQLAlchemy Models for Tool Tracker"""

from .base import Base
from .location import Location
from .alias import Alias
from .tool import Tool, ToolTag

__all__ = [
    "Base",
    "Location",
    "Alias",
    "Tool",
    "ToolTag",
]
