"""SQLAlchemy persistence for the tracker."""

from .tracker_repository import Item, ToolInfo, TrackerRepository

__all__ = ["Item", "ToolInfo", "TrackerRepository"]
