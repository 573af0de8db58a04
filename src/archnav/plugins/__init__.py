"""Extension layer: plugin system via pluggy.

Discovery: entry_points (pip-installed) in the ``archnav.plugins`` group.
INVARIANT: Plugin failures are warnings, never errors.
"""

from archnav.plugins.event_bus import EventBus
from archnav.plugins.hookspecs import hookimpl
from archnav.plugins.manager import PluginManager

__all__ = ["EventBus", "PluginManager", "hookimpl"]
