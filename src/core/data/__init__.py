"""
Static data tables — OS families, package names, built-in profiles.

Pure data. The planner and the fact probe read from here; nothing in
this package touches the host.
"""

from src.core.data.packages import PACKAGE_MAP
from src.core.data.platforms import KNOWN_FAMILIES, OS_FAMILIES
from src.core.data.profiles import PROFILES

__all__ = ["KNOWN_FAMILIES", "OS_FAMILIES", "PACKAGE_MAP", "PROFILES"]
