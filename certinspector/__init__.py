"""Public package surface for certinspector.

Importing `certinspector` exposes the high-level API function (`INSPECT`) and
package version, keeping internals hidden by default.
"""

from .core import INSPECT
from .version import __version__

__all__ = ["INSPECT", "__version__"]
