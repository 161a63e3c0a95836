__path__ = __import__("pkgutil").extend_path(__path__, __name__)  # NOQA: F-821
__title__ = 'colloquy'
__license__ = 'MIT'
__version__ = "0.1.0"

from .checks import *
from .commands import *
from .components import *
from .contexts import *
from .converters import *
from .events import *
from .faults import *
from .lattice import *
from .options import *
from .plugin import *
from .signals import *
from .transport import *
from .view import *

VersionInfo = __import__("collections").namedtuple("VersionInfo", (
    "major",
    "minor",
    "micro",
    "releaselevel",
    "serial",
    "metadata"
))

version_info = VersionInfo(0, 1, 0, "final", 0, "")

__all__ = (
    "__path__",
    "__title__",
    "__license__",
    "__version__",
    "version_info"
)

# Load the exposed API of the checks
__all__ += checks.__all__  # type: ignore[attr-defined]
# Load the exposed API of the commands
__all__ += commands.__all__  # type: ignore[attr-defined]
# Load the exposed API of the components
__all__ += components.__all__  # type: ignore[attr-defined]
# Load the exposed API of the contexts
__all__ += contexts.__all__  # type: ignore[attr-defined]
# Load the exposed API of the converters
__all__ += converters.__all__  # type: ignore[attr-defined]
# Load the exposed API of the events
__all__ += events.__all__  # type: ignore[attr-defined]
# Load the exposed API of the faults
__all__ += faults.__all__  # type: ignore[attr-defined]
# Load the exposed API of the lattice
__all__ += lattice.__all__  # type: ignore[attr-defined]
# Load the exposed API of the options
__all__ += options.__all__  # type: ignore[attr-defined]
# Load the exposed API of the plugin
__all__ += plugin.__all__  # type: ignore[attr-defined]
# Load the exposed API of the signals
__all__ += signals.__all__  # type: ignore[attr-defined]
# Load the exposed API of the transport
__all__ += transport.__all__  # type: ignore[attr-defined]
# Load the exposed API of the view
__all__ += view.__all__  # type: ignore[attr-defined]
