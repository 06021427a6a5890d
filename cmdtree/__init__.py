__title__ = 'cmdtree'
__license__ = 'MIT'
__version__ = "1.0.0"

from .utils import *
from .faults import *
from .flags import *
from .nodes import *
from .tree import *
from .parser import *
from .context import *
from .dispatch import *
from .render import *
from .program import *
from .logs import configure

VersionInfo = __import__("collections").namedtuple("VersionInfo", (
    "major",
    "minor",
    "micro",
    "releaselevel",
    "serial",
    "metadata"
))

version_info = VersionInfo(1, 0, 0, "final", 0, "")

__all__ = (
    "__title__",
    "__license__",
    "__version__",
    "version_info",
    "configure",
)

# Load the exposed API of the utilities
__all__ += utils.__all__  # type: ignore[attr-defined]
# Load the exposed API of the faults
__all__ += faults.__all__  # type: ignore[attr-defined]
# Load the exposed API of the flag specs
__all__ += flags.__all__  # type: ignore[attr-defined]
# Load the exposed API of the command nodes
__all__ += nodes.__all__  # type: ignore[attr-defined]
# Load the exposed API of the command tree
__all__ += tree.__all__  # type: ignore[attr-defined]
# Load the exposed API of the parser
__all__ += parser.__all__  # type: ignore[attr-defined]
# Load the exposed API of the execution context
__all__ += context.__all__  # type: ignore[attr-defined]
# Load the exposed API of the dispatcher (dispatch() shadows its module)
__all__ += __import__("sys").modules[__name__ + ".dispatch"].__all__
# Load the exposed API of the renderers
__all__ += render.__all__  # type: ignore[attr-defined]
# Load the exposed API of the program driver
__all__ += program.__all__  # type: ignore[attr-defined]
