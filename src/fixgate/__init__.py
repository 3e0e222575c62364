"""fixgate: validate machine-proposed fixes in a sandbox before they reach your code."""

from fixgate._version import __version__
from fixgate.core.models import ApplicationContext, ErrorReport, Fix, FixKind
from fixgate.fix.applier import FixApplier
from fixgate.validation.pipeline import FixValidator

__all__ = [
    "__version__",
    "ApplicationContext",
    "ErrorReport",
    "Fix",
    "FixApplier",
    "FixKind",
    "FixValidator",
]
