__version__ = "1.0.0"

from .settings import Settings  # noqa: E402

__all__ = ["Settings", "__version__"]
