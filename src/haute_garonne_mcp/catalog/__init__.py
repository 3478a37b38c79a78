from .cache import TTLCache
from .client import CatalogClient
from .models import Catalog, Dataset
from .service import CatalogService

__all__ = ["Catalog", "CatalogClient", "CatalogService", "Dataset", "TTLCache"]
