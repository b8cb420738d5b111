# retail_forecasting/services/interfaces.py
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Any, List, Optional

class ProductCatalog(ABC):
    """Read-only access to product master data."""

    @abstractmethod
    def get_product(self, product_id: int) -> Dict[str, Any]:
        """Get a product by ID.

        Raises:
            ProductNotFoundError: If the product does not exist
        """
        pass

    @abstractmethod
    def list_active_products(
        self,
        category: Optional[str] = None,
        limit: Optional[int] = None,
        order_by_stock: bool = False
    ) -> List[Dict[str, Any]]:
        """List active products, optionally by category and lowest stock first."""
        pass

class SalesHistorySource(ABC):
    """Completed sale lines for a product."""

    @abstractmethod
    def get_sale_lines(self, product_id: int, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """Get {'sold_at', 'quantity'} lines of completed sales in [start, end)."""
        pass

class SeasonalitySource(ABC):
    """Category/month seasonality factors maintained outside the engine."""

    @abstractmethod
    def get_factor_table(self) -> Dict[str, float]:
        """Get factors keyed by '<category lowercased>_<month>'."""
        pass

class ForecastStore(ABC):
    """Persistence for generated forecast points."""

    @abstractmethod
    def replace_forecasts(self, product_id: int, forecasts: List[Dict[str, Any]]) -> int:
        """Replace every stored forecast of a product; returns rows written."""
        pass

    @abstractmethod
    def get_forecasts(self, product_id: int) -> List[Dict[str, Any]]:
        """Get the stored forecast of a product in date order."""
        pass
