# retail_forecasting/services/repositories.py
from datetime import datetime
from typing import List, Dict, Optional, Any

from sqlalchemy import and_, select, delete
from sqlalchemy.orm import Session

from retail_forecasting.models import (
    Product, Sale, SaleItem, SaleStatus, SeasonalityFactor, DemandForecast,
    ForecastModel
)
from retail_forecasting.core.demand_forecast import seasonality_key
from retail_forecasting.services.interfaces import (
    ProductCatalog, SalesHistorySource, SeasonalitySource, ForecastStore
)
from retail_forecasting.exceptions import ProductNotFoundError

def product_to_dict(product: Product) -> Dict[str, Any]:
    """Convert a product row to the dict shape used by the engine."""
    return {
        'id': product.id,
        'code': product.code,
        'name': product.name,
        'category': product.category,
        'current_stock': product.current_stock or 0,
        'minimum_stock': product.minimum_stock or 0,
        'is_active': bool(product.is_active)
    }

class SqlProductCatalog(ProductCatalog):
    """Product catalog backed by the product table."""

    def __init__(self, session: Session):
        self.session = session

    def get_product(self, product_id: int) -> Dict[str, Any]:
        product = self.session.get(Product, product_id)
        if not product:
            raise ProductNotFoundError(product_id)
        return product_to_dict(product)

    def list_active_products(
        self,
        category: Optional[str] = None,
        limit: Optional[int] = None,
        order_by_stock: bool = False
    ) -> List[Dict[str, Any]]:
        query = select(Product).where(Product.is_active.is_(True))

        if category:
            query = query.where(Product.category == category)

        if order_by_stock:
            query = query.order_by(Product.current_stock.asc(), Product.id)
        else:
            query = query.order_by(Product.id)

        if limit:
            query = query.limit(limit)

        return [product_to_dict(p) for p in self.session.scalars(query)]

    def list_active_categories(self) -> List[str]:
        """Distinct categories of active products."""
        query = select(Product.category).where(
            Product.is_active.is_(True)
        ).distinct().order_by(Product.category)
        return list(self.session.scalars(query))

class SqlSalesHistory(SalesHistorySource):
    """Sale lines of completed sales."""

    def __init__(self, session: Session):
        self.session = session

    def get_sale_lines(self, product_id: int, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        query = (
            select(Sale.sold_at, SaleItem.quantity)
            .join(SaleItem, SaleItem.sale_id == Sale.id)
            .where(and_(
                SaleItem.product_id == product_id,
                Sale.status == SaleStatus.COMPLETED,
                Sale.sold_at >= start,
                Sale.sold_at < end
            ))
            .order_by(Sale.sold_at)
        )

        return [
            {'sold_at': sold_at, 'quantity': quantity}
            for sold_at, quantity in self.session.execute(query)
        ]

class SqlSeasonalityTable(SeasonalitySource):
    """Seasonality factors from the seasonality_factor table."""

    def __init__(self, session: Session):
        self.session = session

    def get_factor_table(self) -> Dict[str, float]:
        return {
            seasonality_key(row.category, row.month): row.factor
            for row in self.session.scalars(select(SeasonalityFactor))
        }

class SqlForecastStore(ForecastStore):
    """Forecast rows in the demand_forecast table.

    replace_forecasts does not commit; the caller's transaction makes the
    delete and the inserts visible together.
    """

    def __init__(self, session: Session):
        self.session = session

    def replace_forecasts(self, product_id: int, forecasts: List[Dict[str, Any]]) -> int:
        self.session.execute(
            delete(DemandForecast).where(DemandForecast.product_id == product_id)
        )

        for forecast in forecasts:
            self.session.add(DemandForecast(
                product_id=product_id,
                forecast_date=forecast['date'],
                predicted_quantity=forecast['predicted_quantity'],
                confidence=forecast['confidence'],
                model=forecast.get('model', ForecastModel.COMBINED)
            ))

        self.session.flush()
        return len(forecasts)

    def get_forecasts(self, product_id: int) -> List[Dict[str, Any]]:
        query = select(DemandForecast).where(
            DemandForecast.product_id == product_id
        ).order_by(DemandForecast.forecast_date)

        return [
            {
                'date': row.forecast_date,
                'predicted_quantity': row.predicted_quantity,
                'confidence': row.confidence,
                'model': row.model
            }
            for row in self.session.scalars(query)
        ]
