# retail_forecasting/models.py
from sqlalchemy import (
    Column, Integer, String, Float, Date, DateTime, Boolean, ForeignKey,
    Enum, Index, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
import enum

Base = declarative_base()

class ForecastModel(enum.Enum):
    """Tag identifying which model produced a forecast point.

    Values:
        EMA: Exponential moving average only
        TREND: Linear trend only
        SEASONALITY: Seasonal adjustment only
        COMBINED: Blend of EMA and trend with weekday and seasonal factors
    """
    EMA = 'EMA'
    TREND = 'TREND'
    SEASONALITY = 'SEASONALITY'
    COMBINED = 'COMBINED'

    def __str__(self):
        return self.value

class RiskTier(enum.Enum):
    """Stockout risk tiers, most urgent first."""
    CRITICAL = 'CRITICAL'
    HIGH = 'HIGH'
    MEDIUM = 'MEDIUM'
    LOW = 'LOW'

    def __str__(self):
        return self.value

    @property
    def rank(self) -> int:
        """Sort rank (0 = most urgent)."""
        return list(RiskTier).index(self)

class SaleStatus(enum.Enum):
    PENDING = 'PENDING'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'

class Product(Base):
    __tablename__ = 'product'

    id = Column(Integer, primary_key=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False, default='general')
    current_stock = Column(Integer, default=0)
    minimum_stock = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)

    sale_items = relationship("SaleItem", back_populates="product")
    forecasts = relationship("DemandForecast", back_populates="product")

class Sale(Base):
    __tablename__ = 'sale'

    id = Column(Integer, primary_key=True)
    sold_at = Column(DateTime, nullable=False, default=func.now())
    status = Column(Enum(SaleStatus), default=SaleStatus.COMPLETED, nullable=False)

    items = relationship("SaleItem", back_populates="sale")

    __table_args__ = (
        Index('ix_sale_sold_at', 'sold_at'),
    )

class SaleItem(Base):
    __tablename__ = 'sale_item'

    id = Column(Integer, primary_key=True)
    sale_id = Column(Integer, ForeignKey('sale.id'), nullable=False)
    product_id = Column(Integer, ForeignKey('product.id'), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)

    sale = relationship("Sale", back_populates="items")
    product = relationship("Product", back_populates="sale_items")

    __table_args__ = (
        Index('ix_sale_item_product', 'product_id'),
    )

class SeasonalityFactor(Base):
    """Multiplicative demand factor for a product category in a calendar month."""
    __tablename__ = 'seasonality_factor'

    id = Column(Integer, primary_key=True)
    category = Column(String(100), nullable=False)
    month = Column(Integer, nullable=False)  # 1-12
    factor = Column(Float, nullable=False, default=1.0)

    __table_args__ = (
        UniqueConstraint('category', 'month', name='uq_seasonality_category_month'),
    )

class DemandForecast(Base):
    """Persisted forecast point, replaced wholesale per product on recompute."""
    __tablename__ = 'demand_forecast'

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey('product.id'), nullable=False)
    forecast_date = Column(Date, nullable=False)
    predicted_quantity = Column(Float, default=0.0)
    confidence = Column(Float, default=0.1)
    model = Column(Enum(ForecastModel), default=ForecastModel.COMBINED)
    created_at = Column(DateTime, default=func.now())

    product = relationship("Product", back_populates="forecasts")

    __table_args__ = (
        Index('ix_demand_forecast_product', 'product_id'),
    )
