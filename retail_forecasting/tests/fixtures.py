"""
Shared database fixtures for the test suites.
"""
from contextlib import contextmanager
from datetime import datetime, time, timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from retail_forecasting.models import Base, Product, Sale, SaleItem, SaleStatus

def make_test_database():
    """Create an in-memory database and return (engine, scope).

    scope() is a transactional session scope like db.session_scope.
    """
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    session_factory = sessionmaker(bind=engine, autoflush=False)

    @contextmanager
    def scope():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return engine, scope

def add_product(session, code, category='general', current_stock=100, minimum_stock=10, is_active=True):
    """Insert a product and return its ID."""
    product = Product(
        code=code,
        name=f"Product {code}",
        category=category,
        current_stock=current_stock,
        minimum_stock=minimum_stock,
        is_active=is_active
    )
    session.add(product)
    session.flush()
    return product.id

def add_daily_sales(session, product_id, quantities, last_day, status=SaleStatus.COMPLETED):
    """Record one sale per day ending on last_day, oldest quantity first."""
    first_day = last_day - timedelta(days=len(quantities) - 1)

    for offset, quantity in enumerate(quantities):
        sale = Sale(
            sold_at=datetime.combine(first_day + timedelta(days=offset), time(12, 0)),
            status=status
        )
        sale.items.append(SaleItem(product_id=product_id, quantity=quantity))
        session.add(sale)

    session.flush()
