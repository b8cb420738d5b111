# retail_forecasting/services/seasonality_service.py
from typing import List, Dict, Any

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from retail_forecasting.models import SeasonalityFactor
from retail_forecasting.services.repositories import SqlProductCatalog
from retail_forecasting.utils.date_utils import MONTH_NAMES
from retail_forecasting.exceptions import ValidationError
from retail_forecasting.logging_setup import get_logger

logger = get_logger(__name__)

MIN_FACTOR = 0.1
MAX_FACTOR = 3.0
DEFAULT_FACTOR = 1.0

class SeasonalityService:
    """Maintenance of the category/month seasonality table."""

    def __init__(self, session: Session):
        """Initialize the seasonality service.

        Args:
            session: Database session
        """
        self.session = session

    def list_grid(self) -> Dict[str, Any]:
        """Get a 12-month factor grid for every known category.

        Categories of active products are always listed; months without a
        stored factor show the neutral 1.0.

        Returns:
            Dictionary with month names and per-category factor lists
        """
        grid = {}

        for category in SqlProductCatalog(self.session).list_active_categories():
            grid.setdefault(normalize_category(category), _default_months())

        query = select(SeasonalityFactor).order_by(
            SeasonalityFactor.category, SeasonalityFactor.month
        )
        for row in self.session.scalars(query):
            months = grid.setdefault(normalize_category(row.category), _default_months())
            if 1 <= row.month <= 12:
                months[row.month - 1] = {'month': row.month, 'factor': row.factor, 'id': row.id}

        return {
            'months': list(MONTH_NAMES),
            'categories': [
                {
                    'category': category,
                    'factors': [
                        dict(entry, month_name=MONTH_NAMES[entry['month'] - 1])
                        for entry in months
                    ]
                }
                for category, months in sorted(grid.items())
            ]
        }

    def upsert(self, factors: List[Dict[str, Any]]) -> Dict[str, int]:
        """Create or update seasonality factors.

        All entries are validated before anything is written.

        Args:
            factors: List of dicts with category, month and factor

        Returns:
            Dictionary with updated and created counts

        Raises:
            ValidationError: If any entry is out of range
        """
        errors = validate_factors(factors)
        if errors:
            raise ValidationError("Invalid seasonality factors", code='INVALID_FACTORS', details=errors)

        updated = 0
        created = 0

        for entry in factors:
            category = normalize_category(entry['category'])
            existing = self.session.scalars(
                select(SeasonalityFactor).where(and_(
                    func.lower(SeasonalityFactor.category) == category,
                    SeasonalityFactor.month == entry['month']
                ))
            ).first()

            if existing:
                existing.factor = float(entry['factor'])
                updated += 1
            else:
                self.session.add(SeasonalityFactor(
                    category=category,
                    month=entry['month'],
                    factor=float(entry['factor'])
                ))
                created += 1

        self.session.flush()
        logger.info(f"Seasonality factors: {updated} updated, {created} created")

        return {'updated': updated, 'created': created}

def normalize_category(category: str) -> str:
    """Seasonality categories are matched case-insensitively and stored lowercased."""
    return category.strip().lower()

def _default_months() -> List[Dict[str, Any]]:
    return [{'month': month, 'factor': DEFAULT_FACTOR, 'id': None} for month in range(1, 13)]

def validate_factors(factors: List[Dict[str, Any]]) -> Dict[str, str]:
    """Validate seasonality factor entries.

    Returns:
        Dictionary of validation errors keyed by entry position
    """
    errors = {}
    seen = set()

    for index, entry in enumerate(factors):
        category = entry.get('category')
        month = entry.get('month')
        factor = entry.get('factor')

        if not isinstance(category, str) or not category.strip():
            errors[str(index)] = 'Category is required'
        elif not isinstance(month, int) or not 1 <= month <= 12:
            errors[str(index)] = f'Month must be between 1 and 12, got {month!r}'
        elif not isinstance(factor, (int, float)) or not MIN_FACTOR <= factor <= MAX_FACTOR:
            errors[str(index)] = f'Factor must be between {MIN_FACTOR} and {MAX_FACTOR}, got {factor!r}'
        elif (normalize_category(category), month) in seen:
            errors[str(index)] = f'Duplicate entry for {category!r} month {month}'
        else:
            seen.add((normalize_category(category), month))

    return errors
