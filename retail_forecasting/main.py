import argparse
import json
import sys

from retail_forecasting.config import config
from retail_forecasting.db import db, session_scope
from retail_forecasting.logging_setup import logger, get_logger
from retail_forecasting.exceptions import ForecastingError

def init_application(db_url=None, setup_db=False, drop_db=False):
    """Initialize application components.

    Args:
        db_url: Optional database URL overriding configuration
        setup_db: Create missing tables
        drop_db: Drop existing tables before creating them
    """
    db.initialize(db_url)
    db.ping()

    if drop_db:
        db.drop_all_tables()
    if setup_db or drop_db:
        db.create_all_tables()

    log = logger.app_logger
    log.info("Retail Forecasting engine initialized")
    log.info(f"Using database: {db.engine.url.render_as_string(hide_password=True)}")

    return True

def _print_json(payload):
    print(json.dumps(payload, indent=2, default=str))

def init_db_command(args):
    """Create the database schema."""
    from retail_forecasting.models import Base

    db.create_all_tables()
    return {'tables': sorted(Base.metadata.tables)}

def forecast_command(args):
    """Print the forecast analysis of one product."""
    from retail_forecasting.services.forecast_service import ForecastService

    with session_scope() as session:
        service = ForecastService.from_session(session)
        return service.analyze(args.product_id, days_ahead=args.days, lookback_days=args.lookback)

def overview_command(args):
    """Print the demand overview of active products."""
    from retail_forecasting.services.forecast_service import ForecastService

    with session_scope() as session:
        service = ForecastService.from_session(session)
        return service.overview(days_ahead=args.days, category=args.category, limit=args.limit)

def risk_command(args):
    """Print the products at risk of a stockout."""
    from retail_forecasting.services.risk_service import RiskService

    with session_scope() as session:
        service = RiskService.from_session(session)
        if args.dashboard:
            return service.risk_dashboard(top=args.top)
        return service.risk_summary()

def recompute_command(args):
    """Recompute stored forecasts for all active products."""
    from retail_forecasting.batch.forecast_recompute_job import run_forecast_recompute

    results = run_forecast_recompute(
        days_ahead=args.days,
        lookback_days=args.lookback,
        max_workers=args.workers
    )
    return {
        'processed': results['processed'],
        'errors': results['errors'],
        'error_products': results['error_products'],
        'duration': results['duration']
    }

def seasonality_command(args):
    """List or update seasonality factors."""
    from retail_forecasting.services.seasonality_service import SeasonalityService

    with session_scope() as session:
        service = SeasonalityService(session)
        if args.action == 'set':
            return service.upsert([
                {'category': args.category, 'month': args.month, 'factor': args.factor}
            ])
        return service.list_grid()

COMMANDS = {
    'init-db': init_db_command,
    'forecast': forecast_command,
    'overview': overview_command,
    'risk': risk_command,
    'recompute': recompute_command,
    'seasonality': seasonality_command
}

def build_parser():
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(description='Retail demand forecasting and stockout risk')

    parser.add_argument('--db-url', type=str, help='Database URL (overrides configuration)')
    parser.add_argument('--setup-db', action='store_true',
                        help='Create the database schema')
    parser.add_argument('--drop-db', action='store_true',
                        help='Drop existing tables before setup')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    subparsers.add_parser('init-db', help='Create the database schema')

    forecast_parser = subparsers.add_parser('forecast', help='Forecast demand for one product')
    forecast_parser.add_argument('product_id', type=int, help='Product ID')
    forecast_parser.add_argument('--days', type=int, default=config.forecast_config['default_days_ahead'],
                                 help='Number of future days to forecast')
    forecast_parser.add_argument('--lookback', type=int, default=config.forecast_config['default_lookback_days'],
                                 help='Days of sales history to use')

    overview_parser = subparsers.add_parser('overview', help='Demand overview of active products')
    overview_parser.add_argument('--days', type=int, default=config.forecast_config['default_days_ahead'],
                                 help='Number of future days to forecast')
    overview_parser.add_argument('--category', type=str, help='Only products of this category')
    overview_parser.add_argument('--limit', type=int, default=50, help='Maximum number of products')

    risk_parser = subparsers.add_parser('risk', help='Products at risk of a stockout')
    risk_parser.add_argument('--dashboard', action='store_true', help='Compact dashboard figures')
    risk_parser.add_argument('--top', type=int, default=5, help='Products highlighted on the dashboard')

    recompute_parser = subparsers.add_parser('recompute', help='Recompute stored forecasts')
    recompute_parser.add_argument('--days', type=int, help='Forecast horizon in days')
    recompute_parser.add_argument('--lookback', type=int, help='Days of sales history to use')
    recompute_parser.add_argument('--workers', type=int, help='Number of worker threads')

    seasonality_parser = subparsers.add_parser('seasonality', help='Seasonality factors')
    seasonality_sub = seasonality_parser.add_subparsers(dest='action', required=True)
    seasonality_sub.add_parser('list', help='List factors for every category and month')
    set_parser = seasonality_sub.add_parser('set', help='Create or update one factor')
    set_parser.add_argument('category', type=str)
    set_parser.add_argument('month', type=int)
    set_parser.add_argument('factor', type=float)

    return parser

def main(argv=None):
    """Main application entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    log = get_logger('cli')

    try:
        init_application(args.db_url, setup_db=args.setup_db, drop_db=args.drop_db)
    except ForecastingError as e:
        log.error(f"Initialization failed: {str(e)}")
        _print_json(e.to_dict())
        return 1

    if args.command is None:
        if not args.setup_db:
            parser.print_help()
        return 0

    try:
        _print_json(COMMANDS[args.command](args))
        return 0
    except ForecastingError as e:
        log.error(str(e))
        _print_json(e.to_dict())
        return 1
    except Exception as e:
        log.exception(f"Error running {args.command}: {str(e)}")
        return 1

if __name__ == "__main__":
    sys.exit(main())
