"""
bankview - Account, transaction and admin dashboards over the banking API

Fetches the configured view from the banking service, reconciles the
inconsistent responses into canonical records and prints the result.
"""

import asyncio
import logging
import sys
from typing import Any, Dict
from config.settings import load_config
from bankview.data.bank_connector import BankConnector
from bankview.reconciler.view_reconciler import ViewReconciler, ViewState
from bankview.dashboard.console_display import ConsoleDisplay

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


async def load_view(reconciler: ViewReconciler, dashboard_cfg: Dict[str, Any]) -> ViewState:
    """
    Build the view named by the dashboard settings.

    Args:
        reconciler: Reconciler that fetches and joins the view's data.
        dashboard_cfg: The ``dashboard`` section of the loaded config.

    Returns:
        ViewState with the snapshot or the error to display.
    """
    view = dashboard_cfg['view']
    logger.info(f"Loading {view} view...")
    if view == 'admin':
        return await reconciler.load_admin_view()
    if view == 'history':
        return await reconciler.load_history_view(dashboard_cfg['history_filters'], dashboard_cfg['search'])
    if view == 'users':
        return await reconciler.load_users_view(dashboard_cfg['search'], dashboard_cfg['page'])
    if view == 'user-detail':
        return await reconciler.load_user_detail_view(dashboard_cfg['user_id'], dashboard_cfg['page'])
    return await reconciler.load_user_view()


async def main() -> int:
    """Main application entry point."""
    # Load configuration
    config = load_config()
    log_level = 'DEBUG' if config['app']['debug'] else config['app']['log_level'].upper()
    logging.getLogger().setLevel(log_level)
    logger.info("Starting bankview...")

    # Initialize components
    dashboard_cfg = config['dashboard']
    connector = BankConnector(config['api'])
    reconciler = ViewReconciler(
        connector,
        recent_size=dashboard_cfg['recent_transactions_size'],
        series_window=dashboard_cfg['series_window_days'],
        enrichment_concurrency=dashboard_cfg['enrichment_concurrency'],
    )
    display = ConsoleDisplay(use_colors=sys.stdout.isatty())

    state = await load_view(reconciler, dashboard_cfg)

    display.show(state)

    if not state.ok:
        logger.error(f"View could not be built: {state.error}")
        return 1
    logger.info("bankview completed successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
