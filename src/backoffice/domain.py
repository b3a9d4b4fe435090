"""Back-office bounded context: workspace orders, stock and fulfillment.

A single domain owns orders, product variants, addresses and workspace
membership so that an order, its lines, its status history and the stock it
consumes are always persisted in one unit of work.
"""

import os

from protean.domain import Domain

from backoffice.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

backoffice = Domain(name="backoffice")

# DATABASE_URL overrides the PostgreSQL URI of the production overlay
_database = backoffice.config["databases"]["default"]
if os.getenv("DATABASE_URL") and _database.get("provider") == "postgresql":
    _database["database_uri"] = os.environ["DATABASE_URL"]
