# catalog/worker/tasks/consistency.py
"""
Celery task that repairs stale category paths.
"""
import logging
from celery import shared_task
from sqlalchemy.exc import SQLAlchemyError
from catalog.core.context import CatalogContext

logger = logging.getLogger(__name__)


@shared_task(name="consistency:sweep")
def sweep_category_paths():
    """
    Recompute path/level for every category and repair rows left stale by an
    interrupted cascade.
    """
    try:
        logger.info("Starting category consistency sweep")

        with CatalogContext() as context:
            with context.session() as db_session:
                report = context.consistency_service(db_session).sweep()

        return {"status": "success", **report.to_dict()}
    except SQLAlchemyError as e:
        logger.exception(f"Error during category consistency sweep: {str(e)}")
        return {"status": "error", "message": str(e)}
