# Run from the project root: python -m migrations.init_db
from sqlalchemy import text
import time
import logging

import config
from models import Base, make_engine

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def wait_for_db(engine, max_retries=5, retry_interval=5):
    """Wait for database to be ready"""
    for i in range(max_retries):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database is ready!")
            return True
        except Exception as e:
            if i < max_retries - 1:
                logger.warning(f"Database not ready. Retrying in {retry_interval} seconds... ({i+1}/{max_retries})")
                time.sleep(retry_interval)
            else:
                logger.error(f"Could not connect to database after {max_retries} attempts")
                raise e


def run_migrations(database_url=None):
    """Create the daily_totals table used by the SQL ledger"""
    try:
        engine = make_engine(database_url or config.DATABASE_URL)
        wait_for_db(engine)

        Base.metadata.create_all(bind=engine)
        logger.info(f"Tables ready: {', '.join(sorted(Base.metadata.tables))}")
        return engine

    except Exception as e:
        logger.error(f"Migration failed: {str(e)}")
        raise e


if __name__ == "__main__":
    run_migrations()
