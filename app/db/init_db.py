import logging

import psycopg2
from psycopg2 import sql
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT
from sqlalchemy.engine import make_url

logger = logging.getLogger(__name__)


def create_database(database_url: str) -> None:
    """Create the target PostgreSQL database if it doesn't exist."""
    url = make_url(database_url)
    if not url.drivername.startswith("postgresql"):
        return

    try:
        # Connect to the default 'postgres' database to check/create the target DB
        con = psycopg2.connect(
            user=url.username,
            password=url.password,
            host=url.host,
            port=url.port or 5432,
            dbname="postgres",
        )
        con.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)
        cur = con.cursor()

        cur.execute("SELECT 1 FROM pg_catalog.pg_database WHERE datname = %s", (url.database,))
        exists = cur.fetchone()

        if not exists:
            logger.info("Database %s does not exist. Creating...", url.database)
            cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(url.database)))
            logger.info("Database %s created successfully.", url.database)
        else:
            logger.info("Database %s already exists.", url.database)

        cur.close()
        con.close()
    except psycopg2.Error as e:
        # The connection params may only grant access to the target DB itself
        logger.error("Error creating database: %s", e)
