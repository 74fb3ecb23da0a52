from sqlmodel import SQLModel

import models  # noqa: F401  registers the tables on SQLModel.metadata
from logging_setup import logger
from .session import engine


def create_db_and_tables(bind=None):
    bind = bind or engine
    SQLModel.metadata.create_all(bind)
    logger.info(f"Created tables: {', '.join(sorted(SQLModel.metadata.tables))}")


if __name__ == "__main__":
    create_db_and_tables()
