import os
from sqlmodel import Session, create_engine
from sqlalchemy.orm import sessionmaker

from logging_setup import logger

DB_USER = os.environ.get("DB_USER", "postgres")
DB_PASSWORD = os.environ.get("DB_PASSWORD", "postgres")
DB_HOST = os.environ.get("DB_HOST", "localhost")
DB_PORT = os.environ.get("DB_PORT", "5432")
DB_NAME = os.environ.get("DB_NAME", "inventory")

# DATABASE_URL wins over the individual DB_* settings
DATABASE_URL = os.environ.get("DATABASE_URL") or f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"

engine = create_engine(DATABASE_URL, echo=os.environ.get("DB_ECHO", "").lower() == "true")
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, class_=Session)


def get_db():
    """Request-scoped session; always closed after the response"""
    db = SessionLocal()
    logger.debug(f"Opened session on {engine.url.render_as_string(hide_password=True)}")
    try:
        yield db
    finally:
        db.close()
