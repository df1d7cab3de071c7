from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
import logging

import config

logger = logging.getLogger(__name__)

connect_args = {}
if config.DATABASE_URL.startswith("sqlite"):
    # FastAPI runs sync routes in a threadpool
    connect_args = {"check_same_thread": False}

engine = create_engine(config.DATABASE_URL, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(bind=None):
    """Create all tables. Importing models registers them on Base."""
    import models  # noqa: F401

    bind = bind or engine
    logger.info("Creating tables on %s", bind.url)
    Base.metadata.create_all(bind=bind)

