from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from form_plant.config.env_config import settings
from form_plant.utils.logger_utils import log_info

DATABASE_URL = settings.database_url

if DATABASE_URL.startswith("sqlite"):
    # single shared connection so in-memory databases survive across sessions
    engine = create_engine(
        DATABASE_URL,
        echo=settings.DB_ECHO,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    engine = create_engine(
        DATABASE_URL,
        echo=settings.DB_ECHO,
        pool_pre_ping=True
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

log_info(context="DATABASE", message="Database engine configured")

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
