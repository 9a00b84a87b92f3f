from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from campus_scheduler.config import DATABASE_URL, SQL_ECHO

# Default remains a lightweight local sqlite DB; point DATABASE_URL at the
# college database in deployments.
engine = create_engine(DATABASE_URL, echo=SQL_ECHO)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

class Base(DeclarativeBase):
	pass
