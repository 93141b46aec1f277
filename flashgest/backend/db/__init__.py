import os
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()

DATABASE_URL = os.getenv("FLASHGEST_DATABASE_URL", "sqlite:///flashcards.db")
DB_ECHO = os.getenv("FLASHGEST_DB_ECHO", "0") == "1"

engine = create_engine(DATABASE_URL, echo=DB_ECHO)

Session = sessionmaker(bind=engine)

def get_session():
    return Session()
