from sqlalchemy import Column, String, Text, DateTime, func
from . import Base


# логические пространства ключей хранилища
CARDS_KEY = "cards"
REVIEWS_KEY = "reviews"
BUCKETS_KEY = "buckets"


class KeyValue(Base):
    __tablename__ = 'kv_store'

    key = Column(String(50), primary_key=True)
    value = Column(Text, nullable=False, default="null")
    updated_at = Column(DateTime(), server_default=func.now(), onupdate=func.now())
