from sqlalchemy import BigInteger, Column, Integer, String
from db import Base

GAME_ACCOUNT_NAME_MAX_LENGTH = 64


class Binding(Base):
    __tablename__ = "bindings"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # One binding per chat user and one per game account
    platform_user_id = Column(BigInteger, unique=True, index=True, nullable=False)
    game_account_name = Column(String(GAME_ACCOUNT_NAME_MAX_LENGTH), unique=True, index=True, nullable=False)

    # Milliseconds since epoch, set once on creation
    registered_at_millis = Column(BigInteger, nullable=False)
