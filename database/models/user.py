from datetime import datetime

from sqlalchemy import Column, BigInteger, DateTime, CheckConstraint
from sqlalchemy.sql import func
from database.base import Base

# Метка "никогда" для last_pack_time / last_claim_time
EPOCH = datetime(1970, 1, 1)


class User(Base):
    """Модель игрока"""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("coins >= 0", name="ck_users_coins_non_negative"),
    )

    # ID аккаунта на платформе (telegram id), задается снаружи
    id = Column(BigInteger, primary_key=True, autoincrement=False)

    coins = Column(BigInteger, nullable=False, default=0)

    # Таймеры
    last_pack_time = Column(DateTime, nullable=False, default=EPOCH)
    last_claim_time = Column(DateTime, nullable=False, default=EPOCH)

    created_at = Column(DateTime, server_default=func.now())

    def __repr__(self):
        return f"<User {self.id} coins={self.coins}>"
