#database/models/card.py
from sqlalchemy import Column, Integer, BigInteger, String, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from database.base import Base


class Card(Base):
    """Карточка игрока. Меняется только владелец"""

    __tablename__ = "cards"
    __table_args__ = (
        CheckConstraint("income_per_hour >= 0", name="ck_cards_income_non_negative"),
        {"sqlite_autoincrement": True},  # id не переиспользуются
    )

    id = Column(Integer, primary_key=True)
    owner_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)

    rarity = Column(String, nullable=False)  # common, rare, epic, legendary
    # Фиксируется при создании, изменения каталога на старые карты не влияют
    income_per_hour = Column(Integer, nullable=False)

    created_at = Column(DateTime, server_default=func.now())

    def __repr__(self):
        return f"<Card #{self.id} {self.rarity} (+{self.income_per_hour}/h) owner={self.owner_id}>"
