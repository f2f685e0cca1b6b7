"""Item catalog model."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String

from invopt.database import Base


class Item(Base):
    """
    Inventory item.

    The optimization pipeline does not query through this model: deployed
    catalogs differ in which planning columns exist, so extraction discovers
    the live column set instead (see services/item_catalog.py).
    """

    __tablename__ = "items"

    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(100), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    avg_daily_demand = Column(Float, nullable=True)
    lead_time_days = Column(Float, nullable=True)
    unit_cost = Column(Float, nullable=True)
    order_cost = Column(Float, nullable=True)
    safety_stock = Column(Float, nullable=True)
    eoq = Column(Float, nullable=True)
    reorder_point = Column(Float, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Item(id={self.id}, sku={self.sku})>"
