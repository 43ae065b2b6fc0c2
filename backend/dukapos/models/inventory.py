from __future__ import annotations

from ..extensions import db
from dukapos.money import money_str
from dukapos.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data with on-hand stock.

    MULTI-TENANT: Products are scoped directly by business_id.

    STOCK DESIGN DECISION:
    stock_quantity is the single on-hand counter. It is only ever changed by
    stock_service through atomic conditional UPDATEs; the CHECK constraint
    below is the storage-level backstop against negative stock.

    DERIVED VALUES:
    total_buying_price (buying_price x stock_quantity) is never stored.
    It is computed on read by pricing_service.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("buying_price >= 0", name="ck_products_buying_price_non_negative"),
        db.Index("ix_products_business_name", "business_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(
        db.Integer,
        db.ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    size = db.Column(db.String(64), nullable=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)

    # Unit cost
    buying_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    business = db.relationship("Business", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} business_id={self.business_id}>"

    @property
    def total_buying_price(self):
        from dukapos.services.pricing_service import total_buying_price
        return total_buying_price(self.buying_price, self.stock_quantity)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "description": self.description,
            "size": self.size,
            "stock_quantity": self.stock_quantity,
            "buying_price": money_str(self.buying_price),
            "total_buying_price": money_str(self.total_buying_price),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
