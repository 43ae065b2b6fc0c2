from __future__ import annotations

from ..extensions import db
from dukapos.money import money_str
from dukapos.time_utils import to_utc_z, utcnow

PAYMENT_METHODS = ("cash", "mpesa", "bank", "credit")

CREDIT_UNPAID = "unpaid"
CREDIT_PARTIALLY_PAID = "partially_paid"
CREDIT_PAID = "paid"
CREDIT_STATUSES = (CREDIT_UNPAID, CREDIT_PARTIALLY_PAID, CREDIT_PAID)


class Sale(db.Model):
    """
    A single-product sale.

    total_price is stored for querying but is always written by
    pricing_service from quantity x selling_price; caller input is never
    trusted for it. Per-sale profit is computed on read.

    Deleting the product cascades to its sales, and deleting a sale cascades
    to its credit account (both at the database level).
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_sales_quantity_positive"),
        db.CheckConstraint("selling_price >= 0", name="ck_sales_selling_price_non_negative"),
        db.CheckConstraint(
            "payment_method IN ('cash', 'mpesa', 'bank', 'credit')",
            name="ck_sales_payment_method_valid",
        ),
        # Dashboard range scans
        db.Index("ix_sales_business_sale_date", "business_id", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(
        db.Integer,
        db.ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    quantity = db.Column(db.Integer, nullable=False)
    selling_price = db.Column(db.Numeric(12, 2), nullable=False)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    sale_date = db.Column(db.DateTime, nullable=False, default=utcnow)
    description = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship(
        "Product",
        backref=db.backref("sales", lazy=True, cascade="all, delete-orphan", passive_deletes=True),
    )
    credit_account = db.relationship(
        "CreditAccount",
        uselist=False,
        back_populates="sale",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Sale id={self.id} product_id={self.product_id} qty={self.quantity} method={self.payment_method}>"

    @property
    def is_credit(self) -> bool:
        return self.payment_method == "credit"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "selling_price": money_str(self.selling_price),
            "total_price": money_str(self.total_price),
            "payment_method": self.payment_method,
            "sale_date": to_utc_z(self.sale_date),
            "description": self.description,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CreditAccount(db.Model):
    """
    Customer debt for exactly one credit sale (1:1 via unique sale_id).

    STATUS LIFECYCLE:
    unpaid -> partially_paid -> paid, driven by recorded payments.
    An admin may override status on edit (see credit_service.edit_account).

    INVARIANT: 0 <= amount_paid <= amount_owed
    """
    __tablename__ = "credit_accounts"
    __table_args__ = (
        db.UniqueConstraint("sale_id", name="uq_credit_accounts_sale"),
        db.CheckConstraint("amount_owed >= 0", name="ck_credit_accounts_owed_non_negative"),
        db.CheckConstraint("amount_paid >= 0", name="ck_credit_accounts_paid_non_negative"),
        db.CheckConstraint("amount_paid <= amount_owed", name="ck_credit_accounts_paid_within_owed"),
        db.CheckConstraint(
            "status IN ('unpaid', 'partially_paid', 'paid')",
            name="ck_credit_accounts_status_valid",
        ),
        db.Index("ix_credit_accounts_business_status", "business_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(
        db.Integer,
        db.ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sale_id = db.Column(
        db.Integer,
        db.ForeignKey("sales.id", ondelete="CASCADE"),
        nullable=False,
    )

    customer_name = db.Column(db.String(255), nullable=False)
    amount_owed = db.Column(db.Numeric(12, 2), nullable=False)
    amount_paid = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    due_date = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=CREDIT_UNPAID)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    sale = db.relationship("Sale", back_populates="credit_account")

    def __repr__(self) -> str:
        return f"<CreditAccount id={self.id} sale_id={self.sale_id} status={self.status}>"

    @property
    def outstanding(self):
        return self.amount_owed - self.amount_paid

    def is_overdue(self, now=None) -> bool:
        if self.status == CREDIT_PAID:
            return False
        return self.due_date < (now or utcnow())

    def to_dict(self, now=None) -> dict:
        from dukapos.services.credit_service import payment_percentage

        return {
            "id": self.id,
            "business_id": self.business_id,
            "sale_id": self.sale_id,
            "customer_name": self.customer_name,
            "amount_owed": money_str(self.amount_owed),
            "amount_paid": money_str(self.amount_paid),
            "outstanding": money_str(self.outstanding),
            "payment_percentage": str(payment_percentage(self.amount_owed, self.amount_paid)),
            "due_date": to_utc_z(self.due_date),
            "status": self.status,
            "is_overdue": self.is_overdue(now),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
