from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


class Company(db.Model):
    """
    Multi-tenant root: every tenant is a Company.

    Products, warehouses, stock transfers and users carry company_id. A
    user without a company has no tenant scope (back-office operator).

    warehouse_id is the company's default warehouse; new variable products
    seed their opening quantities there.
    """
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    company_name = db.Column(db.String(255), nullable=False)
    company_phone = db.Column(db.String(64), nullable=True)
    company_email = db.Column(db.String(255), nullable=True)
    company_address = db.Column(db.String(500), nullable=True)

    warehouse_id = db.Column(
        db.Integer,
        db.ForeignKey("warehouses.id", use_alter=True, name="fk_companies_default_warehouse"),
        nullable=True,
    )

    status = db.Column(db.String(16), nullable=False, default="active")
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    default_warehouse = db.relationship("Warehouse", foreign_keys=[warehouse_id], post_update=True)

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None and self.status == "active"

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.company_name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_name": self.company_name,
            "company_phone": self.company_phone,
            "company_email": self.company_email,
            "company_address": self.company_address,
            "warehouse_id": self.warehouse_id,
            "status": self.status,
            "deleted_at": to_utc_z(self.deleted_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
