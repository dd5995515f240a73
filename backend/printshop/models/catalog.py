from __future__ import annotations

from ..extensions import db
from printshop.pricing import money_str, weight_str
from printshop.time_utils import to_utc_z


class Product(db.Model):
    """
    Printable product sold by a company (business cards, banners, ...).

    weight_per_unit is expressed in weight_unit (kg, g, lb, oz) and drives
    the weight-based delivery charge. tax_rate is a percentage.

    Products are soft-deactivated (status="inactive"), never hard deleted,
    so historical invoice items keep their product reference.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("company_id", "product_code", name="uq_products_company_code"),
        db.Index("ix_products_company_status", "company_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("product_categories.id"), nullable=True, index=True)

    product_code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    base_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    unit_type = db.Column(db.String(32), nullable=False, default="piece")

    weight_per_unit = db.Column(db.Numeric(10, 3), nullable=False, default=0)
    weight_unit = db.Column(db.String(8), nullable=False, default="kg")

    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    minimum_quantity = db.Column(db.Integer, nullable=False, default=1)
    maximum_quantity = db.Column(db.Integer, nullable=True)

    specifications = db.Column(db.JSON, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="active", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    company = db.relationship("Company", backref=db.backref("products", lazy=True))
    category = db.relationship("ProductCategory", back_populates="products")

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.product_code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "category_id": self.category_id,
            "product_code": self.product_code,
            "name": self.name,
            "description": self.description,
            "base_price": money_str(self.base_price),
            "unit_type": self.unit_type,
            "weight_per_unit": weight_str(self.weight_per_unit),
            "weight_unit": self.weight_unit,
            "tax_rate": money_str(self.tax_rate),
            "minimum_quantity": self.minimum_quantity,
            "maximum_quantity": self.maximum_quantity,
            "specifications": self.specifications,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductCategory(db.Model):
    """
    Company-scoped grouping of products, nestable through parent_id.

    code is unique within a company. A category with products or
    subcategories cannot be deleted; deactivate it instead.
    """
    __tablename__ = "product_categories"
    __table_args__ = (
        db.UniqueConstraint("company_id", "code", name="uq_product_categories_company_code"),
        db.Index("ix_product_categories_company_status", "company_id", "status"),
        db.Index("ix_product_categories_parent_status", "parent_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("product_categories.id"), nullable=True)

    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(50), nullable=False)
    description = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="active")
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    parent = db.relationship("ProductCategory", remote_side=[id], backref=db.backref("children", lazy=True))
    products = db.relationship("Product", back_populates="category", lazy=True)

    def __repr__(self) -> str:
        return f"<ProductCategory id={self.id} code={self.code!r}>"

    @property
    def hierarchy(self) -> str:
        """Ancestor names joined root first, e.g. "Print > Cards"."""
        names = []
        node = self
        while node is not None:
            names.append(node.name)
            node = node.parent
        return " > ".join(reversed(names))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "parent_id": self.parent_id,
            "name": self.name,
            "code": self.code,
            "description": self.description,
            "status": self.status,
            "sort_order": self.sort_order,
            "hierarchy": self.hierarchy,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class WeightPricingTier(db.Model):
    """
    Delivery pricing band for a company.

    Covers [min_weight, max_weight] kilograms inclusive; max_weight NULL means
    no upper bound. Charge = base_price + per_kg_rate * weight.

    Active tiers of one company never overlap (enforced on write by
    weight_pricing_service). Tiers are toggled inactive rather than removed
    while in use.
    """
    __tablename__ = "weight_pricing_tiers"
    __table_args__ = (
        db.Index("ix_weight_tiers_company_status_min", "company_id", "status", "min_weight"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    tier_name = db.Column(db.String(128), nullable=False)
    min_weight = db.Column(db.Numeric(8, 3), nullable=False)
    max_weight = db.Column(db.Numeric(8, 3), nullable=True)
    base_price = db.Column(db.Numeric(10, 2), nullable=False)
    per_kg_rate = db.Column(db.Numeric(10, 2), nullable=True, default=0)

    status = db.Column(db.String(16), nullable=False, default="active")
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    company = db.relationship("Company", backref=db.backref("weight_pricing_tiers", lazy=True))

    def __repr__(self) -> str:
        return f"<WeightPricingTier id={self.id} {self.min_weight}-{self.max_weight}kg>"

    @property
    def weight_range(self) -> str:
        if self.max_weight is None:
            return f"{weight_str(self.min_weight)}kg+"
        return f"{weight_str(self.min_weight)}kg - {weight_str(self.max_weight)}kg"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "tier_name": self.tier_name,
            "min_weight": weight_str(self.min_weight),
            "max_weight": weight_str(self.max_weight),
            "weight_range": self.weight_range,
            "base_price": money_str(self.base_price),
            "per_kg_rate": money_str(self.per_kg_rate),
            "status": self.status,
            "sort_order": self.sort_order,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
