from __future__ import annotations

from ..extensions import db
from gudang.time_utils import to_utc_z, utcnow


MOVEMENT_TYPES = ("in", "out", "opname")
LOCATION_KINDS = ("central", "outlet")


class OutletStock(db.Model):
    """
    Sparse outlet ledger entry.

    COMPACTION RULE: a row exists only while qty > 0. It is created on the
    first positive balance and deleted when the balance returns to 0, so a
    missing row means quantity 0.
    """
    __tablename__ = "outlet_stocks"
    __table_args__ = (
        db.UniqueConstraint("outlet_id", "product_id", name="uq_outlet_stocks_outlet_product"),
        db.CheckConstraint("qty > 0", name="ck_outlet_stocks_qty_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    qty = db.Column(db.Integer, nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<OutletStock outlet_id={self.outlet_id} product_id={self.product_id} qty={self.qty}>"

    def to_dict(self) -> dict:
        return {
            "outlet_id": self.outlet_id,
            "product_id": self.product_id,
            "qty": self.qty,
        }


class Movement(db.Model):
    """
    Immutable audit record of one receipt, issue, or opname event.

    Append-only: rows are inserted once by movement_service and never
    updated or deleted. product_name and location_label are snapshots taken
    at event time, so later renames and product deletion do not rewrite
    history.
    """
    __tablename__ = "movements"
    __table_args__ = (
        db.Index("ix_movements_created", "created_at"),
        db.Index("ix_movements_location_created", "location_kind", "location_id", "created_at"),
        db.Index("ix_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    qty = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(16), nullable=False, index=True)  # in, out, opname
    note = db.Column(db.String(255), nullable=False)

    delta = db.Column(db.Integer, nullable=False)
    balance_after = db.Column(db.Integer, nullable=False)
    counted_stock = db.Column(db.Integer, nullable=True)  # opname only

    location_kind = db.Column(db.String(16), nullable=False)
    location_id = db.Column(db.String(64), nullable=False)  # "central" or outlet id
    location_label = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return (
            f"<Movement id={self.id} type={self.type} product_id={self.product_id} "
            f"delta={self.delta} balance_after={self.balance_after}>"
        )

    @property
    def location_key(self) -> str:
        if self.location_kind == "central":
            return "central"
        return f"outlet:{self.location_id}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "qty": self.qty,
            "type": self.type,
            "note": self.note,
            "delta": self.delta,
            "balance_after": self.balance_after,
            "counted_stock": self.counted_stock,
            "location_kind": self.location_kind,
            "location_id": self.location_id,
            "location_label": self.location_label,
            "created_at": to_utc_z(self.created_at),
        }


class TransferRecord(db.Model):
    """
    Immutable record of a one-source / many-destination transfer.

    Destination outlet names are snapshotted in TransferDestination rows at
    transfer time.
    """
    __tablename__ = "transfer_records"
    __table_args__ = (
        db.Index("ix_transfer_records_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    source_kind = db.Column(db.String(16), nullable=False)
    source_outlet_id = db.Column(db.Integer, nullable=True, index=True)
    source_label = db.Column(db.String(255), nullable=False)

    total_qty = db.Column(db.Integer, nullable=False)
    note = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    destinations = db.relationship(
        "TransferDestination",
        backref="transfer",
        lazy="selectin",
        order_by="TransferDestination.id",
    )

    def __repr__(self) -> str:
        return f"<TransferRecord id={self.id} product_id={self.product_id} total_qty={self.total_qty}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "source_kind": self.source_kind,
            "source_outlet_id": self.source_outlet_id,
            "source_label": self.source_label,
            "destinations": [d.to_dict() for d in self.destinations],
            "total_qty": self.total_qty,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }


class TransferDestination(db.Model):
    __tablename__ = "transfer_destinations"
    __table_args__ = (
        db.UniqueConstraint("transfer_id", "outlet_id", name="uq_transfer_destinations_transfer_outlet"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transfer_id = db.Column(db.Integer, db.ForeignKey("transfer_records.id"), nullable=False, index=True)
    outlet_id = db.Column(db.Integer, nullable=False, index=True)
    outlet_name = db.Column(db.String(120), nullable=False)
    qty = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "outlet_id": self.outlet_id,
            "outlet_name": self.outlet_name,
            "qty": self.qty,
        }
