from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Exhibition(db.Model):
    """
    An off-site selling event run by one employee.

    The id is a document number (EXH-YYMMDD-NNNN) so that orders and bills can
    keep carrying it as a plain string. An employee has at most one active
    exhibition; ending it stamps end_time and clears active.
    """
    __tablename__ = "exhibitions"
    __table_args__ = (
        db.Index("ix_exhibitions_created_by_active", "created_by", "active"),
    )

    id = db.Column(db.String(64), primary_key=True)
    location = db.Column(db.String(255), nullable=False)
    start_time = db.Column(db.DateTime(timezone=True), nullable=False)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)
    created_by = db.Column(db.String(64), nullable=False)
    active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Exhibition id={self.id} active={self.active}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "location": self.location,
            "start_time": to_utc_z(self.start_time),
            "end_time": to_utc_z(self.end_time),
            "created_by": self.created_by,
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
