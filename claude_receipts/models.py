"""Database models."""
import json
from datetime import datetime
from claude_receipts import db


class SharedReceipt(db.Model):
    """A receipt published through the sharing API."""
    __tablename__ = "shared_receipts"

    id = db.Column(db.String(12), primary_key=True)
    session_slug = db.Column(db.String(200), nullable=False)
    html = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self, base_url: str = ""):
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "url": f"{base_url}/r/{self.id}",
            "sessionSlug": self.session_slug,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<SharedReceipt {self.id}>"


class RateLimitEntry(db.Model):
    """Share requests counted for one (hashed) client address."""
    __tablename__ = "rate_limits"

    key = db.Column(db.String(64), primary_key=True)
    count = db.Column(db.Integer, nullable=False, default=0)
    window_start = db.Column(db.DateTime, nullable=False)

    def __repr__(self):
        return f"<RateLimitEntry {self.key} ({self.count})>"


class PrintHistory(db.Model):
    """Print history model."""
    __tablename__ = "print_history"

    id = db.Column(db.Integer, primary_key=True)
    session_slug = db.Column(db.String(200), nullable=True)
    receipt_json = db.Column(db.Text, nullable=True)  # JSON of the receipt printed
    destination = db.Column(db.String(200), nullable=False)
    status = db.Column(db.String(20), nullable=False)  # success, failed
    error_message = db.Column(db.Text, nullable=True)
    printed_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def receipt(self):
        """Parse receipt JSON."""
        return json.loads(self.receipt_json) if self.receipt_json else {}

    @receipt.setter
    def receipt(self, value):
        """Set receipt as JSON."""
        self.receipt_json = json.dumps(value)

    def to_dict(self):
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "session_slug": self.session_slug,
            "receipt": self.receipt,
            "destination": self.destination,
            "status": self.status,
            "error_message": self.error_message,
            "printed_at": self.printed_at.isoformat() if self.printed_at else None,
        }

    def __repr__(self):
        return f"<PrintHistory {self.id} ({self.status})>"
