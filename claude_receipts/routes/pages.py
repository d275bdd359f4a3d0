"""Public pages for shared receipts."""
from flask import Blueprint, abort

from claude_receipts import db
from claude_receipts.models import SharedReceipt

pages_bp = Blueprint("pages", __name__)


@pages_bp.route("/r/<receipt_id>")
def view_receipt(receipt_id):
    """Serve a shared receipt page."""
    shared = db.session.get(SharedReceipt, receipt_id)
    if shared is None:
        abort(404)
    return shared.html, 200, {
        "Content-Type": "text/html; charset=utf-8",
        "Cache-Control": "public, max-age=31536000, immutable",
    }
