"""REST API endpoints for printing and sharing receipts."""
import re
import secrets

from flask import Blueprint, current_app, jsonify, request

from claude_receipts import db
from claude_receipts.models import PrintHistory, SharedReceipt
from claude_receipts.printer import PrinterError, ReceiptRenderer, create_printer
from claude_receipts.ratelimit import check_rate_limit
from claude_receipts.receipt import ReceiptContent
from claude_receipts.validation import validate_receipt_data

api_bp = Blueprint("api", __name__)

RECEIPT_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]{12}$')


def _client_address() -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    return forwarded.split(",")[0].strip() or request.remote_addr or "unknown"


# Print API

@api_bp.route("/print", methods=["POST"])
def print_receipt():
    """Print a receipt.

    Request body:
    {
        "receipt": {"sessionSlug": "...", "location": "...", ...},
        "printer": "tcp://192.168.1.50"  // optional, uses RECEIPT_PRINTER if not provided
    }
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"success": False, "error": "Invalid JSON body"}), 400

    receipt = data.get("receipt")
    valid, errors = validate_receipt_data(receipt)
    if not valid:
        return jsonify({"success": False, "error": "Validation failed", "details": errors}), 400

    destination = data.get("printer") or current_app.config.get("RECEIPT_PRINTER")
    if not destination:
        return jsonify({"success": False, "error": "No printer configured"}), 400

    content = ReceiptContent.from_dict(receipt)
    history = PrintHistory(session_slug=content.session, destination=destination)
    history.receipt = receipt

    try:
        escpos_data = ReceiptRenderer().render(content)
        printer = create_printer(destination, timeout=current_app.config["PRINTER_TIMEOUT"])
        printer.send(escpos_data)
    except (PrinterError, ValueError) as e:
        current_app.logger.warning("Print to %s failed: %s", destination, e)
        history.status = "failed"
        history.error_message = str(e)
        db.session.add(history)
        db.session.commit()
        status = 400 if isinstance(e, ValueError) else 502
        return jsonify({"success": False, "error": str(e), "history_id": history.id}), status

    history.status = "success"
    db.session.add(history)
    db.session.commit()
    return jsonify({"success": True, "history_id": history.id})


@api_bp.route("/history", methods=["GET"])
def list_history():
    """List recent print attempts."""
    limit = request.args.get("limit", 20, type=int)
    query = PrintHistory.query.order_by(PrintHistory.printed_at.desc(), PrintHistory.id.desc())

    status = request.args.get("status")
    if status:
        query = query.filter_by(status=status)

    return jsonify({
        "history": [h.to_dict() for h in query.limit(limit).all()]
    })


# Sharing API

@api_bp.route("/receipts", methods=["POST"])
def share_receipt():
    """Publish a receipt and return its public URL."""
    config = current_app.config
    limit = config["SHARE_RATE_LIMIT"]
    result = check_rate_limit(_client_address(), limit, config["SHARE_RATE_WINDOW"],
                              config["SHARE_RATE_SALT"])
    headers = {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": result.reset_at.isoformat() + "Z",
    }

    if not result.allowed:
        return jsonify({
            "error": "Rate limit exceeded",
            "message": f"You can share up to {limit} receipts per hour. Please try again later.",
            "resetAt": result.reset_at.isoformat() + "Z",
        }), 429, headers

    data = request.get_json(silent=True)
    if data is None:
        return jsonify({"error": "Invalid JSON body"}), 400, headers

    valid, errors = validate_receipt_data(data)
    if not valid:
        return jsonify({"error": "Validation failed", "details": errors}), 400, headers

    receipt_id = secrets.token_urlsafe(9)
    base_url = request.host_url.rstrip("/")
    public_url = f"{base_url}/r/{receipt_id}"

    content = ReceiptContent.from_dict(data)
    shared = SharedReceipt(
        id=receipt_id,
        session_slug=content.session,
        html=ReceiptRenderer().render_html(content, share_url=public_url),
    )
    db.session.add(shared)
    db.session.commit()

    return jsonify({"id": receipt_id, "url": public_url}), 201, headers


@api_bp.route("/receipts/<receipt_id>", methods=["GET"])
def get_shared_receipt(receipt_id):
    """Get shared receipt metadata."""
    if not RECEIPT_ID_PATTERN.match(receipt_id):
        return jsonify({"error": "Invalid receipt ID"}), 400

    shared = db.session.get(SharedReceipt, receipt_id)
    if shared is None:
        return jsonify({"error": "Receipt not found"}), 404

    return jsonify(shared.to_dict(request.host_url.rstrip("/")))
