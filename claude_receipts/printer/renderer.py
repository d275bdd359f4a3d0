"""Receipt layouts: ESC/POS job, plain-text preview and HTML page."""
import base64
import io
from typing import List, Tuple

import qrcode
from jinja2 import Environment, PackageLoader, select_autoescape

from claude_receipts.formatting import (
    center,
    format_currency,
    format_datetime,
    format_number,
    model_display_name,
    two_column,
)
from claude_receipts.printer.escpos import ESCPOSBuilder
from claude_receipts.receipt import ModelUsageRecord, ReceiptContent

REPO_URL = "https://github.com/chrishutchinson/claude-receipts"

PRINTER_WIDTH = 40
LEFT_MARGIN_DOTS = 12  # one character at 203 dpi
QR_MODULE_SIZE = 4

TEXT_WIDTH = 35
SEPARATOR = "━" * TEXT_WIDTH
LIGHT_SEPARATOR = "─" * TEXT_WIDTH

TEXT_LOGO = (
    "     ▐▛███▜▌\n"
    "    ▝▜█████▛▘\n"
    "      ▘▘ ▝▝   "
)


def token_rows(record: ModelUsageRecord) -> List[Tuple[str, str]]:
    """Label/count rows for a model; cache rows only when non-zero."""
    rows = [
        ("  Input tokens", format_number(record.input_tokens)),
        ("  Output tokens", format_number(record.output_tokens)),
    ]
    if record.cache_write_tokens > 0:
        rows.append(("  Cache write", format_number(record.cache_write_tokens)))
    if record.cache_read_tokens > 0:
        rows.append(("  Cache read", format_number(record.cache_read_tokens)))
    return rows


def qr_data_uri(data: str, size: int = 4) -> str:
    """Render ``data`` as a QR code PNG and return it as a data URI."""
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=size,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.get_image().save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


class ReceiptRenderer:
    """Renders receipt content for the printer, the terminal and the browser."""

    def __init__(self, width: int = PRINTER_WIDTH):
        """Initialize renderer.

        Args:
            width: Character width per printed line
        """
        self.width = width
        self._jinja = Environment(
            loader=PackageLoader("claude_receipts", "templates"),
            autoescape=select_autoescape(["html"]),
        )

    def render(self, content: ReceiptContent) -> bytes:
        """Render receipt content to an ESC/POS print job."""
        b = ESCPOSBuilder(width=self.width)

        b.init()
        b.left_margin(LEFT_MARGIN_DOTS)

        # Header
        b.logo()
        b.line()

        b.align_center()
        b.line(f"Location: {content.location}")
        b.line(f"Session: {content.session}")
        b.line(format_datetime(content.timestamp, content.timezone))
        b.line()

        # Model breakdowns
        b.align_left()
        b.rule()
        for record in content.records:
            b.bold(True)
            b.left_right(model_display_name(record.model), format_currency(record.cost))
            b.bold(False)
            b.rule("-")
            for label, count in token_rows(record):
                b.left_right(label, count)
            b.line()
            b.rule()

        # Total
        b.bold(True)
        b.left_right("TOTAL", format_currency(content.total_cost))
        b.bold(False)
        b.rule()
        b.line()

        # Footer
        b.align_left()
        b.line(f"CASHIER: {content.cashier}")
        b.line()
        b.align_center()
        b.line("Thank you for building!")
        b.line()

        b.line("Print your own Claude receipts:")
        b.qr(REPO_URL, size=QR_MODULE_SIZE, error_correction="M")
        b.line("github.com/chrishutchinson")
        b.line("/claude-receipts")
        b.line()

        b.cut()
        return b.build()

    def render_preview(self, content: ReceiptContent) -> str:
        """Render receipt content as plain text for the terminal."""
        lines = [SEPARATOR, TEXT_LOGO, SEPARATOR, ""]

        lines.append(center(f"Location: {content.location}", TEXT_WIDTH))
        lines.append(center(f"Session: {content.session}", TEXT_WIDTH))
        lines.append(center(format_datetime(content.timestamp, content.timezone), TEXT_WIDTH))
        lines.append("")

        lines.append(SEPARATOR)
        for record in content.records:
            lines.append(two_column(model_display_name(record.model),
                                    format_currency(record.cost), TEXT_WIDTH))
            lines.append(LIGHT_SEPARATOR)
            for label, count in token_rows(record):
                lines.append(two_column(label, count, TEXT_WIDTH))
            lines.append("")

        total = format_currency(content.total_cost)
        lines.append(SEPARATOR)
        lines.append(two_column("SUBTOTAL", total, TEXT_WIDTH))
        lines.append(LIGHT_SEPARATOR)
        lines.append(two_column("TOTAL", total, TEXT_WIDTH))
        lines.append(SEPARATOR)
        lines.append("")

        lines.append(f"CASHIER: {content.cashier}")
        lines.append("")
        lines.append(center("Thank you for building!", TEXT_WIDTH))
        lines.append("")
        lines.append(SEPARATOR)
        return "\n".join(lines)

    def render_html(self, content: ReceiptContent, share_url: str = "") -> str:
        """Render receipt content as a standalone HTML page."""
        template = self._jinja.get_template("receipt.html")
        models = [
            {
                "name": model_display_name(record.model),
                "cost": format_currency(record.cost),
                "rows": token_rows(record),
            }
            for record in content.records
        ]
        return template.render(
            content=content,
            logo=TEXT_LOGO,
            date=format_datetime(content.timestamp, content.timezone),
            description=(
                f"Claude Code session receipt - {format_currency(content.total_cost)} spent "
                f"with {format_number(content.total_tokens)} tokens"
            ),
            models=models,
            total=format_currency(content.total_cost),
            cashier=content.cashier,
            repo_url=REPO_URL,
            repo_qr=qr_data_uri(REPO_URL),
            share_url=share_url,
        )
