"""Printer module for ESC/POS thermal printing."""
from claude_receipts.printer.connection import (
    PrinterConnection,
    NetworkPrinter,
    USBPrinter,
    CUPSPrinter,
    TcpDestination,
    UsbDestination,
    SpoolerDestination,
    parse_destination,
    create_printer,
)
from claude_receipts.printer.errors import (
    PrinterError,
    DeviceNotFoundError,
    EndpointNotFoundError,
    ConnectionFailedError,
    DestinationNotConfiguredError,
    SubmissionFailedError,
)
from claude_receipts.printer.escpos import ESCPOSBuilder
from claude_receipts.printer.renderer import ReceiptRenderer


def print_receipt(content, destination: str, timeout: float = 5.0) -> None:
    """Build the ESC/POS job for ``content`` and send it to ``destination``."""
    data = ReceiptRenderer().render(content)
    create_printer(destination, timeout=timeout).send(data)


__all__ = [
    "PrinterConnection",
    "NetworkPrinter",
    "USBPrinter",
    "CUPSPrinter",
    "TcpDestination",
    "UsbDestination",
    "SpoolerDestination",
    "parse_destination",
    "create_printer",
    "print_receipt",
    "PrinterError",
    "DeviceNotFoundError",
    "EndpointNotFoundError",
    "ConnectionFailedError",
    "DestinationNotConfiguredError",
    "SubmissionFailedError",
    "ESCPOSBuilder",
    "ReceiptRenderer",
]
