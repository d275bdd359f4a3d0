"""Errors raised while sending a print job to a destination."""
from typing import Sequence


class PrinterError(ConnectionError):
    """A print job could not be delivered."""


class DeviceNotFoundError(PrinterError):
    """No USB device matches the requested vendor/product ID."""

    def __init__(self, vendor_id: int, product_id: int, devices: Sequence[str] = ()):
        self.vendor_id = vendor_id
        self.product_id = product_id
        self.devices = list(devices)
        listing = "\n".join(f"  {d}" for d in self.devices) or "  (none)"
        super().__init__(
            f"USB printer not found (looking for {vendor_id:04x}:{product_id:04x}).\n"
            f"Visible USB devices:\n{listing}"
        )


class EndpointNotFoundError(PrinterError):
    """The USB interface has no OUT endpoint to write to."""

    def __init__(self, endpoints: Sequence[str] = ()):
        self.endpoints = list(endpoints)
        super().__init__(
            "No OUT endpoint found on USB interface 0. "
            f"Endpoints: {', '.join(self.endpoints) or '(none)'}"
        )


class ConnectionFailedError(PrinterError):
    """The TCP connection to a network printer failed."""

    def __init__(self, host: str, port: int, reason: str):
        self.host = host
        self.port = port
        self.reason = reason
        super().__init__(f"TCP printer connection failed ({host}:{port}): {reason}")


class DestinationNotConfiguredError(PrinterError):
    """The named print destination is unknown to the print system."""

    def __init__(self, name: str, alternatives: Sequence[str] = ()):
        self.name = name
        self.alternatives = list(alternatives)
        if self.alternatives:
            hint = f"Available printers: {', '.join(self.alternatives)}"
        else:
            hint = "No printers are configured. Add one in your system printer settings."
        super().__init__(f'Printer "{name}" not found in CUPS.\n{hint}')


class SubmissionFailedError(PrinterError):
    """The print system rejected the raw job."""

    def __init__(self, name: str, detail: str):
        self.name = name
        self.detail = detail
        super().__init__(f'Failed to submit print job to "{name}": {detail}')
