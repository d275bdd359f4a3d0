"""Printer destinations and the USB, network and CUPS transports."""
import logging
import os
import re
import socket
import subprocess
import tempfile
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from typing import List, Union
from urllib.parse import urlsplit

import usb.core
import usb.util

from claude_receipts.printer.errors import (
    ConnectionFailedError,
    DestinationNotConfiguredError,
    DeviceNotFoundError,
    EndpointNotFoundError,
    PrinterError,
    SubmissionFailedError,
)

logger = logging.getLogger(__name__)

# Epson TM-T88V
DEFAULT_VENDOR_ID = 0x04b8
DEFAULT_PRODUCT_ID = 0x0202
USB_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{1,4}\Z")

DEFAULT_TCP_PORT = 9100
DEFAULT_TIMEOUT = 5.0

# How many visible USB devices to list when the printer is missing
DEVICE_SAMPLE_SIZE = 10


@dataclass(frozen=True)
class TcpDestination:
    host: str
    port: int = DEFAULT_TCP_PORT


@dataclass(frozen=True)
class UsbDestination:
    vendor_id: int = DEFAULT_VENDOR_ID
    product_id: int = DEFAULT_PRODUCT_ID


@dataclass(frozen=True)
class SpoolerDestination:
    name: str


Destination = Union[TcpDestination, UsbDestination, SpoolerDestination]


def parse_destination(destination: str) -> Destination:
    """Classify a destination string.

    Supported forms:
        - "tcp://host[:port]" - network printer, port defaults to 9100
        - "usb" - USB printer with the default vendor/product ID
        - "usb:VID:PID" - USB printer by hex IDs; malformed IDs fall back
          to the defaults
        - anything else - a CUPS printer name
    """
    if destination.startswith("tcp://"):
        url = urlsplit(destination)
        if not url.hostname:
            raise ValueError(f"Invalid printer address: {destination}")
        # .port raises ValueError for a non-numeric port
        return TcpDestination(host=url.hostname, port=url.port or DEFAULT_TCP_PORT)

    if destination == "usb" or destination.startswith("usb:"):
        parts = destination.split(":")
        if len(parts) >= 3 and USB_ID_PATTERN.match(parts[1]) and USB_ID_PATTERN.match(parts[2]):
            return UsbDestination(int(parts[1], 16), int(parts[2], 16))
        if len(parts) > 1:
            logger.debug("Ignoring malformed USB IDs in %r, using defaults", destination)
        return UsbDestination()

    return SpoolerDestination(name=destination)


class PrinterConnection(ABC):
    """A way of delivering a finished print job to a printer."""

    @abstractmethod
    def send(self, data: bytes) -> None:
        """Deliver ``data`` as one job, raising ``PrinterError`` on failure."""


class NetworkPrinter(PrinterConnection):
    """TCP/IP network printer connection (raw port 9100)."""

    def __init__(self, host: str, port: int = DEFAULT_TCP_PORT, timeout: float = DEFAULT_TIMEOUT):
        self.host = host
        self.port = port
        self.timeout = timeout

    def send(self, data: bytes) -> None:
        """Connect, write the whole buffer, and close."""
        logger.debug("Sending %d bytes to %s:%s", len(data), self.host, self.port)
        try:
            with socket.create_connection((self.host, self.port), timeout=self.timeout) as sock:
                sock.sendall(data)
                sock.shutdown(socket.SHUT_WR)
        except OSError as e:
            raise ConnectionFailedError(self.host, self.port, str(e) or type(e).__name__) from e
        logger.info("Sent print job to %s:%s", self.host, self.port)

    def __repr__(self):
        return f"NetworkPrinter({self.host}:{self.port})"


class USBPrinter(PrinterConnection):
    """USB printer connection via libusb."""

    INTERFACE = 0

    def __init__(self, vendor_id: int = DEFAULT_VENDOR_ID, product_id: int = DEFAULT_PRODUCT_ID):
        self.vendor_id = vendor_id
        self.product_id = product_id

    def send(self, data: bytes) -> None:
        """Claim interface 0, write the buffer to its OUT endpoint, release."""
        device = usb.core.find(idVendor=self.vendor_id, idProduct=self.product_id)
        if device is None:
            raise DeviceNotFoundError(self.vendor_id, self.product_id, self.visible_devices())

        logger.debug("Sending %d bytes to USB %04x:%04x", len(data), self.vendor_id, self.product_id)
        try:
            with self._claimed(device) as interface:
                endpoint = usb.util.find_descriptor(
                    interface,
                    custom_match=lambda e: usb.util.endpoint_direction(e.bEndpointAddress) == usb.util.ENDPOINT_OUT
                )
                if endpoint is None:
                    raise EndpointNotFoundError([_describe_endpoint(e) for e in interface])
                # timeout=0 waits for the transfer to finish, however long it takes
                endpoint.write(data, timeout=0)
        except usb.core.USBError as e:
            raise PrinterError(
                f"USB transfer to {self.vendor_id:04x}:{self.product_id:04x} failed: {e}"
            ) from e
        logger.info("Sent print job to USB %04x:%04x", self.vendor_id, self.product_id)

    @contextmanager
    def _claimed(self, device):
        """Claim interface 0 of ``device`` and always release the device."""
        try:
            # Detach kernel driver if active
            try:
                if device.is_kernel_driver_active(self.INTERFACE):
                    device.detach_kernel_driver(self.INTERFACE)
            except (usb.core.USBError, NotImplementedError):
                pass

            # Set configuration
            try:
                device.set_configuration()
            except usb.core.USBError:
                pass  # May already be configured

            usb.util.claim_interface(device, self.INTERFACE)
            interface = device.get_active_configuration()[(self.INTERFACE, 0)]
            yield interface
            usb.util.release_interface(device, self.INTERFACE)
        finally:
            try:
                usb.util.dispose_resources(device)
            except usb.core.USBError as e:
                logger.debug("Failed to release USB device: %s", e)

    @staticmethod
    def visible_devices(limit: int = DEVICE_SAMPLE_SIZE) -> List[str]:
        """List ``vid:pid`` of up to ``limit`` attached USB devices.

        Best effort: any failure to enumerate yields an empty list.
        """
        try:
            devices = usb.core.find(find_all=True) or []
            found = []
            for dev in devices:
                if len(found) >= limit:
                    break
                found.append(f"{dev.idVendor:04x}:{dev.idProduct:04x}")
            return found
        except Exception as e:
            logger.debug("USB device enumeration failed: %s", e)
            return []

    def __repr__(self):
        return f"USBPrinter({self.vendor_id:04x}:{self.product_id:04x})"


def _describe_endpoint(endpoint) -> str:
    direction = usb.util.endpoint_direction(endpoint.bEndpointAddress)
    return f"0x{endpoint.bEndpointAddress:02x} ({'in' if direction == usb.util.ENDPOINT_IN else 'out'})"


class CUPSPrinter(PrinterConnection):
    """A named destination in the CUPS print system, printed to with ``lp -o raw``."""

    def __init__(self, name: str, timeout: float = DEFAULT_TIMEOUT):
        self.name = name
        self.timeout = timeout

    def send(self, data: bytes) -> None:
        """Spool ``data`` to a temp file and submit it as a raw job.

        The temp file is removed on every path, including an unknown
        destination or a rejected submission.
        """
        logger.debug("Sending %d bytes to CUPS printer %s", len(data), self.name)
        with self._spool_file(data) as path:
            self._check_destination()
            try:
                subprocess.run(
                    ["lp", "-d", self.name, "-o", "raw", path],
                    check=True, capture_output=True, text=True,
                )
            except subprocess.CalledProcessError as e:
                detail = (e.stderr or e.stdout or "").strip() or f"lp exited with status {e.returncode}"
                raise SubmissionFailedError(self.name, detail) from e
            except OSError as e:
                raise SubmissionFailedError(self.name, str(e)) from e
        logger.info("Submitted print job to CUPS printer %s", self.name)

    def _check_destination(self) -> None:
        # lp reports a misleading "No such file or directory" for unknown
        # destinations, so ask lpstat first. A leading "-" would be read as
        # an option by both tools.
        if self.name.startswith("-"):
            raise DestinationNotConfiguredError(self.name, self.available_printers())
        try:
            subprocess.run(
                ["lpstat", "-p", self.name],
                check=True, capture_output=True, text=True, timeout=self.timeout,
            )
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            raise DestinationNotConfiguredError(self.name, self.available_printers()) from e

    def available_printers(self) -> List[str]:
        """Names of all configured CUPS printers, or [] if lpstat fails."""
        try:
            result = subprocess.run(
                ["lpstat", "-p"],
                check=True, capture_output=True, text=True, timeout=self.timeout,
            )
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
            logger.debug("Could not list CUPS printers: %s", e)
            return []
        return [
            line.split()[1]
            for line in result.stdout.splitlines()
            if line.startswith("printer ") and len(line.split()) > 1
        ]

    @staticmethod
    @contextmanager
    def _spool_file(data: bytes):
        fd, path = tempfile.mkstemp(prefix=f"claude-receipt-{int(time.time() * 1000)}-", suffix=".bin")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            yield path
        finally:
            try:
                os.unlink(path)
            except OSError as e:
                logger.debug("Could not remove spool file %s: %s", path, e)

    def __repr__(self):
        return f"CUPSPrinter({self.name})"


def create_printer(destination: Union[str, Destination], timeout: float = DEFAULT_TIMEOUT) -> PrinterConnection:
    """Factory function to create the printer connection for a destination.

    Args:
        destination: Destination string (see ``parse_destination``) or an
            already parsed destination.
        timeout: Seconds allowed for TCP connects and CUPS status queries.

    Returns:
        PrinterConnection instance.
    """
    if isinstance(destination, str):
        destination = parse_destination(destination)

    if isinstance(destination, TcpDestination):
        return NetworkPrinter(destination.host, destination.port, timeout=timeout)
    elif isinstance(destination, UsbDestination):
        return USBPrinter(destination.vendor_id, destination.product_id)
    elif isinstance(destination, SpoolerDestination):
        return CUPSPrinter(destination.name, timeout=timeout)
    else:
        raise ValueError(f"Unknown printer destination: {destination!r}")
