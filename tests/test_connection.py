"""Tests for destination parsing and the printer transports."""
import os
import socket
import subprocess
import tempfile
import threading
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import usb.core

from claude_receipts.printer.connection import (
    DEFAULT_PRODUCT_ID,
    DEFAULT_VENDOR_ID,
    CUPSPrinter,
    NetworkPrinter,
    SpoolerDestination,
    TcpDestination,
    USBPrinter,
    UsbDestination,
    create_printer,
    parse_destination,
)
from claude_receipts.printer.errors import (
    ConnectionFailedError,
    DestinationNotConfiguredError,
    DeviceNotFoundError,
    EndpointNotFoundError,
    PrinterError,
    SubmissionFailedError,
)


class TestParseDestination:

    def test_tcp_with_port(self):
        assert parse_destination("tcp://10.0.0.5:9100") == TcpDestination("10.0.0.5", 9100)

    def test_tcp_default_port(self):
        assert parse_destination("tcp://printer.local") == TcpDestination("printer.local", 9100)

    def test_tcp_custom_port(self):
        assert parse_destination("tcp://10.0.0.5:9101") == TcpDestination("10.0.0.5", 9101)

    def test_tcp_bad_port(self):
        with pytest.raises(ValueError):
            parse_destination("tcp://10.0.0.5:abc")

    def test_usb_default(self):
        assert parse_destination("usb") == UsbDestination(DEFAULT_VENDOR_ID, DEFAULT_PRODUCT_ID)
        assert parse_destination("usb") == UsbDestination(0x04b8, 0x0202)

    def test_usb_ids(self):
        assert parse_destination("usb:04b8:0202") == UsbDestination(0x04b8, 0x0202)
        assert parse_destination("usb:0519:0003") == UsbDestination(0x0519, 0x0003)

    @pytest.mark.parametrize("value", [
        "usb:zzzz:0202", "usb:04b8:xyz", "usb:04b8", "usb:",
        "usb:-1:0202", "usb:+4b8:0202", "usb:0x04b8:0202", "usb:4_b8:0202", "usb:104b8:0202",
    ])
    def test_usb_malformed_ids_fall_back(self, value):
        assert parse_destination(value) == UsbDestination()

    def test_spooler(self):
        assert parse_destination("Office-Printer") == SpoolerDestination("Office-Printer")

    def test_usb_prefix_needs_colon(self):
        assert parse_destination("usb-printer") == SpoolerDestination("usb-printer")


class TestCreatePrinter:

    def test_transport_types(self):
        assert isinstance(create_printer("tcp://10.0.0.5"), NetworkPrinter)
        assert isinstance(create_printer("usb:04b8:0202"), USBPrinter)
        assert isinstance(create_printer("Office-Printer"), CUPSPrinter)

    def test_fields(self):
        printer = create_printer("tcp://10.0.0.5:9101", timeout=2.0)
        assert (printer.host, printer.port, printer.timeout) == ("10.0.0.5", 9101, 2.0)
        usb_printer = create_printer(UsbDestination(0x0519, 0x0003))
        assert (usb_printer.vendor_id, usb_printer.product_id) == (0x0519, 0x0003)
        assert create_printer("Office-Printer").name == "Office-Printer"

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_printer(object())


def fake_device(vendor_id, product_id):
    return SimpleNamespace(idVendor=vendor_id, idProduct=product_id)


def fake_registry(devices):
    """Stand-in for usb.core.find over a fixed set of devices."""
    def find(find_all=False, idVendor=None, idProduct=None):
        if find_all:
            return iter(devices)
        for dev in devices:
            if dev.idVendor == idVendor and dev.idProduct == idProduct:
                return dev
        return None
    return find


class TestUSBPrinter:

    def test_device_not_found_lists_devices(self):
        devices = [fake_device(0x046d, 0xc52b), fake_device(0x8087, 0x0aaa)]
        with patch("usb.core.find", side_effect=fake_registry(devices)):
            with pytest.raises(DeviceNotFoundError) as exc_info:
                USBPrinter(0x04b8, 0x0202).send(b"data")
        message = str(exc_info.value)
        assert "04b8:0202" in message
        assert "046d:c52b" in message
        assert exc_info.value.devices == ["046d:c52b", "8087:0aaa"]

    def test_device_not_found_empty_registry(self):
        with patch("usb.core.find", side_effect=fake_registry([])):
            with pytest.raises(DeviceNotFoundError) as exc_info:
                USBPrinter().send(b"data")
        assert "(none)" in str(exc_info.value)

    def test_device_listing_is_bounded(self):
        devices = [fake_device(0x1000 + i, i) for i in range(25)]
        with patch("usb.core.find", side_effect=fake_registry(devices)):
            assert len(USBPrinter.visible_devices()) == 10

    def test_enumeration_failure_never_raises(self):
        def find(find_all=False, **kwargs):
            if find_all:
                raise RuntimeError("no backend")
            return None
        with patch("usb.core.find", side_effect=find):
            with pytest.raises(DeviceNotFoundError) as exc_info:
                USBPrinter().send(b"data")
        assert "(none)" in str(exc_info.value)

    def _device(self, endpoints):
        device = MagicMock()
        device.idVendor, device.idProduct = 0x04b8, 0x0202
        device.is_kernel_driver_active.return_value = True
        interface = MagicMock()
        interface.__iter__.return_value = iter(endpoints)
        device.get_active_configuration.return_value.__getitem__.return_value = interface
        return device

    def test_send_writes_whole_buffer(self):
        device = self._device([])
        endpoint = MagicMock()
        with patch("usb.core.find", return_value=device), \
                patch("usb.util.find_descriptor", return_value=endpoint), \
                patch("usb.util.claim_interface") as claim, \
                patch("usb.util.release_interface") as release, \
                patch("usb.util.dispose_resources") as dispose:
            USBPrinter(0x04b8, 0x0202).send(b"\x1b@receipt")

        device.detach_kernel_driver.assert_called_once_with(0)
        claim.assert_called_once_with(device, 0)
        endpoint.write.assert_called_once_with(b"\x1b@receipt", timeout=0)
        release.assert_called_once_with(device, 0)
        dispose.assert_called_once_with(device)

    def test_missing_out_endpoint(self):
        endpoint_in = SimpleNamespace(bEndpointAddress=0x81)
        device = self._device([endpoint_in])
        with patch("usb.core.find", return_value=device), \
                patch("usb.util.find_descriptor", return_value=None), \
                patch("usb.util.claim_interface"), \
                patch("usb.util.release_interface"), \
                patch("usb.util.dispose_resources") as dispose:
            with pytest.raises(EndpointNotFoundError) as exc_info:
                USBPrinter().send(b"data")

        assert exc_info.value.endpoints == ["0x81 (in)"]
        assert "0x81 (in)" in str(exc_info.value)
        dispose.assert_called_once_with(device)

    def test_transfer_error_still_releases_device(self):
        device = self._device([])
        endpoint = MagicMock()
        endpoint.write.side_effect = usb.core.USBError("pipe error")
        with patch("usb.core.find", return_value=device), \
                patch("usb.util.find_descriptor", return_value=endpoint), \
                patch("usb.util.claim_interface"), \
                patch("usb.util.release_interface"), \
                patch("usb.util.dispose_resources") as dispose:
            with pytest.raises(PrinterError, match="pipe error"):
                USBPrinter().send(b"data")
        dispose.assert_called_once_with(device)


class _Receiver(threading.Thread):
    """Accepts one connection and collects everything sent to it."""

    def __init__(self):
        super().__init__(daemon=True)
        self.server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.server.bind(("127.0.0.1", 0))
        self.server.listen(1)
        self.port = self.server.getsockname()[1]
        self.received = b""

    def run(self):
        conn, _ = self.server.accept()
        with conn:
            while True:
                chunk = conn.recv(4096)
                if not chunk:
                    break
                self.received += chunk
        self.server.close()


class TestNetworkPrinter:

    def test_send(self):
        receiver = _Receiver()
        receiver.start()
        data = b"\x1b@" + b"x" * 100000
        NetworkPrinter("127.0.0.1", receiver.port, timeout=5).send(data)
        receiver.join(timeout=5)
        assert receiver.received == data

    def test_connection_refused(self):
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
        sock.close()

        with pytest.raises(ConnectionFailedError) as exc_info:
            NetworkPrinter("127.0.0.1", port, timeout=2).send(b"data")
        assert exc_info.value.port == port
        assert "TCP printer connection failed" in str(exc_info.value)
        assert exc_info.value.reason

    def test_errors_are_printer_errors(self):
        with patch("socket.create_connection", side_effect=socket.timeout("timed out")):
            with pytest.raises(PrinterError, match="timed out"):
                NetworkPrinter("10.0.0.5").send(b"data")


class TestCUPSPrinter:

    LPSTAT_OUTPUT = (
        "printer Office-Printer is idle.  enabled since Mon 01 Jan 2025\n"
        "printer Receipt_TM_T88V disabled since Mon 01 Jan 2025 -\n"
        "\treason unknown\n"
    )

    @pytest.fixture
    def spool_paths(self):
        """Record the temp files the printer creates."""
        paths = []
        real_mkstemp = tempfile.mkstemp

        def mkstemp(*args, **kwargs):
            fd, path = real_mkstemp(*args, **kwargs)
            paths.append(path)
            return fd, path

        with patch("claude_receipts.printer.connection.tempfile.mkstemp", side_effect=mkstemp):
            yield paths

    def test_unknown_destination(self, spool_paths):
        calls = []

        def run(args, **kwargs):
            calls.append(args)
            if args == ["lpstat", "-p", "Nope"]:
                raise subprocess.CalledProcessError(1, args, stderr="lpstat: Invalid destination name")
            if args == ["lpstat", "-p"]:
                return subprocess.CompletedProcess(args, 0, stdout=self.LPSTAT_OUTPUT, stderr="")
            raise AssertionError(f"unexpected command {args}")

        with patch("claude_receipts.printer.connection.subprocess.run", side_effect=run):
            with pytest.raises(DestinationNotConfiguredError) as exc_info:
                CUPSPrinter("Nope").send(b"data")

        assert exc_info.value.alternatives == ["Office-Printer", "Receipt_TM_T88V"]
        assert '"Nope"' in str(exc_info.value)
        assert "Office-Printer, Receipt_TM_T88V" in str(exc_info.value)
        assert not any(args[0] == "lp" for args in calls)
        assert len(spool_paths) == 1
        assert not os.path.exists(spool_paths[0])

    def test_option_like_name_is_never_passed_to_cups(self, spool_paths):
        calls = []

        def run(args, **kwargs):
            calls.append(args)
            return subprocess.CompletedProcess(args, 0, stdout=self.LPSTAT_OUTPUT, stderr="")

        with patch("claude_receipts.printer.connection.subprocess.run", side_effect=run):
            with pytest.raises(DestinationNotConfiguredError) as exc_info:
                CUPSPrinter("-oraw").send(b"data")

        assert calls == [["lpstat", "-p"]]
        assert exc_info.value.alternatives == ["Office-Printer", "Receipt_TM_T88V"]
        assert not os.path.exists(spool_paths[0])

    def test_unknown_destination_without_lpstat(self, spool_paths):
        with patch("claude_receipts.printer.connection.subprocess.run",
                   side_effect=FileNotFoundError("lpstat")):
            with pytest.raises(DestinationNotConfiguredError) as exc_info:
                CUPSPrinter("Nope").send(b"data")
        assert exc_info.value.alternatives == []
        assert "No printers are configured" in str(exc_info.value)
        assert not os.path.exists(spool_paths[0])

    def test_submits_raw_job(self, spool_paths):
        submitted = {}

        def run(args, **kwargs):
            if args[0] == "lp":
                submitted["args"] = args
                with open(args[-1], "rb") as f:
                    submitted["data"] = f.read()
            return subprocess.CompletedProcess(args, 0, stdout="", stderr="")

        with patch("claude_receipts.printer.connection.subprocess.run", side_effect=run):
            CUPSPrinter("Office-Printer").send(b"\x1b@job")

        assert submitted["args"][:5] == ["lp", "-d", "Office-Printer", "-o", "raw"]
        assert submitted["data"] == b"\x1b@job"
        assert os.path.basename(spool_paths[0]).startswith("claude-receipt-")
        assert not os.path.exists(spool_paths[0])

    def test_submission_failure(self, spool_paths):
        def run(args, **kwargs):
            if args[0] == "lp":
                raise subprocess.CalledProcessError(1, args, stderr="lp: printer is disabled\n")
            return subprocess.CompletedProcess(args, 0, stdout="", stderr="")

        with patch("claude_receipts.printer.connection.subprocess.run", side_effect=run):
            with pytest.raises(SubmissionFailedError) as exc_info:
                CUPSPrinter("Office-Printer").send(b"data")

        assert exc_info.value.detail == "lp: printer is disabled"
        assert not os.path.exists(spool_paths[0])

    def test_status_query_has_timeout(self, spool_paths):
        seen = {}

        def run(args, **kwargs):
            if args[0] == "lpstat":
                seen["timeout"] = kwargs.get("timeout")
            return subprocess.CompletedProcess(args, 0, stdout="", stderr="")

        with patch("claude_receipts.printer.connection.subprocess.run", side_effect=run):
            CUPSPrinter("Office-Printer", timeout=3).send(b"data")
        assert seen["timeout"] == 3
