"""Command-line interface: generate receipts, manage settings, test printers."""
import argparse
import json
import logging
import os
import sys
import webbrowser
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from claude_receipts.printer import ESCPOSBuilder, PrinterError, ReceiptRenderer, create_printer
from claude_receipts.receipt import ReceiptContent
from claude_receipts.settings import SettingsManager
from claude_receipts.usage import (
    UsageError,
    fetch_session_usage,
    parse_transcript,
    transcript_path_for,
)

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("console", "html", "printer")
DEFAULT_LOCATION = "The Cloud"


def parse_formats(values: Optional[List[str]]) -> List[str]:
    """Flatten repeated and comma-separated ``--output`` values."""
    formats = []
    for value in values or []:
        for name in value.split(","):
            name = name.strip()
            if not name:
                continue
            if name not in OUTPUT_FORMATS:
                raise argparse.ArgumentTypeError(
                    f'Invalid output format "{name}". Valid formats: {", ".join(OUTPUT_FORMATS)}'
                )
            if name not in formats:
                formats.append(name)
    return formats


def html_output_path(content: ReceiptContent, output_dir: Optional[str] = None) -> str:
    output_dir = output_dir or os.path.join(os.path.expanduser("~"), ".claude-receipts", "projects")
    return os.path.join(output_dir, f"{content.session}.html")


def save_html(content: ReceiptContent, output_dir: Optional[str] = None) -> str:
    """Write the HTML receipt and return its path."""
    path = html_output_path(content, output_dir)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(ReceiptRenderer().render_html(content))
    return path


def send_to_printer(content: ReceiptContent, destination: Optional[str]) -> str:
    if not destination:
        raise PrinterError(
            "No printer configured. Use --printer or: claude-receipts config --set printer=<destination>"
        )
    create_printer(destination).send(ReceiptRenderer().render(content))
    return destination


def generate_outputs(content: ReceiptContent, formats: List[str], printer: Optional[str] = None,
                     output_dir: Optional[str] = None) -> Dict[str, object]:
    """Produce every requested format concurrently.

    Returns a mapping of format to its result: the console text, the HTML
    path, the printer destination, or the exception that format raised. A
    failure in one format does not stop the others.
    """
    tasks = {
        "console": lambda: ReceiptRenderer().render_preview(content),
        "html": lambda: save_html(content, output_dir),
        "printer": lambda: send_to_printer(content, printer),
    }
    results = {}
    with ThreadPoolExecutor(max_workers=len(formats) or 1) as pool:
        futures = {name: pool.submit(tasks[name]) for name in formats}
        for name, future in futures.items():
            try:
                results[name] = future.result()
            except (PrinterError, ValueError, OSError) as e:
                logger.warning("%s output failed: %s", name, e)
                results[name] = e
    return results


def read_hook_payload() -> Optional[dict]:
    """Read the SessionEnd hook JSON from stdin, if any."""
    if sys.stdin.isatty():
        return None
    try:
        payload = json.loads(sys.stdin.read())
    except (ValueError, OSError):
        return None
    return payload if isinstance(payload, dict) else None


def cmd_generate(args) -> int:
    settings = SettingsManager().load()
    hook = read_hook_payload() if args.hook else None

    try:
        formats = parse_formats(args.output) or (["html"] if hook else ["console"])
    except argparse.ArgumentTypeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        session = fetch_session_usage(args.session or (hook or {}).get("session_id"))
        transcript_path = args.transcript or (hook or {}).get("transcript_path") or transcript_path_for(session)
        transcript = parse_transcript(transcript_path)
    except UsageError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    location = args.location or settings.get("location") or DEFAULT_LOCATION
    content = ReceiptContent.from_usage(session, transcript, location, settings.get("timezone"))

    results = generate_outputs(content, formats, printer=args.printer or settings.get("printer"))

    failed = False
    for name in formats:
        result = results[name]
        if isinstance(result, Exception):
            failed = True
            print(f"✗ {name}: Error: {result}", file=sys.stderr)
        elif name == "console":
            print(result)
        elif name == "html":
            print(f"✓ Receipt saved to: {result}")
            if hook:
                webbrowser.open(f"file://{result}")
        elif name == "printer":
            print(f"✓ Receipt sent to printer: {result}")
    return 1 if failed else 0


def cmd_config(args) -> int:
    manager = SettingsManager()

    if args.reset:
        manager.reset()
        print("✓ Configuration reset to defaults")
        return 0

    if args.set:
        key, _, value = args.set.partition("=")
        if not key.strip() or not value.strip():
            print("Error: Invalid format. Use: --set key=value", file=sys.stderr)
            return 1
        try:
            manager.set(key.strip(), value.strip())
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        print(f"✓ Set {key.strip()} = {value.strip()}")
        return 0

    settings = manager.load()
    print("Claude Receipts Configuration")
    print(f"File: {manager.path}\n")
    print(f"  Version:  {settings.get('version')}")
    print(f"  Location: {settings.get('location') or '(auto)'}")
    print(f"  Timezone: {settings.get('timezone') or '(system default)'}")
    print(f"  Printer:  {settings.get('printer') or '(not set)'}")
    return 0


def build_test_page(destination: str) -> bytes:
    """A short page confirming the printer is reachable."""
    return (
        ESCPOSBuilder()
        .init()
        .align_center()
        .line("=== PRINTER TEST ===")
        .line()
        .align_left()
        .line(f"Destination: {destination}")
        .line("Status: OK")
        .line()
        .cut()
        .build()
    )


def cmd_test_printer(args) -> int:
    print(f"Testing printer {args.destination}...")
    try:
        create_printer(args.destination).send(build_test_page(args.destination))
    except (PrinterError, ValueError) as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1
    print("✓ Test page sent")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="claude-receipts",
        description="Generate receipts for your Claude Code sessions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  claude-receipts generate
  claude-receipts generate -o html,printer -p tcp://192.168.1.100
  claude-receipts generate -o printer -p usb:04b8:0202
  claude-receipts config --set printer=Office-Printer
  claude-receipts test-printer usb
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    gen_parser = subparsers.add_parser("generate", help="Generate a receipt for a session")
    gen_parser.add_argument("-s", "--session", help="Specific session ID")
    gen_parser.add_argument("-o", "--output", action="append",
                            help="Output format(s): console, html, printer (comma-separated or repeated)")
    gen_parser.add_argument("-l", "--location", help="Override location")
    gen_parser.add_argument("-p", "--printer",
                            help='Printer: "usb", "usb:VID:PID", "tcp://host:port", or CUPS name')
    gen_parser.add_argument("--transcript", help="Path to the session transcript (JSONL)")
    gen_parser.add_argument("--hook", action="store_true",
                            help="Read SessionEnd hook data from stdin")
    gen_parser.set_defaults(func=cmd_generate)

    config_parser = subparsers.add_parser("config", help="Manage configuration")
    group = config_parser.add_mutually_exclusive_group()
    group.add_argument("--show", action="store_true", help="Display current configuration")
    group.add_argument("--set", metavar="KEY=VALUE", help="Set a configuration value")
    group.add_argument("--reset", action="store_true", help="Reset configuration to defaults")
    config_parser.set_defaults(func=cmd_config)

    test_parser = subparsers.add_parser("test-printer", help="Send a test page to a printer")
    test_parser.add_argument("destination", help='"usb", "usb:VID:PID", "tcp://host:port", or CUPS name')
    test_parser.set_defaults(func=cmd_test_printer)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        # generate is the default command
        args = parser.parse_args(argv + ["generate"])

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s - %(name)s - %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
