"""ESC/POS command builder for thermal printers."""
from claude_receipts.formatting import two_column


class ESCPOSBuilder:
    """Append-only builder for ESC/POS printer commands.

    Every method appends to the internal buffer and returns the builder so
    calls can be chained. Nothing is sent anywhere; ``build()`` returns the
    finished command stream.
    """

    # ESC/POS Command Constants
    ESC = b'\x1b'
    GS = b'\x1d'
    LF = b'\n'

    # Initialize printer
    INIT = ESC + b'\x40'  # ESC @

    # Text formatting
    BOLD_ON = ESC + b'\x45\x01'   # ESC E 1
    BOLD_OFF = ESC + b'\x45\x00'  # ESC E 0

    # ESC ! n print mode bits
    MODE_DOUBLE_HEIGHT = 0x10
    MODE_DOUBLE_WIDTH = 0x20
    MODE_DOUBLE_SIZE = MODE_DOUBLE_HEIGHT | MODE_DOUBLE_WIDTH
    MODE_NORMAL = 0x00

    # Alignment
    ALIGN_LEFT = ESC + b'\x61\x00'    # ESC a 0
    ALIGN_CENTER = ESC + b'\x61\x01'  # ESC a 1
    ALIGN_RIGHT = ESC + b'\x61\x02'   # ESC a 2

    # Paper control
    CUT_PARTIAL_FEED = GS + b'\x56\x42\x03'  # GS V 66 3 - feed 3 units, partial cut

    # QR error correction levels (GS ( k function 169)
    QR_ERROR_CORRECTION = {"L": 48, "M": 49, "Q": 50, "H": 51}

    # CP437 block characters
    FULL_BLOCK = 0xdb   # █
    UPPER_HALF = 0xdf   # ▀
    LEFT_HALF = 0xdd    # ▌
    RIGHT_HALF = 0xde   # ▐

    def __init__(self, width: int = 40):
        """Initialize builder.

        Args:
            width: Character width per line (40 for 80mm paper, Font A, with margin)
        """
        self.width = width
        self._buffer = bytearray()

    def raw(self, *values: int) -> "ESCPOSBuilder":
        """Append raw byte values."""
        self._buffer.extend(bytes(values))
        return self

    # Printer setup

    def init(self) -> "ESCPOSBuilder":
        """Initialize the printer (ESC @)."""
        self._buffer.extend(self.INIT)
        return self

    def left_margin(self, dots: int) -> "ESCPOSBuilder":
        """Set the left margin in motion units (GS L nL nH)."""
        self._buffer.extend(self.GS + b'\x4c')
        return self.raw(dots & 0xff, (dots >> 8) & 0xff)

    # Text formatting methods

    def text(self, content: str) -> "ESCPOSBuilder":
        """Add plain text."""
        self._buffer.extend(content.encode("cp437", errors="replace"))
        return self

    def line(self, content: str = "") -> "ESCPOSBuilder":
        """Add text followed by a line feed."""
        return self.text(content).newline()

    def newline(self, count: int = 1) -> "ESCPOSBuilder":
        """Add newline(s)."""
        self._buffer.extend(self.LF * count)
        return self

    def bold(self, on: bool = True) -> "ESCPOSBuilder":
        """Set bold mode."""
        self._buffer.extend(self.BOLD_ON if on else self.BOLD_OFF)
        return self

    def print_mode(self, mode: int) -> "ESCPOSBuilder":
        """Select print mode (ESC ! n) from the ``MODE_*`` bit flags."""
        self._buffer.extend(self.ESC + b'\x21')
        return self.raw(mode & 0xff)

    def double_size(self) -> "ESCPOSBuilder":
        """Set double height and width."""
        return self.print_mode(self.MODE_DOUBLE_SIZE)

    def normal_size(self) -> "ESCPOSBuilder":
        """Reset to normal text size."""
        return self.print_mode(self.MODE_NORMAL)

    # Alignment methods

    def align_left(self) -> "ESCPOSBuilder":
        """Set left alignment."""
        self._buffer.extend(self.ALIGN_LEFT)
        return self

    def align_center(self) -> "ESCPOSBuilder":
        """Set center alignment."""
        self._buffer.extend(self.ALIGN_CENTER)
        return self

    def align_right(self) -> "ESCPOSBuilder":
        """Set right alignment."""
        self._buffer.extend(self.ALIGN_RIGHT)
        return self

    # Line formatting

    def rule(self, char: str = "=") -> "ESCPOSBuilder":
        """Print a horizontal line across the full width."""
        return self.line(char * self.width)

    def left_right(self, left: str, right: str) -> "ESCPOSBuilder":
        """Print a two-column row: left-aligned label, right-aligned value."""
        return self.line(two_column(left, right, self.width))

    # Graphics

    def logo(self) -> "ESCPOSBuilder":
        """Print the five-row block character logo, centered."""
        blk, uph, lfh, rhf = self.FULL_BLOCK, self.UPPER_HALF, self.LEFT_HALF, self.RIGHT_HALF
        self.align_center()
        # Head
        self.raw(rhf, *[blk] * 10, lfh).newline()
        # Eyes
        self.raw(rhf, blk, blk, 0x20, blk, blk, blk, blk, 0x20, blk, blk, lfh).newline()
        # Arms
        self.raw(rhf, *[blk] * 14, lfh).newline()
        # Body
        self.raw(rhf, *[blk] * 10, lfh).newline()
        # Legs
        self.raw(uph, 0x20, uph, 0x20, 0x20, uph, 0x20, uph).newline()
        return self

    def qr(self, data: str, size: int = 6, error_correction: str = "M") -> "ESCPOSBuilder":
        """Print a QR code using the printer's native model 2 encoder.

        Args:
            data: QR code content
            size: Module (cell) size in dots
            error_correction: Error correction level (L, M, Q, H)
        """
        payload = data.encode("utf-8")
        level = self.QR_ERROR_CORRECTION.get(error_correction.upper(), 49)
        prefix = self.GS + b'\x28\x6b'  # GS ( k

        # Function 165 - select model 2
        self._buffer.extend(prefix)
        self.raw(4, 0, 0x31, 0x41, 50, 0)
        # Function 167 - module size
        self._buffer.extend(prefix)
        self.raw(3, 0, 0x31, 0x43, size & 0xff)
        # Function 169 - error correction level
        self._buffer.extend(prefix)
        self.raw(3, 0, 0x31, 0x45, level)
        # Function 180 - store data; length counts the 3 function bytes
        store_len = len(payload) + 3
        self._buffer.extend(prefix)
        self.raw(store_len & 0xff, (store_len >> 8) & 0xff, 0x31, 0x50, 0x30)
        self._buffer.extend(payload)
        # Function 181 - print stored symbol
        self._buffer.extend(prefix)
        self.raw(3, 0, 0x31, 0x51, 0x30)
        return self

    # Paper control

    def cut(self) -> "ESCPOSBuilder":
        """Feed past the cutter and make a partial cut."""
        self._buffer.extend(self.CUT_PARTIAL_FEED)
        return self

    # Build output

    def build(self) -> bytes:
        """Build and return the command buffer."""
        return bytes(self._buffer)

    def __bytes__(self) -> bytes:
        """Allow bytes() conversion."""
        return self.build()

    def __len__(self) -> int:
        """Return buffer length."""
        return len(self._buffer)
