"""Branded QR code rendering.

``render_qr`` is a pure function: it takes the URL, the render options and an
already-loaded logo image and returns PNG bytes. All file I/O (reading the
branding logo) happens once, up front, in ``load_logo``.

Symbols are always encoded at error-correction level H. When a logo is
requested the symbol is at least ``MIN_LOGO_VERSION`` so there is room for
it, and the logo sits on a white plate of whole modules in the centre of the
symbol. The plate size is derived from the symbol itself:

- it never touches finder, separator, timing, format, version or corner
  alignment modules;
- the codewords it overwrites stay within ``ECC_BUDGET`` of what each
  Reed-Solomon block can correct;
- it never covers more than ``LOGO_MAX_AREA_RATIO`` of the symbol area.

A requested logo larger than that is shrunk (clamped), never drawn over data
the decoder cannot recover.
"""

from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import qrcode
from PIL import Image, UnidentifiedImageError
from qrcode.base import rs_blocks
from qrcode.constants import ERROR_CORRECT_H
from qrcode.exceptions import DataOverflowError
from qrcode.util import pattern_position

from app.core.errors import RenderAppError, ValidationAppError

logger = logging.getLogger(__name__)

DEFAULT_QR_SIZE = 512
DEFAULT_BORDER = 4
DEFAULT_LOGO_SCALE = 0.20
LOGO_MAX_AREA_RATIO = 0.20

# Version 6 (41 modules) leaves a usable centre for the default logo scale.
MIN_LOGO_VERSION = 6
# Share of each block's correction capacity the plate may consume; the rest
# is left for print, camera and sampling noise.
ECC_BUDGET = 0.5

SVG_RASTER_LONG_SIDE = 200
SUPPORTED_LOGO_FORMATS = frozenset({"PNG", "JPEG", "GIF", "WEBP", "BMP"})


def symbol_modules(version: int) -> int:
    """Width of a symbol of ``version`` in modules, quiet zone excluded."""
    return 17 + 4 * version


def function_module_mask(version: int) -> list[list[bool]]:
    """Modules reserved for function patterns (True) in a symbol of ``version``.

    Covers finder patterns with separators and format information, timing
    patterns, alignment patterns and, from version 7, version information.
    """
    n = symbol_modules(version)
    mask = [[False] * n for _ in range(n)]

    def mark(row: int, col: int, height: int, width: int) -> None:
        for r in range(max(row, 0), min(row + height, n)):
            for c in range(max(col, 0), min(col + width, n)):
                mask[r][c] = True

    mark(0, 0, 9, 9)
    mark(0, n - 8, 9, 8)
    mark(n - 8, 0, 8, 9)

    positions = pattern_position(version)
    if positions:
        first, last = positions[0], positions[-1]
        for r in positions:
            for c in positions:
                if (r, c) in ((first, first), (first, last), (last, first)):
                    continue
                mark(r - 2, c - 2, 5, 5)

    mark(6, 0, 1, n)
    mark(0, 6, n, 1)

    if version >= 7:
        mark(0, n - 11, 6, 3)
        mark(n - 11, 0, 3, 6)
    return mask


def codeword_layout(version: int) -> tuple[list[list[int]], list[int], list[int]]:
    """Map every module of an ECC-H symbol to the codeword stored in it.

    Returns:
        (owner, block_of, correctable): ``owner[r][c]`` is the index of the
        codeword in the interleaved stream, or -1 for function and remainder
        modules; ``block_of[i]`` is the Reed-Solomon block of codeword ``i``;
        ``correctable[b]`` is how many codeword errors block ``b`` can fix.
    """
    blocks = rs_blocks(version, ERROR_CORRECT_H)
    data_counts = [b.data_count for b in blocks]
    ec_counts = [b.total_count - b.data_count for b in blocks]

    block_of: list[int] = []
    for counts in (data_counts, ec_counts):
        for i in range(max(counts)):
            block_of.extend(idx for idx, count in enumerate(counts) if i < count)

    function = function_module_mask(version)
    n = len(function)
    owner = [[-1] * n for _ in range(n)]
    total_bits = len(block_of) * 8
    bit = 0
    # Two-module columns, right to left, alternating upwards and downwards;
    # the vertical timing column is skipped.
    for right in range(n - 1, 0, -2):
        if right <= 6:
            right -= 1
        upward = ((right + 1) & 2) == 0
        for step in range(n):
            row = n - 1 - step if upward else step
            for col in (right, right - 1):
                if not function[row][col] and bit < total_bits:
                    owner[row][col] = bit >> 3
                    bit += 1

    return owner, block_of, [ec // 2 for ec in ec_counts]


@lru_cache(maxsize=None)
def max_plate_half(version: int) -> int:
    """Largest half-width ``h`` of a centred ``(2h+1)``-module plate.

    The plate stays clear of function patterns, within ``ECC_BUDGET`` of every
    block's correction capacity and within ``LOGO_MAX_AREA_RATIO`` of the
    symbol area. Returns 0 when not even a 3-module plate fits.
    """
    owner, block_of, correctable = codeword_layout(version)
    n = len(owner)
    centre = n // 2
    allowed = [math.floor(c * ECC_BUDGET) for c in correctable]
    damaged = [0] * len(correctable)
    hit: set[int] = set()

    # Keep off row/column 8 and the bottom-right alignment pattern.
    geometric_limit = centre - 9
    best = 0
    for half in range(0, geometric_limit + 1):
        if (2 * half + 1) ** 2 > LOGO_MAX_AREA_RATIO * n * n:
            break
        for r in range(centre - half, centre + half + 1):
            for c in range(centre - half, centre + half + 1):
                if max(abs(r - centre), abs(c - centre)) != half:
                    continue
                codeword = owner[r][c]
                if codeword >= 0 and codeword not in hit:
                    hit.add(codeword)
                    damaged[block_of[codeword]] += 1
        if any(d > a for d, a in zip(damaged, allowed)):
            break
        best = half
    return best


@dataclass(frozen=True)
class LogoPlacement:
    """Geometry of the white plate (in modules) and the logo (in pixels).

    Attributes:
        plate_modules: Side of the centred plate, an odd number of modules.
        width: Logo width in pixels.
        height: Logo height in pixels.
        clamped: True if the requested scale did not fit the symbol.
    """

    plate_modules: int
    width: int
    height: int
    clamped: bool


def compute_logo_placement(
    *,
    version: int,
    size: int,
    border: int,
    logo_size: tuple[int, int],
    logo_scale: float,
) -> LogoPlacement | None:
    """Size a logo for a symbol without exceeding its error-correction budget.

    Args:
        version: QR version of the encoded symbol.
        size: Output image width in pixels, quiet zone included.
        border: Quiet zone width in modules.
        logo_size: Source logo (width, height).
        logo_scale: Requested logo long side as a fraction of the symbol width.

    Returns:
        LogoPlacement, or None when the symbol has no room for a logo.
    """
    src_w, src_h = logo_size
    if src_w < 1 or src_h < 1:
        raise RenderAppError(code="logo_invalid", message="Logo image is empty")

    n = symbol_modules(version)
    module_px = size / (n + 2 * border)
    limit_half = max_plate_half(version)

    # Smallest odd plate holding the requested logo plus one module of padding.
    requested_modules = logo_scale * n
    wanted_half = max(1, math.ceil((requested_modules + 1) / 2))
    half = min(wanted_half, limit_half)
    if half < 2:
        return None

    long_side = max(src_w, src_h)
    inner_px = math.floor((2 * half - 1) * module_px) - 2
    # Never upscale the source logo.
    target = min(requested_modules * module_px, inner_px, long_side)
    if target < 1:
        return None

    width = max(1, math.floor(target * src_w / long_side))
    height = max(1, math.floor(target * src_h / long_side))
    return LogoPlacement(
        plate_modules=2 * half + 1,
        width=width,
        height=height,
        clamped=wanted_half > limit_half,
    )


def _encode(url: str, border: int, min_version: int = 1) -> qrcode.QRCode:
    """Encode ``url`` at ECC level H in the smallest version >= ``min_version``."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_H,
        box_size=1,
        border=border,
    )
    qr.add_data(url)
    try:
        qr.make(fit=True)
        if qr.version < min_version:
            qr = qrcode.QRCode(
                version=min_version,
                error_correction=ERROR_CORRECT_H,
                box_size=1,
                border=border,
            )
            qr.add_data(url)
            qr.make(fit=False)
    except DataOverflowError as exc:
        raise ValidationAppError(
            code="url_too_long_for_qr",
            message="URL is too long to encode as a QR code",
            details={"field": "url"},
        ) from exc
    return qr


def _clear_plate(matrix: list[list[bool]], plate_modules: int) -> None:
    centre = len(matrix) // 2
    half = plate_modules // 2
    for r in range(centre - half, centre + half + 1):
        for c in range(centre - half, centre + half + 1):
            matrix[r][c] = False


def _paste_logo(img: Image.Image, logo: Image.Image, placement: LogoPlacement) -> None:
    scaled = logo.convert("RGBA").resize(
        (placement.width, placement.height),
        Image.Resampling.LANCZOS,
    )
    x = (img.width - placement.width) // 2
    y = (img.height - placement.height) // 2
    img.paste(scaled, (x, y), mask=scaled.getchannel("A"))


def render_qr(
    url: str,
    *,
    size: int = DEFAULT_QR_SIZE,
    logo: Image.Image | None = None,
    logo_scale: float = DEFAULT_LOGO_SCALE,
    border: int = DEFAULT_BORDER,
) -> bytes:
    """Render ``url`` as a PNG QR code, optionally branded with ``logo``.

    Args:
        url: Content to encode.
        size: Output width and height in pixels.
        logo: Preloaded logo image, or None for a plain code.
        logo_scale: Requested logo long side relative to the symbol width;
            clamped to what the symbol can tolerate.
        border: Quiet zone width in modules.

    Returns:
        PNG-encoded image bytes.

    Raises:
        ValidationAppError: If ``url`` does not fit in a QR symbol.
        RenderAppError: If the image cannot be composed or encoded.
    """
    if size < 1:
        raise ValueError("size must be >= 1")
    if logo_scale <= 0:
        raise ValueError("logo_scale must be > 0")

    qr = _encode(url, border, MIN_LOGO_VERSION if logo is not None else 1)
    matrix = [list(row) for row in qr.get_matrix()]
    total = len(matrix)
    if size < total:
        raise ValidationAppError(
            code="qr_size_too_small",
            message=f"QR size {size}px cannot fit a {total}-module symbol",
            details={"limit": total},
        )

    placement = None
    if logo is not None:
        placement = compute_logo_placement(
            version=qr.version,
            size=size,
            border=border,
            logo_size=logo.size,
            logo_scale=logo_scale,
        )
        if placement is None:
            logger.warning("qr.logo_skipped", extra={"version": qr.version, "size": size})
        else:
            if placement.clamped:
                logger.warning(
                    "qr.logo_clamped",
                    extra={
                        "requested_scale": logo_scale,
                        "version": qr.version,
                        "plate_modules": placement.plate_modules,
                        "logo_width": placement.width,
                        "logo_height": placement.height,
                    },
                )
            _clear_plate(matrix, placement.plate_modules)

    base = Image.new("L", (total, total), 255)
    base.putdata([0 if cell else 255 for row in matrix for cell in row])
    img = base.resize((size, size), Image.Resampling.NEAREST).convert("RGB")

    if placement is not None:
        try:
            _paste_logo(img, logo, placement)
        except (OSError, ValueError) as exc:
            raise RenderAppError(
                code="logo_composite_failed",
                message="Failed to composite branding logo",
            ) from exc

    buffer = io.BytesIO()
    try:
        img.save(buffer, format="PNG")
    except OSError as exc:
        raise RenderAppError(code="png_encode_failed", message="Failed to encode PNG") from exc
    return buffer.getvalue()


def _rasterize_svg(data: bytes, logo_path: Path) -> Image.Image:
    """Render SVG ``data`` on white with its long side at ``SVG_RASTER_LONG_SIDE``."""
    try:
        import cairosvg
    except (ImportError, OSError) as exc:
        raise RenderAppError(
            code="svg_support_unavailable",
            message="SVG logos need CairoSVG and the cairo library",
            details={"path": str(logo_path)},
        ) from exc

    try:
        with Image.open(io.BytesIO(cairosvg.svg2png(bytestring=data))) as native:
            long_side = max(native.size)
        png = cairosvg.svg2png(
            bytestring=data,
            scale=SVG_RASTER_LONG_SIDE / long_side,
            background_color="white",
        )
        with Image.open(io.BytesIO(png)) as rendered:
            rendered.load()
            return rendered.convert("RGBA")
    except (ValueError, SyntaxError, OSError, ZeroDivisionError) as exc:
        raise RenderAppError(
            code="logo_unreadable",
            message="Branding SVG logo could not be rendered",
            details={"path": str(logo_path)},
        ) from exc


def load_logo(path: str | Path) -> Image.Image:
    """Read a branding logo from disk.

    Args:
        path: SVG, PNG, JPEG, GIF, WebP or BMP file. SVGs are rasterised on
            a white background with a 200 px long side.

    Returns:
        Fully loaded RGBA image, safe to share across threads read-only.

    Raises:
        RenderAppError: If the file is missing, unreadable or unsupported.
    """
    logo_path = Path(path)

    if logo_path.suffix.lower() == ".svg":
        try:
            data = logo_path.read_bytes()
        except FileNotFoundError as exc:
            raise RenderAppError(
                code="logo_not_found",
                message="Branding logo file does not exist",
                details={"path": str(logo_path)},
            ) from exc
        except OSError as exc:
            raise RenderAppError(
                code="logo_unreadable",
                message="Branding logo could not be read",
                details={"path": str(logo_path)},
            ) from exc
        logo = _rasterize_svg(data, logo_path)
        fmt = "SVG"
    else:
        try:
            with Image.open(logo_path) as opened:
                fmt = opened.format
                opened.load()
                logo = opened.convert("RGBA")
        except FileNotFoundError as exc:
            raise RenderAppError(
                code="logo_not_found",
                message="Branding logo file does not exist",
                details={"path": str(logo_path)},
            ) from exc
        except (UnidentifiedImageError, OSError) as exc:
            raise RenderAppError(
                code="logo_unreadable",
                message="Branding logo could not be read",
                details={"path": str(logo_path)},
            ) from exc

        if fmt not in SUPPORTED_LOGO_FORMATS:
            raise RenderAppError(
                code="logo_unsupported_format",
                message=f"Unsupported logo format: {fmt}",
                details={"path": str(logo_path), "allowed": sorted(SUPPORTED_LOGO_FORMATS | {"SVG"})},
            )

    logger.info(
        "qr.logo_loaded",
        extra={"path": str(logo_path), "format": fmt, "width": logo.width, "height": logo.height},
    )
    return logo


class QRRenderer:
    """Renders QR codes with the configured size and branding.

    Holds only immutable configuration and a preloaded logo, so a single
    instance can serve any number of concurrent requests.
    """

    def __init__(
        self,
        *,
        size: int = DEFAULT_QR_SIZE,
        logo: Image.Image | None = None,
        logo_scale: float = DEFAULT_LOGO_SCALE,
        border: int = DEFAULT_BORDER,
    ) -> None:
        self.size = size
        self.logo = logo
        self.logo_scale = logo_scale
        self.border = border

    @classmethod
    def from_logo_path(
        cls,
        logo_path: str | None,
        *,
        size: int = DEFAULT_QR_SIZE,
        logo_scale: float = DEFAULT_LOGO_SCALE,
    ) -> "QRRenderer":
        logo = load_logo(logo_path) if logo_path else None
        return cls(size=size, logo=logo, logo_scale=logo_scale)

    def render(self, url: str) -> bytes:
        return render_qr(
            url,
            size=self.size,
            logo=self.logo,
            logo_scale=self.logo_scale,
            border=self.border,
        )
