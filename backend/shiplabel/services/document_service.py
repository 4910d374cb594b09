"""
ShipLabel Backend - Label Document Composer
=============================================

What:  Lays out the delivery label PDF and hands it to the response in chunks.
How:   reportlab's canvas draws a single page in a worker thread; a chunking
       sink passes the serialized bytes to the event loop through an
       asyncio.Queue.
Who:   LabelDocumentComposer is owned by LabelService; DocumentStream is
       created once per request.

Buffering:
    reportlab keeps the page in memory and serializes it in Canvas.save(),
    which makes exactly one write() of the finished PDF (tens of KB for a
    label with a barcode). The first chunk is therefore only available once
    the whole document exists; the sink slices that one write into
    chunk_size pieces. A composer that writes as it goes is streamed
    write by write.

Page Layout (top to bottom, 50pt margins):
    ┌───────────────────────────────────────────┐
    │              DELIVERY LABEL               │  20pt, centered
    │                                           │
    │  From:                                    │  14pt, underlined
    │  <sender name>                            │  12pt
    │  <sender address lines>                   │
    │                                           │
    │  To:                                      │
    │  <receiver name>                          │
    │  <receiver address lines>                 │
    │                                           │
    │  Delivery ID: <identifier>                │  12pt
    │          ║│║║│║│║║║│║│║║│║                │  fit in 300x100pt, centered
    │              <identifier>                 │
    └───────────────────────────────────────────┘

When no usable barcode image exists, a centered placeholder string is
drawn in the barcode slot instead of failing the document.
"""

import asyncio
import io
import logging
from typing import Optional, Union

from reportlab.lib.pagesizes import LETTER
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from shiplabel.exceptions import StreamError
from shiplabel.schemas.label import LabelRequest

logger = logging.getLogger(__name__)

TITLE = "DELIVERY LABEL"
BARCODE_MISSING = "Barcode not available"
BARCODE_FAILED = "Error generating barcode"

# What: Bounding box for the barcode image, in points.
BARCODE_BOX = (300.0, 100.0)

DEFAULT_CHUNK_SIZE = 16 * 1024

TITLE_FONT = ("Helvetica-Bold", 20)
HEADING_FONT = ("Helvetica-Bold", 14)
BODY_FONT = ("Helvetica", 12)
LINE_SPACING = 1.2


class LabelDocumentComposer:
    """
    Draws one delivery label page onto any writable binary sink.

    compose() is synchronous and CPU-bound; callers on the event loop
    should go through DocumentStream, which runs it in a worker thread.
    """

    def __init__(self, compress: bool = True, margin: float = 50.0, pagesize=LETTER):
        self.compress = compress
        self.margin = margin
        self.pagesize = pagesize

    def compose(
        self,
        label: LabelRequest,
        delivery_id: str,
        sink,
        barcode_png: Optional[bytes] = None,
        placeholder: str = BARCODE_MISSING,
    ) -> None:
        """
        Write the complete PDF for one label to `sink`.

        Nothing reaches the sink until the page is finished: reportlab
        serializes the document in save() and writes it in one call.

        Args:
            label:       Validated sender/receiver details.
            delivery_id: Identifier printed under the addresses.
            sink:        Object with a write(bytes) method.
            barcode_png: Rendered barcode, or None when rendering failed.
            placeholder: Text drawn when barcode_png is None or unreadable.
        """
        width, height = self.pagesize
        pdf = canvas.Canvas(
            sink,
            pagesize=self.pagesize,
            pageCompression=1 if self.compress else 0,
        )
        pdf.setTitle(f"Delivery Label {delivery_id}")
        pdf.setCreator("ShipLabel")

        y = height - self.margin

        # ── Title ─────────────────────────────────────────────────────────
        y -= TITLE_FONT[1]
        pdf.setFont(*TITLE_FONT)
        pdf.drawCentredString(width / 2, y, TITLE)
        y -= TITLE_FONT[1] * 0.5 + BODY_FONT[1]

        # ── Sender / Receiver ─────────────────────────────────────────────
        y = self._party_block(pdf, y, "From:", label.sender_name, label.sender_address)
        y -= BODY_FONT[1]
        y = self._party_block(pdf, y, "To:", label.receiver_name, label.receiver_address)
        y -= BODY_FONT[1]

        # ── Identifier + Barcode ──────────────────────────────────────────
        y = self._text(pdf, y, f"Delivery ID: {delivery_id}", BODY_FONT)
        y -= BODY_FONT[1] * 0.5
        self._barcode(pdf, y, delivery_id, barcode_png, placeholder)

        pdf.showPage()
        pdf.save()

    # ── Drawing helpers ───────────────────────────────────────────────────

    def _text(self, pdf: canvas.Canvas, y: float, text: str, font) -> float:
        """Draw left-aligned text, wrapping at the right margin. Returns the new y."""
        name, size = font
        pdf.setFont(name, size)
        max_width = self.pagesize[0] - 2 * self.margin
        for raw_line in text.splitlines() or [""]:
            for line in simpleSplit(raw_line, name, size, max_width) or [""]:
                y -= size * LINE_SPACING
                pdf.drawString(self.margin, y, line)
        return y

    def _party_block(
        self, pdf: canvas.Canvas, y: float, heading: str, name: str, address: str
    ) -> float:
        font_name, size = HEADING_FONT
        y -= size * LINE_SPACING
        pdf.setFont(font_name, size)
        pdf.drawString(self.margin, y, heading)
        underline_y = y - 2
        pdf.setLineWidth(0.8)
        pdf.line(
            self.margin,
            underline_y,
            self.margin + pdf.stringWidth(heading, font_name, size),
            underline_y,
        )
        y = self._text(pdf, y, name, BODY_FONT)
        return self._text(pdf, y, address, BODY_FONT)

    def _barcode(
        self,
        pdf: canvas.Canvas,
        y: float,
        delivery_id: str,
        barcode_png: Optional[bytes],
        placeholder: str,
    ) -> None:
        width = self.pagesize[0]
        box_w, box_h = BARCODE_BOX

        if barcode_png:
            try:
                image = ImageReader(io.BytesIO(barcode_png))
                img_w, img_h = image.getSize()
                scale = min(box_w / img_w, box_h / img_h)
                draw_w, draw_h = img_w * scale, img_h * scale
                pdf.drawImage(
                    image,
                    (width - draw_w) / 2,
                    y - draw_h,
                    width=draw_w,
                    height=draw_h,
                )
                return
            except Exception as e:
                logger.warning(
                    "[%s] stage=compose barcode image unreadable, using placeholder: %s",
                    delivery_id,
                    e,
                )
                placeholder = BARCODE_MISSING

        pdf.setFont(*BODY_FONT)
        pdf.drawCentredString(width / 2, y - box_h / 2, placeholder)


# ══════════════════════════════════════════════════════════════════════════
# Streaming
# ══════════════════════════════════════════════════════════════════════════

_END = object()


class _Failure:
    def __init__(self, exc: BaseException):
        self.exc = exc


class _QueueSink:
    """
    Write-only file object that forwards bytes to an asyncio.Queue.

    Lives in the composer's worker thread; every hand-off goes through
    loop.call_soon_threadsafe. Writes are split into chunk_size pieces.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue, chunk_size: int):
        self._loop = loop
        self._queue = queue
        self._chunk_size = chunk_size
        self.closed = False
        self.bytes_written = 0

    def post(self, item: Union[bytes, object]) -> None:
        if self._loop.is_closed():
            self.closed = True
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, item)

    def write(self, data) -> int:
        if self.closed:
            raise StreamError(message="Document stream was closed", stage="stream")
        if isinstance(data, str):
            data = data.encode("latin-1")
        view = memoryview(data)
        for start in range(0, len(view), self._chunk_size):
            self.post(bytes(view[start:start + self._chunk_size]))
        self.bytes_written += len(view)
        return len(view)

    def flush(self) -> None:
        pass


class DocumentStream:
    """
    Chunked PDF byte stream for one label.

    The composer runs in the default executor and whatever it writes comes
    out of next_chunk() in order, at most chunk_size bytes at a time. With
    LabelDocumentComposer that is a single finished document.

    Usage:
        stream = DocumentStream(composer, label, delivery_id, barcode_png)
        stream.start()
        while (chunk := await stream.next_chunk()) is not None:
            ...
        stream.close()

    next_chunk() raises StreamError if the composer failed; everything
    written before the failure has already been delivered.
    """

    def __init__(
        self,
        composer: LabelDocumentComposer,
        label: LabelRequest,
        delivery_id: str,
        barcode_png: Optional[bytes] = None,
        placeholder: str = BARCODE_MISSING,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.composer = composer
        self.label = label
        self.delivery_id = delivery_id
        self.barcode_png = barcode_png
        self.placeholder = placeholder
        self.chunk_size = chunk_size
        self._queue: Optional[asyncio.Queue] = None
        self._sink: Optional[_QueueSink] = None
        self._worker: Optional[asyncio.Future] = None
        self._finished = False

    def start(self) -> None:
        """Begin composing in the default executor. Must run on the event loop."""
        if self._worker is not None:
            raise RuntimeError("DocumentStream already started")
        loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._sink = _QueueSink(loop, self._queue, self.chunk_size)
        self._worker = loop.run_in_executor(None, self._produce)

    def _produce(self) -> None:
        sink = self._sink
        try:
            self.composer.compose(
                self.label,
                self.delivery_id,
                sink,
                barcode_png=self.barcode_png,
                placeholder=self.placeholder,
            )
        except Exception as e:
            sink.post(_Failure(e))
            return
        sink.post(_END)

    async def next_chunk(self) -> Optional[bytes]:
        """Return the next chunk of written output, or None once the composer has returned."""
        if self._queue is None:
            raise RuntimeError("DocumentStream.start() was not called")
        if self._finished:
            return None

        item = await self._queue.get()
        if item is _END:
            self._finished = True
            return None
        if isinstance(item, _Failure):
            self._finished = True
            if isinstance(item.exc, StreamError):
                raise item.exc
            raise StreamError(
                delivery_id=self.delivery_id,
                stage="compose",
                context={"error": str(item.exc)},
            ) from item.exc
        return item

    def close(self) -> None:
        """Stop delivering chunks. A composer still running discards its output."""
        self._finished = True
        if self._sink is not None:
            self._sink.closed = True
