"""
ShipLabel Backend - Barcode Renderer
======================================

What:  Encodes a delivery identifier as a Code-128 PNG with the text printed
       centered beneath the bars.
How:   python-barcode's Code128 symbology rasterized by its Pillow-backed
       ImageWriter into an in-memory buffer.
Who:   Called by LabelService in a worker thread.
When:  Once per request, right after the identifier is minted.

Contract:
    render(text) -> bytes    PNG image data
    Raises RenderError for empty input or any library failure
    (illegal characters, writer/font errors). The renderer keeps no state
    between calls, so renders for different requests may run in parallel.
"""

import io
import logging

import barcode
from barcode.writer import ImageWriter

from shiplabel.exceptions import RenderError

logger = logging.getLogger(__name__)

SYMBOLOGY = "code128"


class BarcodeRenderer:
    """
    Stateless Code-128 renderer.

    Geometry (python-barcode ImageWriter options, millimetres):
        module_width:  width of the narrowest bar
        module_height: bar height
        font_size:     human-readable text size (points)
    """

    def __init__(
        self,
        module_width: float = 0.2,
        module_height: float = 10.0,
        font_size: int = 10,
    ):
        self.options = {
            "module_width": module_width,
            "module_height": module_height,
            "font_size": font_size,
            "text_distance": 4.0,
            "quiet_zone": 6.5,
            "write_text": True,
            "format": "PNG",
        }

    def render(self, text: str) -> bytes:
        """
        Render `text` as a Code-128 PNG.

        Args:
            text: Printable ASCII payload (the delivery identifier).

        Returns:
            PNG bytes.

        Raises:
            RenderError: text is empty or the barcode library failed.
        """
        if not text:
            raise RenderError(message="Cannot render an empty barcode")

        try:
            code = barcode.get(SYMBOLOGY, text, writer=ImageWriter())
            buffer = io.BytesIO()
            code.write(buffer, options=self.options)
        except Exception as e:
            logger.error("[%s] stage=render barcode library failed: %s", text, e)
            raise RenderError(
                delivery_id=text,
                context={"symbology": SYMBOLOGY, "error": str(e)},
            ) from e

        data = buffer.getvalue()
        if not data:
            raise RenderError(
                message="Barcode library produced no image data",
                delivery_id=text,
                context={"symbology": SYMBOLOGY},
            )
        return data
