"""
ShipLabel Backend - Label Service (Pipeline Orchestrator)
===========================================================

What:  Runs the label pipeline for one request and hands back a streamable
       PDF plus the headers that describe it.
How:   Composes the input validator, identifier generator, BarcodeRenderer,
       ArtifactStore and LabelDocumentComposer under a single deadline.
Who:   Called by POST /generate-label.
When:  Once per request; no state is shared between calls.

Orchestration Flow:
    ┌──────────┐   ┌──────────┐   ┌──────────┐   ┌──────────┐   ┌──────────┐
    │ Validate │──▶│ Mint ID  │──▶│  Render  │──▶│  Store   │──▶│ Compose  │
    │ (schema) │   │ (uuid4)  │   │ (thread) │   │ (scratch)│   │ + stream │
    └──────────┘   └──────────┘   └──────────┘   └──────────┘   └──────────┘
                                                                     │
                                                     cleanup once ◀──┘

Error Handling Strategy:
    validate  ValidationError propagates; nothing has been allocated yet.
    render    RenderError is logged and degraded to a placeholder.
    store     FileStorageError propagates (500); cleanup runs first.
    compose   A failure before the first chunk propagates as StreamError (500).
    stream    After the first chunk the status is committed: deadline expiry,
              StreamError and client disconnect are logged and end the body.
    cleanup   CleanupError is logged and never re-raised.

LabelDocumentComposer writes the finished PDF in one call, so with it every
compose failure and deadline expiry lands before the first chunk. Only a
client disconnect can interrupt the body; the mid-stream branches serve
composers that write incrementally.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Mapping, Optional

import anyio

from shiplabel.exceptions import (
    CleanupError,
    FileStorageError,
    GenerationTimeoutError,
    RenderError,
    StreamError,
)
from shiplabel.schemas.label import LabelRequest
from shiplabel.services.artifact_store import ArtifactStore
from shiplabel.services.barcode_service import BarcodeRenderer
from shiplabel.services.document_service import (
    BARCODE_FAILED,
    BARCODE_MISSING,
    DocumentStream,
    LabelDocumentComposer,
)
from shiplabel.services.identifier import new_delivery_id

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"


def label_filename(delivery_id: str) -> str:
    return f"delivery-label-{delivery_id}.pdf"


@dataclass
class LabelDocument:
    """
    A label ready to be sent.

    Attributes:
        delivery_id: Identifier printed on the label and encoded in the barcode.
        filename:    Attachment filename offered to the browser.
        body:        Async iterator of PDF bytes. Iterating it to the end (or
                     closing it) releases the barcode artifact.
    """

    delivery_id: str
    filename: str
    body: AsyncIterator[bytes]
    media_type: str = PDF_MEDIA_TYPE
    headers: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.headers.setdefault(
            "Content-Disposition", f'attachment; filename="{self.filename}"'
        )


class ArtifactCleanup:
    """
    Deletes one barcode artifact, at most once.

    run() is idempotent and shielded from cancellation, so it can be
    called from every exit path (success, failure, client disconnect)
    without deleting twice or being interrupted halfway.
    """

    def __init__(self, store: ArtifactStore, delivery_id: str):
        self.store = store
        self.delivery_id = delivery_id
        self.done = False

    async def run(self) -> None:
        if self.done:
            return
        self.done = True
        with anyio.CancelScope(shield=True):
            try:
                deleted = await self.store.delete_artifact(self.delivery_id)
            except CleanupError as e:
                logger.error(
                    "[%s] stage=cleanup %s | Context: %s",
                    self.delivery_id,
                    e.message,
                    e.context,
                )
                return
        if deleted:
            logger.debug("[%s] stage=cleanup barcode artifact deleted", self.delivery_id)


class LabelService:
    """
    Label pipeline with injected collaborators.

    Attributes:
        store:    Scratch storage for barcode artifacts.
        renderer: Code-128 renderer (blocking; run in a worker thread).
        composer: PDF page layout.
        timeout:  Seconds allowed for the whole generation, streaming included.
    """

    def __init__(
        self,
        store: ArtifactStore,
        renderer: BarcodeRenderer,
        composer: LabelDocumentComposer,
        timeout: float = 30.0,
    ):
        self.store = store
        self.renderer = renderer
        self.composer = composer
        self.timeout = timeout

    async def generate(self, payload: Mapping[str, Any]) -> LabelDocument:
        """
        Validate the form, render the barcode and start the document stream.

        Returns only once the first chunk of the PDF exists, so any failure
        up to that point still surfaces as an exception (and a 500) before
        the caller commits response headers.

        Raises:
            ValidationError:        required name missing (no resources allocated)
            FileStorageError:       barcode could not be written to scratch
            GenerationTimeoutError: deadline reached before the first chunk
            StreamError:            composer failed before producing any bytes
        """
        label = LabelRequest.from_payload(payload)

        delivery_id = new_delivery_id()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        cleanup = ArtifactCleanup(self.store, delivery_id)
        stream: Optional[DocumentStream] = None

        logger.info("[%s] generating delivery label", delivery_id)

        try:
            barcode_png, placeholder = await asyncio.wait_for(
                self._prepare_barcode(delivery_id), timeout=self.timeout
            )
            stream = DocumentStream(
                self.composer,
                label,
                delivery_id,
                barcode_png=barcode_png,
                placeholder=placeholder,
            )
            stream.start()
            first_chunk = await asyncio.wait_for(
                stream.next_chunk(), timeout=max(deadline - loop.time(), 0)
            )
        except asyncio.TimeoutError as e:
            if stream is not None:
                stream.close()
            await cleanup.run()
            logger.error(
                "[%s] stage=compose timed out after %.1fs before streaming",
                delivery_id,
                self.timeout,
            )
            raise GenerationTimeoutError(self.timeout, delivery_id=delivery_id) from e
        except BaseException:
            if stream is not None:
                stream.close()
            await cleanup.run()
            raise

        if first_chunk is None:
            await cleanup.run()
            raise StreamError(
                message="Error generating label",
                delivery_id=delivery_id,
                context={"reason": "composer produced no output"},
            )

        return LabelDocument(
            delivery_id=delivery_id,
            filename=label_filename(delivery_id),
            body=self._stream_body(delivery_id, stream, first_chunk, cleanup, deadline),
        )

    async def _prepare_barcode(self, delivery_id: str):
        """
        Render, store and read back the barcode artifact.

        Returns:
            (png_bytes or None, placeholder text for the composer)
        """
        try:
            png = await asyncio.to_thread(self.renderer.render, delivery_id)
        except RenderError as e:
            logger.warning(
                "[%s] stage=render %s, composing with placeholder | Context: %s",
                delivery_id,
                e.message,
                e.context,
            )
            return None, BARCODE_FAILED

        await self.store.write_artifact(delivery_id, png)

        try:
            stored = await self.store.read_artifact(delivery_id)
        except FileStorageError as e:
            logger.warning(
                "[%s] stage=store %s, composing with placeholder | Context: %s",
                delivery_id,
                e.message,
                e.context,
            )
            return None, BARCODE_MISSING

        if stored is None:
            logger.warning("[%s] stage=store barcode artifact missing after write", delivery_id)
            return None, BARCODE_MISSING
        return stored, BARCODE_MISSING

    async def _stream_body(
        self,
        delivery_id: str,
        stream: DocumentStream,
        first_chunk: bytes,
        cleanup: ArtifactCleanup,
        deadline: float,
    ) -> AsyncIterator[bytes]:
        """
        Yield the PDF chunk by chunk.

        Headers are already on the wire by the time anything here fails,
        so failures are logged and end the body early. The artifact is
        released in `finally` on every path, client disconnect included.
        """
        loop = asyncio.get_running_loop()
        sent = 0
        try:
            yield first_chunk
            sent += len(first_chunk)
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise asyncio.TimeoutError
                chunk = await asyncio.wait_for(stream.next_chunk(), timeout=remaining)
                if chunk is None:
                    break
                yield chunk
                sent += len(chunk)
            logger.info("[%s] delivery label streamed (%d bytes)", delivery_id, sent)
        except asyncio.TimeoutError:
            logger.error(
                "[%s] stage=stream timed out after %.1fs, closing stream at %d bytes",
                delivery_id,
                self.timeout,
                sent,
            )
        except StreamError as e:
            logger.error(
                "[%s] stage=%s %s after %d bytes, closing stream | Context: %s",
                delivery_id,
                e.stage,
                e.message,
                sent,
                e.context,
            )
        except (asyncio.CancelledError, GeneratorExit):
            logger.warning(
                "[%s] stage=stream client went away after %d bytes", delivery_id, sent
            )
            raise
        finally:
            stream.close()
            await cleanup.run()
