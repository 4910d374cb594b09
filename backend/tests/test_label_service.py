"""
ShipLabel Backend - Label Service Unit Tests
==============================================

What:  Tests for the LabelService pipeline and its artifact lifecycle.
How:   Real renderer and composer (uncompressed), in-memory scratch store,
       stub collaborators for failure injection. No HTTP involved.

What we test:
    ✅ Artifact exists while streaming and is gone once the body is consumed
    ✅ Validation failure allocates nothing
    ✅ Render failure degrades to the "Error generating barcode" placeholder
    ✅ Composer failure before the first chunk → StreamError, artifact deleted
    ✅ Deadline before streaming → GenerationTimeoutError, artifact deleted
    ✅ Deadline / composer failure mid-stream → stream ends, artifact deleted
    ✅ Client disconnect (aclose) → artifact deleted
    ✅ Cleanup failure is logged, never raised
"""

import asyncio
import logging
import time

import pytest

from shiplabel.exceptions import (
    CleanupError,
    FileStorageError,
    GenerationTimeoutError,
    RenderError,
    StreamError,
    ValidationError,
)
from shiplabel.services.artifact_store import InMemoryArtifactStore
from shiplabel.services.barcode_service import BarcodeRenderer
from shiplabel.services.document_service import BARCODE_FAILED, LabelDocumentComposer
from shiplabel.services.label_service import ArtifactCleanup, LabelService, label_filename


class FailingRenderer(BarcodeRenderer):
    def render(self, text):
        raise RenderError(delivery_id=text, context={"error": "injected"})


class SlowRenderer(BarcodeRenderer):
    def __init__(self, delay):
        super().__init__()
        self.delay = delay

    def render(self, text):
        time.sleep(self.delay)
        return super().render(text)


class BrokenComposer(LabelDocumentComposer):
    def compose(self, *args, **kwargs):
        raise RuntimeError("composer exploded")


class StallingComposer(LabelDocumentComposer):
    """Writes a first chunk, then stalls before finishing."""

    def __init__(self, delay):
        super().__init__(compress=False)
        self.delay = delay

    def compose(self, label, delivery_id, sink, **kwargs):
        sink.write(b"%PDF-1.4 first")
        time.sleep(self.delay)
        sink.write(b"rest")


class PartialComposer(LabelDocumentComposer):
    def compose(self, label, delivery_id, sink, **kwargs):
        sink.write(b"%PDF-1.4 first")
        raise RuntimeError("lost the page")


class UndeletableStore(InMemoryArtifactStore):
    async def delete_artifact(self, artifact_id):
        raise CleanupError(delivery_id=artifact_id, context={"os_error": "read-only"})


class UnwritableStore(InMemoryArtifactStore):
    async def write_artifact(self, artifact_id, data):
        raise FileStorageError(delivery_id=artifact_id)


async def collect(body) -> bytes:
    return b"".join([chunk async for chunk in body])


def make_service(store, renderer=None, composer=None, timeout=30.0):
    return LabelService(
        store=store,
        renderer=renderer or BarcodeRenderer(),
        composer=composer or LabelDocumentComposer(compress=False),
        timeout=timeout,
    )


class TestLabelServiceGenerate:

    @pytest.mark.asyncio
    async def test_success_streams_pdf_and_cleans_up(self, memory_store, label_payload):
        service = make_service(memory_store)

        document = await service.generate(label_payload)

        assert document.filename == f"delivery-label-{document.delivery_id}.pdf"
        assert document.media_type == "application/pdf"
        assert document.headers["Content-Disposition"] == (
            f'attachment; filename="{label_filename(document.delivery_id)}"'
        )
        # Artifact exists until the stream has been consumed
        assert document.delivery_id in memory_store

        pdf = await collect(document.body)

        assert pdf.startswith(b"%PDF-")
        assert f"Delivery ID: {document.delivery_id}".encode() in pdf
        assert b"/Subtype /Image" in pdf
        assert document.delivery_id not in memory_store
        assert len(memory_store) == 0

    @pytest.mark.asyncio
    async def test_each_call_mints_a_new_identifier(self, memory_store, label_payload):
        service = make_service(memory_store)
        first = await service.generate(label_payload)
        second = await service.generate(label_payload)
        await collect(first.body)
        await collect(second.body)

        assert first.delivery_id != second.delivery_id

    @pytest.mark.asyncio
    async def test_validation_failure_allocates_nothing(self, memory_store, label_payload):
        service = make_service(memory_store)
        del label_payload["receiverName"]

        with pytest.raises(ValidationError):
            await service.generate(label_payload)

        assert len(memory_store) == 0

    @pytest.mark.asyncio
    async def test_render_failure_degrades_to_placeholder(self, memory_store, label_payload):
        service = make_service(memory_store, renderer=FailingRenderer())

        document = await service.generate(label_payload)
        pdf = await collect(document.body)

        assert BARCODE_FAILED.encode() in pdf
        assert b"/Subtype /Image" not in pdf
        assert len(memory_store) == 0

    @pytest.mark.asyncio
    async def test_storage_failure_propagates(self, label_payload):
        store = UnwritableStore()
        service = make_service(store)

        with pytest.raises(FileStorageError):
            await service.generate(label_payload)
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_composer_failure_before_streaming(self, memory_store, label_payload):
        service = make_service(memory_store, composer=BrokenComposer())

        with pytest.raises(StreamError) as exc_info:
            await service.generate(label_payload)

        assert exc_info.value.stage == "compose"
        assert len(memory_store) == 0

    @pytest.mark.asyncio
    async def test_timeout_before_streaming(self, memory_store, label_payload):
        service = make_service(memory_store, renderer=SlowRenderer(delay=0.5), timeout=0.1)

        with pytest.raises(GenerationTimeoutError) as exc_info:
            await service.generate(label_payload)

        assert exc_info.value.timeout == 0.1
        assert isinstance(exc_info.value, StreamError)
        assert len(memory_store) == 0


class TestLabelServiceStreaming:

    @pytest.mark.asyncio
    async def test_timeout_mid_stream_closes_body(self, memory_store, label_payload, caplog):
        service = make_service(memory_store, composer=StallingComposer(delay=2.0), timeout=1.0)

        document = await service.generate(label_payload)
        with caplog.at_level(logging.ERROR, logger="shiplabel.services.label_service"):
            pdf = await collect(document.body)

        assert pdf == b"%PDF-1.4 first"
        assert len(memory_store) == 0
        assert any("timed out" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_composer_failure_mid_stream_closes_body(self, memory_store, label_payload):
        service = make_service(memory_store, composer=PartialComposer())

        document = await service.generate(label_payload)
        pdf = await collect(document.body)

        assert pdf == b"%PDF-1.4 first"
        assert len(memory_store) == 0

    @pytest.mark.asyncio
    async def test_client_disconnect_still_cleans_up(self, memory_store, label_payload):
        service = make_service(memory_store, composer=StallingComposer(delay=0.2))

        document = await service.generate(label_payload)
        body = document.body
        assert await body.__anext__() == b"%PDF-1.4 first"
        assert document.delivery_id in memory_store

        await body.aclose()

        assert document.delivery_id not in memory_store

    @pytest.mark.asyncio
    async def test_cleanup_failure_is_not_raised(self, label_payload, caplog):
        service = make_service(UndeletableStore())

        document = await service.generate(label_payload)
        with caplog.at_level(logging.ERROR, logger="shiplabel.services.label_service"):
            pdf = await collect(document.body)

        assert pdf.startswith(b"%PDF-")
        assert any("stage=cleanup" in r.getMessage() for r in caplog.records)


class TestCleanupAndIsolation:

    @pytest.mark.asyncio
    async def test_runs_only_once(self, memory_store):
        await memory_store.write_artifact("abc", b"x")
        cleanup = ArtifactCleanup(memory_store, "abc")

        await cleanup.run()
        await memory_store.write_artifact("abc", b"recreated")
        await cleanup.run()

        assert cleanup.done
        assert "abc" in memory_store

    @pytest.mark.asyncio
    async def test_concurrent_generations_are_isolated(self, memory_store, label_payload):
        service = make_service(memory_store)
        other = dict(label_payload, senderName="Carol Other", receiverName="Dave Other")

        first, second = await asyncio.gather(
            service.generate(label_payload), service.generate(other)
        )
        pdf_first, pdf_second = await asyncio.gather(
            collect(first.body), collect(second.body)
        )

        assert first.delivery_id != second.delivery_id
        assert first.delivery_id.encode() in pdf_first
        assert second.delivery_id.encode() not in pdf_first
        assert b"Carol Other" in pdf_second
        assert b"Carol Other" not in pdf_first
        assert len(memory_store) == 0
