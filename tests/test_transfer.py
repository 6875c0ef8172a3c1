"""Tests for the chunked UploadHelper and DownloadHelper."""

import hashlib
import io

import httpx
import pytest

from conftest import LOCATION, OBJECT_ID, SECRET, UID, TrackingStream
from esuclient.checksum import Algorithm, Checksum
from esuclient.client import EsuClient
from esuclient.errors import HttpStatusError, TransferError, TransportError
from esuclient.models import Metadata, MetadataList, ObjectId, ObjectPath
from esuclient.transport import HttpxTransport
from esuclient.transfer import (
    CompleteEvent,
    DownloadHelper,
    FailureEvent,
    ProgressEvent,
    UploadHelper,
)

MiB = 1024 * 1024
OID = ObjectId(OBJECT_ID)


class _Recorder:
    """Listener collecting every event it receives."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def of_type(self, cls):
        return [e for e in self.events if isinstance(e, cls)]


class _FailingStream(TrackingStream):
    """Source stream whose reads fail once ``fail_at`` bytes were read."""

    def __init__(self, data: bytes, fail_at: int) -> None:
        super().__init__(data)
        self.fail_at = fail_at

    def read(self, size=-1):
        if self.tell() >= self.fail_at:
            raise OSError("Input/output error")
        return super().read(size)


class TestUploadHelper:
    """Tests for UploadHelper."""

    def test_ten_mib_in_four_mib_chunks(self, client, transport):
        transport.add(201, headers={"location": LOCATION})
        content = bytes(range(256)) * (10 * MiB // 256)
        recorder = _Recorder()
        helper = UploadHelper(client, buffer_size=4 * MiB, listener=recorder)

        oid = helper.create_object(io.BytesIO(content), mime_type="application/x-test")

        assert oid == OID
        assert len(transport.requests) == 3
        first, second, third = transport.requests
        assert first.method == "POST"
        assert "Range" not in first.headers
        assert len(first.body) == 4 * MiB
        assert second.method == "PUT"
        assert second.headers["Range"] == f"Bytes={4 * MiB}-{8 * MiB - 1}"
        assert third.headers["Range"] == f"Bytes={8 * MiB}-{10 * MiB - 1}"
        assert len(third.body) == 2 * MiB
        assert first.body + second.body + third.body == content
        assert all(r.headers["Content-Type"] == "application/x-test" for r in transport.requests)

        progress = recorder.of_type(ProgressEvent)
        assert [e.current_bytes for e in progress] == [4 * MiB, 8 * MiB, 10 * MiB]
        assert [e.delta for e in progress] == [4 * MiB, 4 * MiB, 2 * MiB]
        assert isinstance(recorder.events[-1], CompleteEvent)
        assert helper.complete
        assert not helper.failed
        assert helper.current_bytes == 10 * MiB

    def test_empty_stream_creates_empty_object(self, client, transport):
        transport.add(201, headers={"location": LOCATION})
        recorder = _Recorder()
        helper = UploadHelper(client, buffer_size=16, listener=recorder)

        assert helper.create_object(io.BytesIO(b"")) == OID

        assert len(transport.requests) == 1
        assert transport.last.body == b""
        assert recorder.of_type(ProgressEvent) == []
        assert recorder.events == [CompleteEvent()]
        assert helper.complete

    def test_exact_multiple_of_buffer(self, client, transport):
        transport.add(201, headers={"location": LOCATION})
        helper = UploadHelper(client, buffer_size=4)
        helper.create_object(io.BytesIO(b"abcdefgh"))
        assert len(transport.requests) == 2
        assert transport.last.headers["Range"] == "Bytes=4-7"

    def test_acl_and_metadata_only_on_first_chunk(self, client, transport):
        transport.add(201, headers={"location": LOCATION})
        helper = UploadHelper(client, buffer_size=3)
        helper.create_object(io.BytesIO(b"abcdef"), metadata=MetadataList([Metadata("k", "v")]))
        assert transport.requests[0].headers["x-emc-meta"] == "k=v"
        assert "x-emc-meta" not in transport.requests[1].headers

    def test_failure_on_second_chunk(self, client, transport):
        transport.add(201, headers={"location": LOCATION})
        transport.add(500, reason="Internal Server Error")
        recorder = _Recorder()
        source = TrackingStream(b"x" * 12)
        helper = UploadHelper(client, buffer_size=4, listener=recorder)

        with pytest.raises(TransferError) as exc_info:
            helper.create_object(source, close_stream=True)

        assert len(transport.requests) == 2
        assert helper.failed
        assert not helper.complete
        assert helper.current_bytes == 4
        assert helper.error is exc_info.value
        assert isinstance(exc_info.value.__cause__, HttpStatusError)
        assert exc_info.value.http_status == 500
        failures = recorder.of_type(FailureEvent)
        assert len(failures) == 1
        assert failures[0].error is exc_info.value
        assert source.was_closed

    def test_transport_failure_on_second_chunk(self, client, transport):
        transport.add(201, headers={"location": LOCATION})
        transport.add_error(TransportError("connection reset"))
        helper = UploadHelper(client, buffer_size=4)

        with pytest.raises(TransferError) as exc_info:
            helper.create_object(io.BytesIO(b"y" * 12))

        assert len(transport.requests) == 2
        assert helper.failed
        assert not helper.complete
        assert isinstance(exc_info.value.cause, TransportError)

    def test_unencodable_header_fails_session(self):
        """A request httpx refuses to build still ends the session as failed."""
        http = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(201)))
        client = EsuClient("h", 80, UID, SECRET, transport=HttpxTransport(client=http))
        recorder = _Recorder()
        source = TrackingStream(b"abc")
        helper = UploadHelper(client, buffer_size=4, listener=recorder)

        with pytest.raises(TransferError) as exc_info:
            helper.create_object(
                source, metadata=MetadataList([Metadata("city", "Zürich")]), close_stream=True
            )

        assert isinstance(exc_info.value.cause, TransportError)
        assert helper.failed
        assert len(recorder.of_type(FailureEvent)) == 1
        assert source.was_closed

    def test_caller_stream_left_open(self, client, transport):
        transport.add(201, headers={"location": LOCATION})
        source = TrackingStream(b"data")
        UploadHelper(client, buffer_size=8).create_object(source)
        assert not source.was_closed

    def test_create_on_path(self, client, transport):
        transport.add(201, headers={"location": LOCATION})
        helper = UploadHelper(client, buffer_size=4)
        helper.create_object(io.BytesIO(b"abcdef"), path=ObjectPath("/dir/file.bin"))
        assert transport.requests[0].path == "/rest/namespace/dir/file.bin"
        assert transport.requests[1].path == f"/rest/objects/{OBJECT_ID}"

    def test_update_object(self, client, transport):
        helper = UploadHelper(client, buffer_size=4)
        helper.update_object(OID, io.BytesIO(b"abcdefghij"))
        assert [r.method for r in transport.requests] == ["PUT", "PUT", "PUT"]
        assert "Range" not in transport.requests[0].headers
        assert transport.requests[1].headers["Range"] == "Bytes=4-7"
        assert transport.requests[2].headers["Range"] == "Bytes=8-9"
        assert helper.complete

    def test_create_object_from_file(self, client, transport, tmp_path):
        transport.add(201, headers={"location": LOCATION})
        source = tmp_path / "upload.bin"
        source.write_bytes(b"0123456789")
        recorder = _Recorder()
        helper = UploadHelper(client, buffer_size=6, listener=recorder)

        helper.create_object_from_file(source)

        assert helper.total_bytes == 10
        assert recorder.of_type(ProgressEvent)[-1] == ProgressEvent(4, 10, 10)

    def test_update_object_from_file(self, client, transport, tmp_path):
        source = tmp_path / "upload.bin"
        source.write_bytes(b"abc")
        UploadHelper(client, buffer_size=6).update_object_from_file(OID, source)
        assert transport.last.method == "PUT"
        assert transport.last.body == b"abc"

    def test_missing_file_raises(self, client, tmp_path):
        with pytest.raises(TransferError):
            UploadHelper(client).create_object_from_file(tmp_path / "missing.bin")

    def test_caller_buffer_sets_chunk_size(self, client, transport):
        transport.add(201, headers={"location": LOCATION})
        helper = UploadHelper(client, buffer=bytearray(5))
        helper.create_object(io.BytesIO(b"abcdefg"))
        assert transport.last.headers["Range"] == "Bytes=5-6"

    def test_empty_buffer_rejected(self, client):
        with pytest.raises(ValueError):
            UploadHelper(client, buffer=bytearray())

    def test_concurrent_use_rejected(self, client, transport):
        transport.add(201, headers={"location": LOCATION})
        helper = UploadHelper(client, buffer_size=2)
        reentered = []

        def reenter(event):
            if isinstance(event, ProgressEvent) and not reentered:
                reentered.append(event)
                helper.create_object(io.BytesIO(b"zz"))

        helper.add_listener(reenter)
        with pytest.raises(RuntimeError):
            helper.create_object(io.BytesIO(b"abcd"))

        # The helper is usable again once the session ended.
        transport.add(201, headers={"location": LOCATION})
        assert helper.create_object(io.BytesIO(b"ab")) == OID

    def test_source_read_error_on_first_chunk(self, client, transport):
        """A failing source stream aborts before any request is sent."""
        recorder = _Recorder()
        source = _FailingStream(b"x" * 12, fail_at=0)
        helper = UploadHelper(client, buffer_size=4, listener=recorder)

        with pytest.raises(TransferError) as exc_info:
            helper.create_object(source, close_stream=True)

        assert transport.requests == []
        assert isinstance(exc_info.value.__cause__, OSError)
        assert helper.failed
        assert not helper.complete
        assert helper.current_bytes == 0
        assert recorder.of_type(ProgressEvent) == []
        assert len(recorder.of_type(FailureEvent)) == 1
        assert source.was_closed

    def test_source_read_error_on_later_chunk(self, client, transport):
        transport.add(201, headers={"location": LOCATION})
        recorder = _Recorder()
        source = _FailingStream(b"x" * 12, fail_at=4)
        helper = UploadHelper(client, buffer_size=4, listener=recorder)

        with pytest.raises(TransferError) as exc_info:
            helper.create_object(source, close_stream=True)

        assert [r.method for r in transport.requests] == ["POST"]
        assert isinstance(exc_info.value.cause, OSError)
        assert helper.failed
        assert helper.current_bytes == 4
        assert len(recorder.of_type(FailureEvent)) == 1
        assert recorder.events[-1] == FailureEvent(exc_info.value)
        assert source.was_closed

    def test_source_read_error_leaves_caller_stream_open(self, client, transport):
        source = _FailingStream(b"abc", fail_at=0)
        with pytest.raises(TransferError):
            UploadHelper(client, buffer_size=4).update_object(OID, source)
        assert not source.was_closed

    def test_checksum_advances_with_every_chunk(self, client, transport):
        transport.add(201, headers={"location": LOCATION})
        content = b"0123456789"
        checksum = Checksum(Algorithm.SHA1)

        UploadHelper(client, buffer_size=4).create_object(io.BytesIO(content), checksum=checksum)

        values = [r.headers["x-emc-wschecksum"] for r in transport.requests]
        assert values == [
            f"SHA1/4/{hashlib.sha1(content[:4]).hexdigest()}",
            f"SHA1/8/{hashlib.sha1(content[:8]).hexdigest()}",
            f"SHA1/10/{hashlib.sha1(content).hexdigest()}",
        ]
        assert checksum.offset == 10

    def test_checksum_on_update_from_file(self, client, transport, tmp_path):
        source = tmp_path / "upload.bin"
        source.write_bytes(b"abcdef")
        checksum = Checksum(Algorithm.MD5)

        UploadHelper(client, buffer_size=4).update_object_from_file(OID, source, checksum=checksum)

        first, second = transport.requests
        assert first.headers["x-emc-wschecksum"].startswith("MD5/4/")
        assert second.headers["x-emc-wschecksum"] == (
            f"MD5/6/{hashlib.md5(b'abcdef').hexdigest()}"
        )

    def test_no_checksum_header_by_default(self, client, transport):
        transport.add(201, headers={"location": LOCATION})
        UploadHelper(client, buffer_size=4).create_object(io.BytesIO(b"abcdef"))
        assert all("x-emc-wschecksum" not in r.headers for r in transport.requests)

    def test_helper_reusable_after_failure(self, client, transport):
        transport.add(500, reason="Internal Server Error")
        helper = UploadHelper(client, buffer_size=4)
        with pytest.raises(TransferError):
            helper.create_object(io.BytesIO(b"ab"))

        transport.add(201, headers={"location": LOCATION})
        helper.create_object(io.BytesIO(b"ab"))
        assert helper.complete
        assert not helper.failed
        assert helper.error is None


class TestDownloadHelper:
    """Tests for DownloadHelper."""

    def test_reads_in_extents(self, client, transport):
        transport.add(200, headers={"x-emc-meta": "size=10, uid=user1"})
        transport.add(200, body=b"0123")
        transport.add(200, body=b"4567")
        transport.add(200, body=b"89")
        recorder = _Recorder()
        helper = DownloadHelper(client, buffer_size=4, listener=recorder)
        out = io.BytesIO()

        helper.read_object(OID, out)

        assert out.getvalue() == b"0123456789"
        assert transport.requests[0].url.endswith("?metadata/system")
        ranges = [r.headers["Range"] for r in transport.requests[1:]]
        assert ranges == ["Bytes=0-3", "Bytes=4-7", "Bytes=8-9"]
        assert [e.current_bytes for e in recorder.of_type(ProgressEvent)] == [4, 8, 10]
        assert recorder.of_type(ProgressEvent)[0].total_bytes == 10
        assert isinstance(recorder.events[-1], CompleteEvent)
        assert helper.complete
        assert not out.closed

    def test_zero_size_object(self, client, transport):
        transport.add(200, headers={"x-emc-meta": "size=0"})
        helper = DownloadHelper(client, buffer_size=4)
        out = io.BytesIO()
        helper.read_object(OID, out)
        assert len(transport.requests) == 1
        assert out.getvalue() == b""
        assert helper.complete

    @pytest.mark.parametrize("meta", ["", "uid=user1", "size="])
    def test_missing_size_fails(self, client, transport, meta):
        transport.add(200, headers={"x-emc-meta": meta} if meta else {})
        helper = DownloadHelper(client)
        with pytest.raises(TransferError, match="size"):
            helper.read_object(OID, io.BytesIO())
        assert helper.failed

    def test_empty_read_fails(self, client, transport):
        transport.add(200, headers={"x-emc-meta": "size=10"})
        transport.add(200, body=b"")
        helper = DownloadHelper(client, buffer_size=4)
        with pytest.raises(TransferError):
            helper.read_object(OID, io.BytesIO())
        assert len(transport.requests) == 2

    def test_read_failure_closes_owned_stream(self, client, transport):
        transport.add(200, headers={"x-emc-meta": "size=10"})
        transport.add(404, reason="Not Found")
        recorder = _Recorder()
        out = TrackingStream()
        helper = DownloadHelper(client, buffer_size=4, listener=recorder)

        with pytest.raises(TransferError):
            helper.read_object(OID, out, close_stream=True)

        assert out.was_closed
        assert helper.failed
        assert len(recorder.of_type(FailureEvent)) == 1

    def test_read_object_to_file(self, client, transport, tmp_path):
        transport.add(200, headers={"x-emc-meta": "size=5"})
        transport.add(200, body=b"hello")
        target = tmp_path / "out.bin"
        DownloadHelper(client).read_object_to_file(OID, target)
        assert target.read_bytes() == b"hello"
        assert transport.last.headers["Range"] == "Bytes=0-4"

    def test_invalid_buffer_size(self, client):
        with pytest.raises(ValueError):
            DownloadHelper(client, buffer_size=0)

    def test_extent_sizes_never_exceed_buffer(self, client, transport):
        transport.add(200, headers={"x-emc-meta": "size=7"})
        transport.add(200, body=b"abc")
        transport.add(200, body=b"def")
        transport.add(200, body=b"g")
        helper = DownloadHelper(client, buffer_size=3)
        helper.read_object(OID, io.BytesIO())
        assert helper.current_bytes == 7
        extents = [r.headers["Range"] for r in transport.requests[1:]]
        assert extents == ["Bytes=0-2", "Bytes=3-5", "Bytes=6-6"]
