# User value: This test walks whole /transcribe requests so each failure mode ends the way callers expect.
import asyncio
import tempfile
import unittest
from pathlib import Path

from pipeline_fakes import (
    DummyUploadFile,
    FakeLedger,
    FakeTranscoder,
    FakeTranscriber,
    RecordingObserver,
    make_pipeline,
)
from services.errors import (
    AuthError,
    ConversionFailure,
    NoFileError,
    QuotaExceeded,
    SliceFailure,
    UnknownServerError,
    UpstreamEmptyResult,
    UpstreamParseFailure,
)
from services.pipeline import has_audio
from utils import metrics

AUTH = "Bearer caller-token"


class TranscriptionPipelineUnitTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.ledger = FakeLedger()
        self.transcoder = FakeTranscoder()
        self.transcriber = FakeTranscriber()
        self.observer = RecordingObserver()
        metrics.reset()

    def tearDown(self):
        self._tmp.cleanup()

    def _run(self, *, authorization=AUTH, audio="default", start_time="0:10", end_time="0:40"):
        if audio == "default":
            audio = DummyUploadFile()
        pipeline = make_pipeline(
            self.tmp,
            ledger=self.ledger,
            transcoder=self.transcoder,
            transcriber=self.transcriber,
            observer=self.observer,
        )
        return asyncio.run(
            pipeline.run(authorization=authorization, audio=audio, start_time=start_time, end_time=end_time)
        )

    def _uploads_left(self):
        upload_dir = self.tmp / "uploads"
        return sorted(p.name for p in upload_dir.iterdir()) if upload_dir.exists() else []

    def _archived(self):
        debug_dir = self.tmp / "debug"
        return [p.read_bytes() for p in debug_dir.iterdir()] if debug_dir.exists() else []

    # User value: "hello world" is billed 3 tokens and returned as-is.
    def test_success_with_slice(self):
        result = self._run()
        self.assertEqual(result.text, "hello world")
        self.assertEqual(result.token_estimate, 3)
        self.assertEqual(self.ledger.reads, ["caller-token"])
        self.assertEqual(self.ledger.increments, [("caller-token", 3)])
        self.assertEqual([c[0] for c in self.transcoder.calls], ["convert", "slice"])
        self.assertEqual(self.transcoder.calls[1], ("slice", 10, 30))
        self.assertEqual(self.transcriber.uploads[0][1], b"sliced")
        self.assertTrue(self.transcriber.uploads[0][0].endswith("-sliced.mp3"))
        self.assertEqual(self._uploads_left(), [])
        self.assertEqual(self._archived(), [b"sliced"])
        self.assertEqual(len(self.observer.events), 1)
        self.assertEqual(self.observer.events[0].transcript, "hello world")
        self.assertEqual(self.observer.events[0].estimatedTokenCount, 3)
        self.assertEqual(metrics.get_counter("transcribe_requests_succeeded_total"), 1)

    def test_invalid_window_skips_slice_and_uploads_converted(self):
        for start, end in (("0:40", "0:10"), ("ab:cd", "0:40"), (None, None)):
            with self.subTest(start=start, end=end):
                self.transcoder.calls.clear()
                self.transcriber.uploads.clear()
                self._run(start_time=start, end_time=end)
                self.assertEqual([c[0] for c in self.transcoder.calls], ["convert"])
                name, body = self.transcriber.uploads[0]
                self.assertFalse(name.endswith("-sliced.mp3"))
                self.assertEqual(body, b"converted:webm-bytes")
                self.assertEqual(self._uploads_left(), [])

    def test_missing_token_short_circuits(self):
        for header in (None, "Token abc", "Bearer "):
            with self.subTest(header=header):
                with self.assertRaises(AuthError):
                    self._run(authorization=header, audio=None)
        self.assertEqual(self.ledger.reads, [])
        self.assertEqual(self.transcoder.calls, [])

    # User value: the quota is checked before the file, so an over-cap caller is refused even without audio.
    def test_quota_rejection_before_any_work(self):
        self.ledger.usage = 7800
        for audio in ("default", None):
            with self.subTest(audio=audio):
                with self.assertRaises(QuotaExceeded):
                    self._run(audio=audio)
        self.assertEqual(self.transcoder.calls, [])
        self.assertEqual(self.transcriber.uploads, [])
        self.assertEqual(self.ledger.increments, [])

    def test_no_file_after_quota(self):
        for audio in (None, DummyUploadFile(content=b"")):
            with self.subTest(audio=audio):
                with self.assertRaises(NoFileError) as ctx:
                    self._run(audio=audio)
                self.assertEqual(ctx.exception.to_body(), {"error": "No audio file uploaded."})
        self.assertEqual(len(self.ledger.reads), 2)
        self.assertEqual(self.transcoder.calls, [])

    def test_conversion_failure_releases_staged_upload(self):
        self.transcoder.fail_convert = True
        with self.assertRaises(ConversionFailure):
            self._run()
        self.assertEqual(self.transcriber.uploads, [])
        self.assertEqual(self._uploads_left(), [])
        self.assertEqual(self._archived(), [])

    # User value: a failed trim fails the request instead of silently transcribing the whole clip.
    def test_slice_failure_has_no_fallback(self):
        self.transcoder.fail_slice = True
        with self.assertRaises(SliceFailure):
            self._run()
        self.assertEqual(self.transcriber.uploads, [])
        self.assertEqual(self.ledger.increments, [])
        self.assertEqual(self._uploads_left(), [])

    def test_parse_failure_skips_usage_and_still_cleans_up(self):
        self.transcriber.error = UpstreamParseFailure(raw_body="<html>oops</html>")
        with self.assertRaises(UpstreamParseFailure):
            self._run()
        self.assertEqual(self.ledger.increments, [])
        self.assertEqual(self.observer.events, [])
        self.assertEqual(self._uploads_left(), [])
        self.assertEqual(self._archived(), [b"sliced"])

    def test_empty_result_skips_usage(self):
        self.transcriber.error = UpstreamEmptyResult(details={"error": "bad audio"})
        with self.assertRaises(UpstreamEmptyResult) as ctx:
            self._run()
        self.assertEqual(ctx.exception.details, {"error": "bad audio"})
        self.assertEqual(self.ledger.increments, [])
        self.assertEqual(self._uploads_left(), [])

    # User value: a ledger outage never takes away a transcript the caller already got.
    def test_ledger_write_failure_does_not_change_result(self):
        self.ledger.fail_increment = True
        result = self._run()
        self.assertEqual(result.text, "hello world")
        self.assertEqual(result.token_estimate, 3)
        self.assertEqual(metrics.get_counter("usage_increment_failed_total"), 1)

    def test_unexpected_error_becomes_unknown_server_error(self):
        self.transcriber.error = ConnectionError("socket closed")
        with self.assertRaises(UnknownServerError) as ctx:
            self._run()
        self.assertEqual(ctx.exception.to_body(), {"error": "Internal server error."})
        self.assertEqual(self._uploads_left(), [])

    def test_observer_failure_is_not_escalated(self):
        def broken_observer(event):
            raise RuntimeError("extension gone")

        self.observer = broken_observer
        result = self._run()
        self.assertEqual(result.token_estimate, 3)


class HasAudioUnitTests(unittest.TestCase):
    def test_text_field_is_not_an_upload(self):
        self.assertFalse(has_audio("not-a-file"))
        self.assertFalse(has_audio(""))

    def test_missing_and_empty_uploads(self):
        self.assertFalse(has_audio(None))
        self.assertFalse(has_audio(DummyUploadFile(b"")))
        self.assertTrue(has_audio(DummyUploadFile(b"webm")))


if __name__ == "__main__":
    unittest.main()
