from autocaptcha_core.errors import ErrorKind
from autocaptcha_core.providers import RecognitionResult
from autocaptcha_core.run_logger import RunLogger


def test_log_is_readable_before_finalize(tmp_path):
    run_log = RunLogger(url="https://a.example/", command_line="autocaptcha solve https://a.example/",
                        log_dir=tmp_path, session_id="s1")
    run_log.log_heading("Detection")
    run_log.log_pairs([], source="heuristic")

    text = (tmp_path / "run-s1.md").read_text(encoding="utf-8")
    assert text.startswith("# autocaptcha run s1")
    assert "- [Detection](#detection)" in text
    assert "autocaptcha solve https://a.example/" in text
    assert "No image/input pair found." in text


def test_failure_and_summary(tmp_path):
    run_log = RunLogger(log_dir=tmp_path, session_id="s2")
    run_log.log_heading("Recognition")
    run_log.log_recognition(RecognitionResult.failure(ErrorKind.VENDOR, "odd | body", provider="gemini"))
    run_log.finalize(success=False, duration_ms=12, error="odd | body")

    text = open(run_log.log_path, encoding="utf-8").read()
    assert "- Provider: gemini" in text
    assert "- Error kind: VendorError" in text
    assert "❌ **ERROR:** odd | body" in text
    assert "**Status:** ❌ FAILED" in text
    assert "**Duration:** 12ms" in text
    assert "- [Summary](#summary)" in text
