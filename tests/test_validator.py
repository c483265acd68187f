import pytest

from riskcheck.errors import RejectionReason, SubmissionRejected
from riskcheck.models import MediaFile, MediaSubmission, TextSubmission
from riskcheck.validator import validate


@pytest.mark.parametrize("content", ["", "   ", "\n\t  \n"])
def test_blank_text_is_rejected(content):
    with pytest.raises(SubmissionRejected) as exc_info:
        validate(TextSubmission(content=content))
    assert exc_info.value.reason is RejectionReason.EMPTY_INPUT
    assert "message" in exc_info.value.message


def test_non_empty_text_is_returned_unchanged():
    submission = TextSubmission(content="  hi  ")
    assert validate(submission) is submission
    assert submission.content == "  hi  "


@pytest.mark.parametrize("kind", ["video", "audio"])
def test_media_without_file_is_rejected(kind):
    with pytest.raises(SubmissionRejected) as exc_info:
        validate(MediaSubmission(kind=kind))
    assert exc_info.value.reason is RejectionReason.MISSING_FILE
    assert f"upload a {kind} file" in exc_info.value.message


@pytest.mark.parametrize("size_bytes", [0, 1, 10 * 1024 ** 3])
def test_any_attached_file_is_accepted_regardless_of_size(size_bytes):
    media = MediaFile(name="clip.mp4", size_bytes=size_bytes, mime_type="video/mp4", data=b"\x00")
    submission = MediaSubmission(kind="video", file=media)
    assert validate(submission) is submission


def test_unexpected_mime_type_is_accepted():
    media = MediaFile(name="notes.txt", size_bytes=3, mime_type="text/plain", data=b"abc")
    submission = MediaSubmission(kind="audio", file=media)
    assert validate(submission) is submission
