"""Submission validation; runs before any analysis work starts."""

from __future__ import annotations

from .errors import RejectionReason, SubmissionRejected
from .models import MediaSubmission, Submission, TextSubmission


def validate(submission: Submission) -> Submission:
    """
    Return the submission unchanged if it can be analysed.

    Raises:
        SubmissionRejected: ``EmptyInput`` for blank text, ``MissingFile`` for a
            video/audio submission without an attached file.
    """
    if isinstance(submission, TextSubmission):
        if not submission.content.strip():
            raise SubmissionRejected(
                RejectionReason.EMPTY_INPUT,
                "Please paste or type a message before analyzing.",
            )
        return submission

    if isinstance(submission, MediaSubmission):
        # Declared size and MIME type are not checked; any attached file is accepted.
        if submission.file is None:
            raise SubmissionRejected(
                RejectionReason.MISSING_FILE,
                f"Please upload a {submission.kind} file before analyzing.",
            )
        return submission

    raise TypeError(f"Unsupported submission type: {type(submission).__name__}")
