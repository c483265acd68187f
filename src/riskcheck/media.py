"""
Media feature extraction for video and audio submissions.

There is no frame/spectral model behind this yet: after checking that the file
can be read, the extractor reports a stand-in feature count drawn from the
engine's noise source. A real extractor must keep the same contract, an
integer hit count in the range the scorer expects.
"""

from __future__ import annotations

import logging

import numpy as np

from .errors import EngineUnavailable
from .models import MediaSubmission

logger = logging.getLogger(__name__)

MEDIA_MIN_HITS = 2
MEDIA_MAX_HITS = 6
HEAD_BYTES = 4096


class MediaFeatureExtractor:
    def __init__(self, rng: np.random.Generator) -> None:
        self._rng = rng

    def count_hits(self, submission: MediaSubmission) -> int:
        head = self._read_head(submission)
        hits = int(self._rng.integers(MEDIA_MIN_HITS, MEDIA_MAX_HITS + 1))
        logger.debug("Media head read %d bytes (%s), stand-in hits=%d", len(head), submission.kind, hits)
        return hits

    @staticmethod
    def _read_head(submission: MediaSubmission) -> bytes:
        media = submission.file
        if media is None:
            raise EngineUnavailable(f"No {submission.kind} file attached to the run")
        head = media.data[:HEAD_BYTES]
        if not head:
            raise EngineUnavailable(f"Unable to read the uploaded {submission.kind} file")
        return head
