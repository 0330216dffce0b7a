"""
Input validation run before any conversion is started.

Only read-only stat calls are made here; files are never opened, so a
rejected export leaves no trace on disk and spawns no process.
"""

import os
import logging
from typing import Iterable, Optional

from .models import AudiobookMetadata, ConversionJob, JobState, SourceFile
from ..exceptions import (
    ValidationError, EmptySelectionError, SourceFileNotFoundError,
    UnsupportedFormatError, MissingTitleError, MissingAuthorError,
    MissingDestinationError
)


class InputValidator:
    """Checks an export request and turns it into a ConversionJob."""

    SUPPORTED_EXTENSIONS = ('.mp3',)
    OUTPUT_EXTENSION = '.m4b'

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def validate(self, files: Iterable[str], title: Optional[str], author: Optional[str],
                 destination: Optional[str]) -> ConversionJob:
        """
        Validate an export request.

        Args:
            files: Source paths in the order they should be played
            title: Audiobook title
            author: Audiobook author
            destination: Path of the .m4b file to write

        Returns:
            ConversionJob: The validated job, ready to be launched

        Raises:
            ValidationError: One of its subclasses, naming the first problem found
        """
        paths = [os.path.abspath(os.fspath(path)) for path in (files or [])]
        job = ConversionJob(
            sources=tuple(SourceFile(path=path, position=index) for index, path in enumerate(paths)),
            metadata=AudiobookMetadata(title=(title or '').strip(), author=(author or '').strip()),
            destination=self._normalize_destination(destination),
        )
        job.transition(JobState.VALIDATING)

        try:
            self._validate_sources(paths)
            if not job.metadata.title:
                raise MissingTitleError()
            if not job.metadata.author:
                raise MissingAuthorError()
            if not job.destination:
                raise MissingDestinationError()
        except ValidationError as e:
            job.transition(JobState.INVALID)
            e.job = job
            self.logger.warning(f"Job {job.job_id} rejected: {e}")
            raise

        # Validation passed; the job waits in VALIDATING until it is launched
        self.logger.info(f"Job {job.job_id} validated: {len(paths)} file(s) -> {job.destination}")
        return job

    def _validate_sources(self, paths):
        if not paths:
            raise EmptySelectionError()

        for path in paths:
            if not os.path.exists(path):
                raise SourceFileNotFoundError(path)
            if not os.path.isfile(path) or not path.lower().endswith(self.SUPPORTED_EXTENSIONS):
                raise UnsupportedFormatError(path)

    def _normalize_destination(self, destination: Optional[str]) -> str:
        if destination is None:
            return ''
        destination = os.fspath(destination).strip()
        if not destination:
            return ''

        if not destination.lower().endswith(self.OUTPUT_EXTENSION):
            destination += self.OUTPUT_EXTENSION

        return os.path.abspath(destination)
