"""
Core conversion pipeline modules.
"""

from .command import build_command
from .models import (
    AudiobookMetadata, Cancelled, Completed, ConversionEvent, ConversionJob,
    JobState, OutputLine, SourceFile
)
from .processor import ConversionProcessor, ConversionSession
from .relay import LineSplitter, ProgressRelay
from .reporter import ResultReporter
from .runner import ProcessRunner, RunningProcess
from .validator import InputValidator

__all__ = [
    "build_command",
    "AudiobookMetadata",
    "Cancelled",
    "Completed",
    "ConversionEvent",
    "ConversionJob",
    "JobState",
    "OutputLine",
    "SourceFile",
    "ConversionProcessor",
    "ConversionSession",
    "LineSplitter",
    "ProgressRelay",
    "ResultReporter",
    "ProcessRunner",
    "RunningProcess",
    "InputValidator"
]
