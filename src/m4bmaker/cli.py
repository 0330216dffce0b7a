"""
Command-line interface for m4bmaker.
"""

import argparse
import sys
import time
import logging

from . import __version__
from .config import QUALITY_PRESETS, ConversionSettings
from .core.metadata import read_audiobook_tags
from .core.models import Cancelled, Completed
from .core.processor import ConversionProcessor
from .exceptions import M4bMakerError, MetadataError
from .utils.file_utils import format_duration, natural_keys, total_duration_ms
from .utils.progress_tracker import ConsoleProgress

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130

# How often the console drains the event queue, like a UI frame
DRAIN_INTERVAL_SECONDS = 0.1


def setup_logging(quiet=False, verbose=False, log_file=None):
    """
    Sets up the logging configuration for the application.

    Args:
        quiet (bool): If True, only errors reach the console.
        verbose (bool): If True, debug messages reach the console.
        log_file (str): Optional path of a log file to write as well.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler(sys.stderr)
    if quiet:
        console_handler.setLevel(logging.ERROR)
    elif verbose:
        console_handler.setLevel(logging.DEBUG)
    else:
        console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    root.addHandler(console_handler)

    # Only written when asked for; the audiobook is the only file we create by default
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        root.addHandler(file_handler)


def parse_arguments(argv=None):
    """
    Parses and validates command line arguments for the application.

    Returns:
        argparse.Namespace: Parsed command line arguments.
    """
    parser = argparse.ArgumentParser(
        prog="m4bmaker",
        description="m4bmaker - Combine MP3 files into a single M4B audiobook",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  m4bmaker 01.mp3 02.mp3 03.mp3 -t "My Book" -a "Jane Doe" -o book.m4b
  m4bmaker *.mp3 --sort natural -t "My Book" -a "Jane Doe" -o book.m4b
  m4bmaker part*.mp3 -t "My Book" -a "Jane Doe" -o book.m4b --quality high

Files are joined in the order given on the command line.
        """
    )

    parser.add_argument(
        'files',
        nargs='*',
        help='MP3 files in playback order'
    )

    parser.add_argument(
        '--title', '-t',
        help='Title of the audiobook'
    )

    parser.add_argument(
        '--author', '-a',
        help='Author of the audiobook'
    )

    parser.add_argument(
        '--output', '-o',
        help='Destination .m4b file'
    )

    parser.add_argument(
        '--quality', '--qual',
        choices=sorted(QUALITY_PRESETS) + ['custom'],
        default='medium',
        help='Audio quality preset: low (96k), medium (128k), high (192k), custom (use --bitrate)'
    )

    parser.add_argument(
        '--bitrate', '-b',
        help='AAC bitrate when --quality custom is used (e.g. 64k)'
    )

    parser.add_argument(
        '--ffmpeg',
        default='ffmpeg',
        help='FFmpeg executable name or path (default: ffmpeg from PATH)'
    )

    parser.add_argument(
        '--sort',
        choices=['given', 'natural'],
        default='given',
        help='Track order: as given (default) or natural filename order'
    )

    parser.add_argument(
        '--tail-lines',
        type=int,
        default=20,
        help='Engine output lines to show when a conversion fails (default: 20)'
    )

    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Only print errors'
    )

    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Echo the engine output and debug logging'
    )

    parser.add_argument(
        '--log-file',
        help='Also write a detailed log to this file'
    )

    parser.add_argument(
        '--version', '-v',
        action='version',
        version=f'm4bmaker {__version__}'
    )

    args = parser.parse_args(argv)

    if args.quality == 'custom' and not args.bitrate:
        parser.error("--quality custom requires --bitrate")
    if args.bitrate and args.quality != 'custom':
        args.quality = 'custom'
    if args.tail_lines < 1:
        parser.error("--tail-lines must be at least 1")

    return args


def run_conversion(processor, files, title, author, output, quiet=False, verbose=False):
    """
    Run one export to completion, rendering it on the console.

    Returns:
        int: Process exit code
    """
    renderer = ConsoleProgress(quiet=quiet, verbose=verbose)
    session = processor.start_export(files, title, author, output, on_event=renderer)
    if not quiet:
        renderer.start(total_duration_ms(session.job.source_paths) / 1000.0)

    try:
        while not session.done:
            session.dispatch_pending()
            time.sleep(DRAIN_INTERVAL_SECONDS)
    except KeyboardInterrupt:
        renderer.write("Cancelling conversion...")
        processor.shutdown()
    session.dispatch_pending()
    renderer.close()

    event = session.terminal_event
    if isinstance(event, Cancelled):
        print("\nOperation cancelled by user", file=sys.stderr)
        return EXIT_CANCELLED

    if isinstance(event, Completed) and event.success:
        if not quiet:
            _print_summary(session.job.destination, renderer.elapsed())
        return EXIT_SUCCESS

    if event.exit_code is None:
        print("\nConversion failed", file=sys.stderr)
    else:
        print(f"\nConversion failed (exit code {event.exit_code})", file=sys.stderr)
    if event.error:
        print(f"   - {event.error}", file=sys.stderr)
    if event.tail:
        print("Last engine output:", file=sys.stderr)
        for line in event.tail:
            print(f"   {line}", file=sys.stderr)
    return EXIT_FAILURE


def _print_summary(destination, processing_seconds):
    print("\nAudiobook created successfully!")
    print(f"   - Output: {destination}")
    print(f"   - Processing time: {processing_seconds:.1f}s")
    try:
        tags = read_audiobook_tags(destination)
    except MetadataError as e:
        logging.warning(f"Could not verify tags of {destination}: {e}")
        return
    print(f"   - Title: {tags['title']}")
    print(f"   - Author: {tags['author']}")
    print(f"   - Duration: {format_duration(tags['duration_ms'])}")


def main(argv=None):
    """Main entry point for the CLI application."""
    args = parse_arguments(argv)
    setup_logging(quiet=args.quiet, verbose=args.verbose, log_file=args.log_file)

    files = list(args.files)
    if args.sort == 'natural':
        files.sort(key=natural_keys)

    try:
        settings = ConversionSettings.from_quality(
            args.quality, bitrate=args.bitrate, engine=args.ffmpeg, tail_lines=args.tail_lines
        )
        processor = ConversionProcessor(settings)
        exit_code = run_conversion(
            processor, files, args.title, args.author, args.output,
            quiet=args.quiet, verbose=args.verbose
        )
    except M4bMakerError as e:
        print(f"\nError: {e.get_user_message()}", file=sys.stderr)
        exit_code = EXIT_FAILURE

    sys.exit(exit_code)


if __name__ == '__main__':
    main()
