#!/usr/bin/env python3
"""
Name: cut
Description: select portions of each line of a file
Author: Rich Lafferty, rich@alcor.concordia.ca (Original Perl Author)
License: perl
"""

import sys
import os
import argparse
from enum import Enum

__version__ = "1.0"

EX_SUCCESS = 0
EX_FAILURE = 1
EX_INTERRUPTED = 130

ENCODING = 'utf-8'


class CutError(Exception):
    """Base class for errors raised by cut."""


class ConfigurationError(CutError):
    """The selector list or delimiter options cannot be used."""


class DecodeError(CutError):
    """A line is not valid text in character mode."""


class WriteError(CutError):
    """Standard output could not be written."""


class Mode(Enum):
    BYTES = 'b'
    CHARACTERS = 'c'
    FIELDS = 'f'


class Selection:
    """The single active mode together with its ordered selector tokens."""
    def __init__(self, mode, tokens):
        self.mode = mode
        self.tokens = tuple(tokens)

    def __repr__(self):
        return f"Selection({self.mode.name}, {list(self.tokens)!r})"


def parse_list(list_str: str) -> list:
    """
    Splits a cut-style list string (e.g., "1,5-7,10-") into its tokens.

    Tokens are kept as strings in the order given; duplicates and
    overlapping ranges are kept too, and so are empty tokens, which
    resolve like any other malformed number. Numbers are only looked at
    when a token is resolved against an actual line.
    """
    if not list_str:
        raise ConfigurationError("you must specify a list of bytes, characters, or fields")
    return list_str.split(',')


def _positive_int(text: str, default: int) -> int:
    try:
        value = int(text)
    except ValueError:
        return default
    return value if value >= 1 else default


def resolve_range(token: str, count: int):
    """
    Resolves one selector token against a line with `count` segments.

    Returns a 1-based inclusive (start, end) tuple, or None when the token
    selects nothing on this line. Malformed numbers never fail: a bad or
    missing start becomes 1 and a bad or missing end becomes `count`.
    """
    if '-' in token:
        left, right = token.split('-', 1)
        start = _positive_int(left, 1)
        end = _positive_int(right, count)
    else:
        start = end = _positive_int(token, 1)

    if start > count:
        return None
    end = min(end, count)
    # A decreasing range such as "5-2" selects nothing.
    if end < start:
        return None
    return start, end


def segment_line(record: bytes, mode: Mode, delimiter: bytes = b'\t',
                 only_delimited: bool = False):
    """
    Splits one record (terminator already stripped) into segments.

    Returns None when the record must be suppressed entirely, which only
    happens in field mode with `only_delimited` set.
    """
    if mode is Mode.BYTES:
        # Every byte stands alone, so bytes of a multi-byte character
        # each render as U+FFFD.
        return [record[i:i + 1].decode(ENCODING, errors='replace') for i in range(len(record))]

    if mode is Mode.CHARACTERS:
        try:
            text = record.decode(ENCODING)
        except UnicodeDecodeError as e:
            raise DecodeError(f"invalid {ENCODING} byte at offset {e.start}") from e
        return list(text)

    fields = record.split(delimiter)
    if len(fields) == 1 and only_delimited:
        return None
    return [field.decode(ENCODING, errors='surrogateescape') for field in fields]


def assemble_line(segments: list, tokens, mode: Mode, output_delimiter: str = '\t',
                  complement: bool = False) -> str:
    """
    Renders the selected segments of one line.

    Ranges are emitted in the order of `tokens`. Segments inside one range
    are joined by the output delimiter in field mode and by nothing in
    byte and character mode; `output_delimiter` goes between the outputs of
    successive selectors that resolved to a non-empty range.
    """
    inner = output_delimiter if mode is Mode.FIELDS else ''
    count = len(segments)

    if complement:
        covered = set()
        for token in tokens:
            resolved = resolve_range(token, count)
            if resolved:
                covered.update(range(resolved[0], resolved[1] + 1))
        return inner.join(seg for i, seg in enumerate(segments, 1) if i not in covered)

    pieces = []
    for token in tokens:
        resolved = resolve_range(token, count)
        if resolved is None:
            continue
        start, end = resolved
        pieces.append(inner.join(segments[start - 1:end]))
    return output_delimiter.join(pieces)


def read_records(stream, terminator: bytes = b'\n'):
    """
    Yields the records of a binary stream with the terminator stripped.

    A trailing record that lacks a terminator is still yielded; an empty
    stream yields nothing.
    """
    # Pieces of the current record; each chunk is scanned only once.
    pieces = []
    while True:
        chunk = stream.read(8192)
        if not chunk:
            break
        start = 0
        while True:
            end = chunk.find(terminator, start)
            if end < 0:
                break
            pieces.append(chunk[start:end])
            yield b''.join(pieces)
            pieces = []
            start = end + len(terminator)
        if start < len(chunk):
            pieces.append(chunk[start:])
    if pieces:
        yield b''.join(pieces)


class CutProcessor:
    """Holds the per-run settings and drives every input source through them."""
    def __init__(self, selection, delimiter='\t', output_delimiter=None,
                 only_delimited=False, zero_terminated=False, complement=False,
                 program_name='cut', stdin=None, stdout=None, stderr=None):
        self.mode = selection.mode
        self.tokens = selection.tokens

        # Only field mode splits on the delimiter.
        self.delimiter = None
        if self.mode is Mode.FIELDS:
            if len(delimiter) != 1:
                raise ConfigurationError("the delimiter must be a single character")
            self.delimiter = delimiter.encode(ENCODING, errors='surrogateescape')
            if len(self.delimiter) != 1:
                raise ConfigurationError("the delimiter must be a single byte")

        if output_delimiter is None:
            output_delimiter = delimiter
        self.output_delimiter = output_delimiter

        self.only_delimited = only_delimited and self.mode is Mode.FIELDS
        self.terminator = b'\0' if zero_terminated else b'\n'
        self.complement = complement

        self.program_name = program_name
        self.stdin = stdin
        self.stdout = stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        self.exit_status = EX_SUCCESS

    def warn(self, message):
        print(f"{self.program_name}: {message}", file=self.stderr)
        self.exit_status = EX_FAILURE

    def cut_record(self, record: bytes):
        """Returns the rendered bytes for one record, or None if it is suppressed."""
        segments = segment_line(record, self.mode, self.delimiter, self.only_delimited)
        if segments is None:
            return None
        line = assemble_line(segments, self.tokens, self.mode,
                             self.output_delimiter, self.complement)
        return line.encode(ENCODING, errors='surrogateescape')

    def process_stream(self, stream, name='-'):
        """Cuts every record of one stream, writing each result as soon as it is ready."""
        for line_number, record in enumerate(read_records(stream, self.terminator), 1):
            try:
                output = self.cut_record(record)
            except DecodeError as e:
                self.warn(f"{name}: line {line_number}: {e}")
                continue
            if output is None:
                continue
            self.emit(output + self.terminator)

    def emit(self, data: bytes):
        try:
            self.stdout.write(data)
        except BrokenPipeError:
            raise
        except OSError as e:
            raise WriteError(f"write error: {e.strerror or e}") from e

    def flush(self):
        try:
            self.stdout.flush()
        except BrokenPipeError:
            raise
        except OSError as e:
            raise WriteError(f"write error: {e.strerror or e}") from e

    def run(self, files):
        """Processes each named source in order; '-' means standard input."""
        if self.stdout is None:
            self.stdout = sys.stdout.buffer

        for filename in files or ('-',):
            if filename != '-' and os.path.isdir(filename):
                self.warn(f"'{filename}': is a directory")
                continue

            try:
                if filename == '-':
                    stdin = self.stdin if self.stdin is not None else sys.stdin.buffer
                    self.process_stream(stdin, '-')
                else:
                    with open(filename, 'rb') as fh:
                        self.process_stream(fh, filename)
            except BrokenPipeError:
                raise
            except OSError as e:
                self.warn(f"'{filename}': {e.strerror or e}")

        self.flush()
        return self.exit_status


def resolve_selection(args) -> Selection:
    """Turns the -b/-c/-f options into the one active Selection."""
    chosen = [(mode, list_str) for mode, list_str in (
        (Mode.BYTES, args.byte_list),
        (Mode.CHARACTERS, args.char_list),
        (Mode.FIELDS, args.field_list),
    ) if list_str is not None]

    if not chosen:
        raise ConfigurationError("you must specify a list of bytes, characters, or fields")
    if len(chosen) > 1:
        raise ConfigurationError("only one type of list may be specified")
    mode, list_str = chosen[0]
    return Selection(mode, parse_list(list_str))


def build_parser():
    parser = argparse.ArgumentParser(
        description="Select portions of each line of a file.",
        usage="%(prog)s -b list | -c list | -f list [-d delim] [-s] [-z] "
              "[--complement] [--output-delimiter delim] [file ...]"
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    # The main modes are mutually exclusive.
    mode_group = parser.add_mutually_exclusive_group(required=True)
    mode_group.add_argument('-b', '--bytes', dest='byte_list', metavar='LIST',
                            help='select only these bytes')
    mode_group.add_argument('-c', '--characters', dest='char_list', metavar='LIST',
                            help='select only these characters')
    mode_group.add_argument('-f', '--fields', dest='field_list', metavar='LIST',
                            help='select only these fields')

    parser.add_argument('-d', '--delimiter', default='\t',
                        help='use DELIM instead of TAB for field delimiter')
    parser.add_argument('--output-delimiter', dest='output_delimiter', metavar='DELIM',
                        help='use DELIM as the output delimiter (default: the input delimiter)')
    parser.add_argument('-s', '--only-delimited', action='store_true',
                        help='do not print lines not containing delimiters')
    parser.add_argument('-z', '--zero-terminated', action='store_true',
                        help='line delimiter is NUL, not newline')
    parser.add_argument('--complement', action='store_true',
                        help='complement the set of selected bytes, characters or fields')

    parser.add_argument('files', nargs='*', help='Files to process. Reads from stdin if none are given.')
    return parser


def main(argv=None):
    """Parses arguments and runs the cut logic over every input file."""
    parser = build_parser()
    args = parser.parse_args(argv)
    program_name = os.path.basename(sys.argv[0]) or 'cut'

    try:
        processor = CutProcessor(
            resolve_selection(args),
            delimiter=args.delimiter,
            output_delimiter=args.output_delimiter,
            only_delimited=args.only_delimited,
            zero_terminated=args.zero_terminated,
            complement=args.complement,
            program_name=program_name,
        )
        exit_status = processor.run(args.files)
    except (ConfigurationError, WriteError) as e:
        print(f"{program_name}: {e}", file=sys.stderr)
        exit_status = EX_FAILURE
    except BrokenPipeError:
        # Keep the interpreter from complaining again when it flushes stdout at exit.
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        exit_status = EX_FAILURE
    except KeyboardInterrupt:
        exit_status = EX_INTERRUPTED

    sys.exit(exit_status)


if __name__ == "__main__":
    main()
