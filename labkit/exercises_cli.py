"""Command that generates exercise files for a student."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from labkit.exercises import StudentIdError, generate, get_student_id

log = logging.getLogger(__name__)

_USAGE = (
    "exercises-cli <generate|check>\n"
    "Flags:\n"
    "  -student-id string\n"
    "    \tstudent id; optional, default is to read from file STUDENT_ID\n"
    "  -verbose\n"
    "    \tverbose mode; default is off\n"
)


def _usage() -> None:
    sys.stderr.write(_USAGE)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command; return the exit status."""
    logging.basicConfig(
        level=logging.INFO,
        format="exercises-cli: %(asctime)s %(filename)s:%(lineno)d: %(message)s",
    )
    parser = argparse.ArgumentParser(prog="exercises-cli", allow_abbrev=False)
    parser.add_argument("-student-id", "--student-id", dest="student_id", default="")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true")
    parser.add_argument("command", nargs="*")
    args = parser.parse_args(argv)

    if len(args.command) != 1:
        _usage()
        return 1

    try:
        student_id = get_student_id(args.student_id)
    except StudentIdError as exc:
        log.error("Cannot find student id: %s", exc)
        return 1

    if args.verbose:
        log.info("Using student id %r", student_id)

    command = args.command[0]
    if command == "generate":
        try:
            generate(student_id, args.verbose)
        except (OSError, ValueError) as exc:
            log.error("Cannot generate exercise for student id %r: %s", student_id, exc)
            return 1
    elif command == "check":
        print("Would check stuff")
    else:
        _usage()
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())