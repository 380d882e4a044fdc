"""Per-student exercise generation from YAML definitions and templates."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import jinja2
import yaml

log = logging.getLogger(__name__)

# Name of the exercise definition file in an exercise directory.
EXERCISE_FILE_NAME = "exercise.yaml"
# Name of the file that holds the student id.
STUDENT_ID_FILE = "STUDENT_ID"
# Name of the environment variable that holds the student id.
STUDENT_ENV_VAR = "STUDENT_ID"
# What the student id file holds until a real id is set.
DEFAULT_STUDENT_ID = "PLEASE SET STUDENT ID"
README_TEMPLATE_FILE = ".README.md"
README_FILE = "README.md"
TEST_TEMPLATE_FILE = ".exercise_test.go"
TEST_FILE = "exercise_test.go"
SOLUTION_TEMPLATE_FILE = ".exercise.go"
SOLUTION_FILE = "exercise.go"

_FNV32_OFFSET = 0x811C9DC5
_FNV32_PRIME = 0x01000193


class StudentIdError(Exception):
    """Raised when no usable student id can be found."""


@dataclass
class Exercise:
    """An exercise definition: a name and the list of possible inputs."""

    name: str = ""
    inputs: list[dict[str, Any]] = field(default_factory=list)

    def get_input(self, student_id: str) -> dict[str, Any]:
        """Choose the input belonging to ``student_id``; empty when there is none."""
        if not self.inputs:
            return {}
        return self.inputs[student_hash(student_id) % len(self.inputs)]


def _exercise_from_document(doc: Any, path: Path) -> Exercise:
    if doc is None:
        return Exercise()
    if not isinstance(doc, dict):
        raise ValueError(f"cannot parse YAML def for {str(path)!r}: expected a mapping")
    name = doc.get("name")
    raw_inputs = doc.get("input")
    if raw_inputs is None:
        raw_inputs = []
    if not isinstance(raw_inputs, list):
        raise ValueError(f"cannot parse YAML def for {str(path)!r}: 'input' must be a list")
    inputs = []
    for item in raw_inputs:
        if item is None:
            item = {}
        if not isinstance(item, dict):
            raise ValueError(
                f"cannot parse YAML def for {str(path)!r}: input entries must be mappings"
            )
        inputs.append({str(key): value for key, value in item.items()})
    return Exercise(name="" if name is None else str(name), inputs=inputs)


def load_exercise(directory: str | os.PathLike) -> Exercise:
    """Read the exercise definition in ``directory``.

    Raises OSError if the file cannot be read and ValueError if it cannot be parsed.
    """
    path = Path(directory) / EXERCISE_FILE_NAME
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise OSError(f"cannot read YAML def for {str(path)!r}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ValueError(f"cannot parse YAML def for {str(path)!r}: {exc}") from exc
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"cannot parse YAML def for {str(path)!r}: {exc}") from exc
    return _exercise_from_document(doc, path)


def find_file(directory: str | os.PathLike, name: str) -> Path:
    """Walk up from ``directory`` and return the first file called ``name``.

    The filesystem root itself is not searched. Raises FileNotFoundError.
    """
    current = Path(os.path.abspath(directory))
    while True:
        candidate = current / name
        if candidate.exists():
            return candidate
        parent = current.parent
        if parent == current or parent == Path(parent.anchor):
            raise FileNotFoundError(f"file {name} not found in directory tree")
        current = parent


def _find_student_id(student_id: Optional[str]) -> str:
    if student_id:
        return student_id.upper()

    env = os.environ.get(STUDENT_ENV_VAR, "")
    if env:
        return env.strip().upper()

    cwd = os.getcwd()
    try:
        path = find_file(cwd, STUDENT_ID_FILE)
    except FileNotFoundError:
        raise StudentIdError(f"no student id file found searching up from {cwd!r}") from None
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise StudentIdError(f"could not read student-id file {str(path)!r}: {exc}") from exc
    return content.strip().upper()


def get_student_id(student_id: Optional[str] = None) -> str:
    """Return the student id, upper-cased.

    Taken from ``student_id``, else the STUDENT_ID environment variable, else the
    STUDENT_ID file searched upwards from the current directory. Raises
    StudentIdError if none is found or the id is still the placeholder.
    """
    found = _find_student_id(student_id)
    if found == DEFAULT_STUDENT_ID:
        raise StudentIdError(DEFAULT_STUDENT_ID)
    return found


def student_hash(student_id: str) -> int:
    """Return the 32-bit FNV-1a hash of the student id."""
    value = _FNV32_OFFSET
    for byte in student_id.encode("utf-8"):
        value ^= byte
        value = (value * _FNV32_PRIME) & 0xFFFFFFFF
    return value


def _render(template_path: Path, output_path: Path, data: dict[str, Any]) -> Path:
    try:
        source = template_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ValueError(f"template {str(template_path)!r}: {exc}") from exc
    env = jinja2.Environment(keep_trailing_newline=True, autoescape=False)
    try:
        text = env.from_string(source).render(data)
    except jinja2.TemplateError as exc:
        raise ValueError(f"template {str(template_path)!r}: {exc}") from exc
    output_path.write_text(text, encoding="utf-8")
    return output_path


def generate_readme(directory: str | os.PathLike, data: dict[str, Any], verbose: bool = False) -> Path:
    """Render the README template in ``directory``; return the written path."""
    if verbose:
        log.info("Generating README in dir %r", str(directory))
    directory = Path(directory)
    return _render(directory / README_TEMPLATE_FILE, directory / README_FILE, data)


def generate_test(directory: str | os.PathLike, data: dict[str, Any], verbose: bool = False) -> Path:
    """Render the test template in ``directory``; return the written path."""
    if verbose:
        log.info("Generating tests in dir %r", str(directory))
    directory = Path(directory)
    return _render(directory / TEST_TEMPLATE_FILE, directory / TEST_FILE, data)


def generate_solution(
    directory: str | os.PathLike, data: dict[str, Any], verbose: bool = False
) -> Optional[Path]:
    """Render the solution template if there is one; return the written path or None."""
    directory = Path(directory)
    template = directory / SOLUTION_TEMPLATE_FILE
    if not template.exists():
        return None
    if verbose:
        log.info("Generating solution in dir %r", str(directory))
    return _render(template, directory / SOLUTION_FILE, data)


def generate(student_id: str, verbose: bool = False) -> None:
    """Generate the README, the tests and, if possible, the solution in the current directory."""
    cwd = os.getcwd()
    exercise = load_exercise(cwd)
    log.info("Generating exercise %r in dir %r", exercise.name, cwd)

    data = exercise.get_input(student_id)
    if verbose:
        log.info("Using input %r", data)

    steps = (
        ("README", generate_readme),
        ("tests", generate_test),
        ("solution", generate_solution),
    )
    for what, step in steps:
        try:
            step(cwd, data, verbose)
        except OSError as exc:
            raise OSError(f"error generating {what} in dir {cwd!r}: {exc}") from exc
        except ValueError as exc:
            raise ValueError(f"error generating {what} in dir {cwd!r}: {exc}") from exc