"""This module contains the source files handed to the remote compiler."""
import logging
import os

from enum import Enum
from typing import Dict

from vunit.exceptions import InvalidFile

log = logging.getLogger(__name__)


class SupportedLanguage(Enum):
    C = "c"


SUPPORTED_EXTENSIONS = tuple(language.value for language in SupportedLanguage)


class ExecutorFile:
    """Source code selected by the user. Its content is opaque to vunit."""

    def __init__(self, content: str, extension: SupportedLanguage, path: str) -> None:
        self.content = content
        self.extension = extension
        self.path = path

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    def as_dict(self) -> Dict[str, str]:
        return {
            "content": self.content,
            "extension": self.extension.value,
            "path": self.path,
        }

    def __eq__(self, other) -> bool:
        if not isinstance(other, ExecutorFile):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self) -> str:
        return "<ExecutorFile {}>".format(self.path)


def load_executor_file(path: str) -> ExecutorFile:
    """
    Reads a source file of a supported language
    :param path: path of the file
    :return: the executor file
    """
    extension = os.path.splitext(path)[1][1:].lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise InvalidFile(
            "Unsupported file {}, supported extensions: {}".format(
                path, ", ".join(SUPPORTED_EXTENSIONS)
            )
        )
    try:
        with open(path, encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise InvalidFile("Cannot read {}: {}".format(path, e))
    log.info("Loaded executor file %s", path)
    return ExecutorFile(content, SupportedLanguage(extension), os.path.abspath(path))
