"""This module contains the parameterized bytecode template returned by the
compiler."""
import logging
import re

from typing import Dict

from vunit.exceptions import InvalidBytecodeStructure

log = logging.getLogger(__name__)

HEX_RE = re.compile(r"^(0x)?([0-9a-fA-F]{2})*$")


class BytecodeStructure:
    """A compiled bytecode template with `nargs` argument slots located by
    `key + i`."""

    def __init__(self, bytecode: str, key: str, nargs: int) -> None:
        """

        :param bytecode: hex string, with or without 0x prefix
        :param key: base of the slot markers, a big integer as a decimal or 0x-hex string
        :param nargs: number of argument slots
        """
        self.bytecode = bytecode
        self.key = str(key)
        self.nargs = nargs

    @property
    def key_value(self) -> int:
        """

        :return: the key as an integer
        """
        key = self.key.strip()
        if key.lower().startswith("0x"):
            return int(key, 16)
        return int(key)

    @property
    def code(self) -> str:
        """

        :return: the template as lowercase hex without the 0x prefix
        """
        code = self.bytecode[2:] if self.bytecode[:2] in ("0x", "0X") else self.bytecode
        return code.lower()

    @classmethod
    def from_dict(cls, data: Dict) -> "BytecodeStructure":
        """Build a structure from the compiler's JSON payload.

        :param data: {"bytecode": str, "key": str, "nargs": int}
        :return:
        """
        if not isinstance(data, dict):
            raise InvalidBytecodeStructure(
                "Expected an object, got {}".format(type(data).__name__)
            )
        try:
            bytecode = data["bytecode"]
            key = data["key"]
            nargs = data["nargs"]
        except KeyError as e:
            raise InvalidBytecodeStructure("Missing field {}".format(e))

        if not isinstance(bytecode, str) or not HEX_RE.match(bytecode):
            raise InvalidBytecodeStructure("Bytecode is not a hex string")
        try:
            nargs = int(nargs)
        except (TypeError, ValueError):
            raise InvalidBytecodeStructure("nargs is not an integer")
        if nargs < 0:
            raise InvalidBytecodeStructure("nargs must not be negative")

        structure = cls(bytecode, str(key), nargs)
        try:
            structure.key_value
        except ValueError:
            raise InvalidBytecodeStructure("key {} is not an integer".format(key))
        return structure

    def as_dict(self) -> Dict:
        """

        :return:
        """
        return {"bytecode": self.bytecode, "key": self.key, "nargs": self.nargs}

    def __eq__(self, other) -> bool:
        if not isinstance(other, BytecodeStructure):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self) -> str:
        return "<BytecodeStructure key={} nargs={} size={}>".format(
            self.key, self.nargs, len(self.code) // 2
        )
