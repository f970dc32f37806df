"""This module patches runtime arguments into a compiled bytecode template.

The compiler reserves `nargs` fixed-width slots in the template. Slot `i` holds
the marker `hex(key + i)`, zero-filled to the slot width, which is replaced by
the zero-padded hex value of argument `i`. Every marker is located in the
untouched template before anything is written, so the result does not depend
on the order of the arguments or on their values.
"""
import logging

from typing import List, Sequence

from vunit.bytecode.structure import BytecodeStructure
from vunit.exceptions import (
    ArgumentCountMismatch,
    InvalidArguments,
    PatchTargetAmbiguous,
    PatchTargetNotFound,
)

log = logging.getLogger(__name__)

# Slot width in hex characters, agreed with the compiler
SLOT_WIDTH = 32
SLOT_WIDTHS = (32, 64)

OBFUSCATION_MASK = 0xFF


def obfuscate(code: str) -> str:
    """XOR every byte of a hex string with 0xFF. The operation is its own inverse.

    :param code: hex string without prefix
    :return:
    """
    return bytes(b ^ OBFUSCATION_MASK for b in bytes.fromhex(code)).hex()


def slot_marker(key: int, index: int, width: int = SLOT_WIDTH) -> str:
    """

    :param key:
    :param index:
    :param width:
    :return: the lowercase hex marker of slot `index`
    """
    return format(key + index, "0{}x".format(width))


def _find_aligned(code: str, marker: str) -> List[int]:
    positions = []
    start = code.find(marker)
    while start != -1:
        # markers are whole bytes
        if start % 2 == 0:
            positions.append(start)
        start = code.find(marker, start + 1)
    return positions


def locate_slots(code: str, key: int, nargs: int, width: int = SLOT_WIDTH) -> List[int]:
    """Find the offset of every slot marker in a template.

    :param code: lowercase hex template without prefix
    :param key:
    :param nargs:
    :param width:
    :return: hex character offsets, one per slot
    """
    offsets = []  # type: List[int]
    for i in range(nargs):
        marker = slot_marker(key, i, width)
        if len(marker) != width:
            # key + i does not fit the slot
            raise PatchTargetNotFound(i, marker)
        positions = _find_aligned(code, marker)
        if not positions:
            raise PatchTargetNotFound(i, marker)
        if len(positions) > 1:
            raise PatchTargetAmbiguous(i, marker)
        offsets.append(positions[0])

    ordered = sorted(offsets)
    for previous, current in zip(ordered, ordered[1:]):
        if current - previous < width:
            raise PatchTargetAmbiguous(offsets.index(current), code[current : current + width])
    return offsets


def _encode_argument(index: int, value, width: int) -> str:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArguments(
            "Argument {} must be an integer, got {!r}".format(index, value)
        )
    if value < 0:
        raise InvalidArguments("Argument {} must not be negative".format(index))
    encoded = format(value, "0{}x".format(width))
    if len(encoded) > width:
        raise InvalidArguments(
            "Argument {} does not fit in a {} hex character slot".format(index, width)
        )
    return encoded


def compose(
    structure: BytecodeStructure,
    args: Sequence[int],
    width: int = SLOT_WIDTH,
    obfuscated: bool = False,
) -> str:
    """Compose the executable bytecode for a set of runtime arguments.

    :param structure: the compiled template
    :param args: one non-negative integer per slot
    :param width: slot width in hex characters
    :param obfuscated: the template is the byte-wise XOR 0xFF image of the bytecode
    :return: 0x-prefixed bytecode, same length as the template
    """
    if len(args) != structure.nargs:
        raise ArgumentCountMismatch(structure.nargs, len(args))
    if width not in SLOT_WIDTHS:
        raise ValueError("Unsupported slot width {}".format(width))

    replacements = [_encode_argument(i, value, width) for i, value in enumerate(args)]

    key = structure.key_value
    buffer = structure.code
    if obfuscated:
        # markers are searched in the clear, written in the obfuscated buffer
        offsets = locate_slots(obfuscate(buffer), key, structure.nargs, width)
        replacements = [obfuscate(r) for r in replacements]
    else:
        offsets = locate_slots(buffer, key, structure.nargs, width)

    patched = list(buffer)
    for offset, replacement in zip(offsets, replacements):
        patched[offset : offset + width] = replacement
    buffer = "".join(patched)

    if obfuscated:
        buffer = obfuscate(buffer)

    log.debug(
        "Composed %d argument(s) into %d bytes of bytecode", len(args), len(buffer) // 2
    )
    return "0x" + buffer


def extract_args(
    structure: BytecodeStructure,
    composed: str,
    width: int = SLOT_WIDTH,
    obfuscated: bool = False,
) -> List[int]:
    """Read the arguments back out of a composed input.

    :param structure: the template the input was composed from
    :param composed: output of :func:`compose`
    :param width:
    :param obfuscated:
    :return:
    """
    code = composed[2:] if composed[:2] in ("0x", "0X") else composed
    code = code.lower()
    template = obfuscate(structure.code) if obfuscated else structure.code
    offsets = locate_slots(template, structure.key_value, structure.nargs, width)
    return [int(code[offset : offset + width], 16) for offset in offsets]
