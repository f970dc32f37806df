"""This module contains utility functions for the vunit support package."""

from eth_hash.auto import keccak
import logging

log = logging.getLogger(__name__)

WEI_PER_ETHER = 10 ** 18


def sha3(value):
    """Keccak-256 of bytes, of a 0x-hex string's bytes, or of a text's UTF-8
    encoding.

    :param value:
    :return: the 32 byte digest
    """
    if isinstance(value, str):
        if value[:2] == "0x":
            return keccak(bytes.fromhex(value[2:]))
        return keccak(value.encode())
    return keccak(value)


def strip_0x(value: str) -> str:
    """

    :param value: hex string
    :return: the hex string without its 0x prefix
    """
    return value[2:] if value[:2] in ("0x", "0X") else value


def safe_decode(hex_encoded_string):
    """

    :param hex_encoded_string:
    :return:
    """
    return bytes.fromhex(strip_0x(hex_encoded_string))


def parse_quantity(value) -> int:
    """Parse an integer given as int, decimal string or 0x-hex string.

    :param value:
    :return:
    """
    if isinstance(value, bool):
        raise ValueError("Not a quantity: {!r}".format(value))
    if isinstance(value, int):
        return value
    value = str(value).strip()
    if value[:2] in ("0x", "0X"):
        return int(value, 16)
    return int(value, 10)


def wei_to_ether(wei) -> float:
    return parse_quantity(wei) / WEI_PER_ETHER
