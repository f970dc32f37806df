"""This module contains the gas choices offered to the user once an estimate
is known."""
import logging

from enum import Enum

from vunit.exceptions import InvalidGas
from vunit.support.support_utils import parse_quantity

log = logging.getLogger(__name__)

GAS_BUFFER_PERCENT = 115


class GasOption(Enum):
    ESTIMATE = "estimate"
    BUFFER = "buffer"
    CUSTOM = "custom"


def buffered(estimate) -> int:
    """

    :param estimate:
    :return: the estimate with a 15% safety margin, rounded down
    """
    return parse_quantity(estimate) * GAS_BUFFER_PERCENT // 100


def choose_gas(option: GasOption, estimate, custom=None) -> str:
    """Turn a gas option into the value supplied to a waiting workflow.

    :param option:
    :param estimate: the gas estimate
    :param custom: the user's value, required for GasOption.CUSTOM
    :return: decimal gas string
    """
    if option is GasOption.ESTIMATE:
        return str(parse_quantity(estimate))
    if option is GasOption.BUFFER:
        return str(buffered(estimate))
    if custom is None or str(custom).strip() == "":
        raise InvalidGas("A custom gas value is required")
    try:
        return str(parse_quantity(custom))
    except ValueError:
        raise InvalidGas("Invalid gas {!r}".format(custom))
