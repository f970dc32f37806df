"""This module contains general exceptions used by vunit."""


class VUnitBaseException(Exception):
    """The vunit exception base type."""

    pass


class CompilerError(VUnitBaseException):
    """A vunit exception denoting an error reported by the remote compiler."""

    pass


class CriticalError(VUnitBaseException):
    """A vunit exception denoting an unknown critical error has been encountered."""

    pass


class PreconditionError(VUnitBaseException):
    """Base type for errors caused by missing or invalid user input and context.

    These are raised before any state changes and are safe to retry once the
    input is fixed.
    """

    pass


class NoActiveAccount(PreconditionError):
    """There is no active account to send transactions from."""

    pass


class NoRpcClient(PreconditionError):
    """There is no active chain client."""

    pass


class NoTargetContract(PreconditionError):
    """No virtualization unit contract has been selected."""

    pass


class NoBytecodeStructure(PreconditionError):
    """No bytecode structure has been compiled yet."""

    pass


class InvalidArguments(PreconditionError):
    """The runtime arguments are missing or malformed."""

    pass


class InvalidGas(PreconditionError):
    """The gas value is missing or malformed."""

    pass


class InvalidFile(PreconditionError):
    """The executor file is missing or of an unsupported language."""

    pass


class InvalidContractAddress(PreconditionError):
    """The contract address is unknown or malformed."""

    pass


class WorkflowBusy(PreconditionError):
    """The workflow already has an invocation in flight."""

    pass


class ProtocolError(VUnitBaseException):
    """Base type for errors caused by a stale or incompatible bytecode structure.

    Recovery requires recompiling, not retrying.
    """

    pass


class ArgumentCountMismatch(ProtocolError):
    """The number of arguments differs from the structure's nargs."""

    def __init__(self, expected: int, got: int):
        super().__init__(
            "The number of arguments is a constant of the bytecode structure "
            "(expected {}, got {}), recompile to change it".format(expected, got)
        )
        self.expected = expected
        self.got = got


class PatchTargetNotFound(ProtocolError):
    """The slot marker of an argument is missing from the template."""

    def __init__(self, index: int, marker: str):
        super().__init__(
            "Slot marker {} for argument {} not found in bytecode".format(
                marker, index
            )
        )
        self.index = index
        self.marker = marker


class PatchTargetAmbiguous(ProtocolError):
    """The slot marker of an argument occurs more than once or overlaps another slot."""

    def __init__(self, index: int, marker: str):
        super().__init__(
            "Slot marker {} for argument {} is ambiguous in bytecode".format(
                marker, index
            )
        )
        self.index = index
        self.marker = marker


class InvalidBytecodeStructure(ProtocolError):
    """The compiler returned a malformed bytecode structure."""

    pass


class RequestAlreadyPending(VUnitBaseException):
    """A gas request is already outstanding for this negotiator."""

    pass


class GasRequestCancelled(VUnitBaseException):
    """The gas request was cancelled before a value was supplied."""

    pass


class TransactionFailed(VUnitBaseException):
    """A transport or RPC error ended a workflow invocation.

    :param stage: the workflow state in which the failure happened
    :param cause: the raw underlying error
    """

    def __init__(self, stage: str, cause: Exception, transaction_hash: str = None):
        super().__init__("Transaction failed while {}: {}".format(stage, cause))
        self.stage = stage
        self.cause = cause
        self.transaction_hash = transaction_hash


class ReceiptTimeout(VUnitBaseException):
    """No receipt arrived before the timeout."""

    def __init__(self, transaction_hash: str, timeout: float):
        super().__init__(
            "Timed out after {}s waiting for the receipt of {}".format(
                timeout, transaction_hash
            )
        )
        self.transaction_hash = transaction_hash
        self.timeout = timeout


class TransactionReverted(VUnitBaseException):
    """The transaction was mined but reverted."""

    def __init__(self, transaction_hash: str):
        super().__init__("Transaction {} reverted".format(transaction_hash))
        self.transaction_hash = transaction_hash


class DecodeError(VUnitBaseException):
    """The receipt could not be attributed to an output.

    The transaction may have succeeded on-chain, its hash is kept so the
    ambiguity can be surfaced.
    """

    def __init__(self, message: str, transaction_hash: str = None):
        if transaction_hash:
            message = "{} (transaction {})".format(message, transaction_hash)
        super().__init__(message)
        self.transaction_hash = transaction_hash
