"""This module contains the transaction workflows.

Deploying the virtualization unit and executing composed bytecode through it
follow the same protocol:

    Idle -> Estimating -> AwaitingGas -> Sending -> Sent -> AwaitingReceipt
         -> Decoding -> Done

with Error reachable from every state but Idle and Done. One event is emitted
per transition, synchronously and in order, to every subscribed listener.
"""
import asyncio
import logging

from typing import Callable, Dict, List, Optional

from vunit.ethereum.vunit_abi import (
    creation_bytecode,
    decode_runtime_return,
    encode_get_runtime_return,
    encode_run_bytecode,
    find_deployed_address,
)
from vunit.exceptions import (
    DecodeError,
    GasRequestCancelled,
    InvalidArguments,
    InvalidGas,
    NoActiveAccount,
    NoRpcClient,
    NoTargetContract,
    ReceiptTimeout,
    TransactionFailed,
    TransactionReverted,
    VUnitBaseException,
    WorkflowBusy,
)
from vunit.support.support_utils import parse_quantity, safe_decode
from vunit.workflow.context import ChainContext
from vunit.workflow.negotiator import GasNegotiator
from vunit.workflow.states import (
    STATUS_BY_STATE,
    TERMINAL_STATES,
    TRANSITIONS,
    DeploymentResult,
    ExecutionResult,
    TransactionStatus,
    WorkflowEvent,
    WorkflowState,
)

log = logging.getLogger(__name__)

Listener = Callable[[WorkflowEvent], None]


class TransactionWorkflow:
    """Base state machine shared by deployment and execution."""

    kind = "transaction"

    def __init__(self, workflow_id: str = None) -> None:
        self.workflow_id = workflow_id or self.kind
        self.negotiator = GasNegotiator(self.workflow_id)
        self.state = WorkflowState.IDLE
        self.invocation = 0
        self.gas_estimate = None  # type: Optional[str]
        self.transaction_hash = None  # type: Optional[str]
        self.error = None  # type: Optional[Exception]
        self.result = None
        self._cancel_requested = False
        self._listeners = []  # type: List[Listener]
        self._terminal_callbacks = []  # type: List[Listener]

    @property
    def status(self) -> TransactionStatus:
        return STATUS_BY_STATE[self.state]

    @property
    def busy(self) -> bool:
        return self.state not in (WorkflowState.IDLE,) + TERMINAL_STATES

    @property
    def estimating(self) -> bool:
        return self.state is WorkflowState.ESTIMATING

    @property
    def awaiting_gas(self) -> bool:
        return self.state is WorkflowState.AWAITING_GAS

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for every transition. Registering the same
        listener twice has no effect.

        :param listener:
        :return: a function removing the listener
        """
        if listener not in self._listeners:
            self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def on_terminal(self, callback: Listener) -> Callable[[], None]:
        """Register a callback fired once per invocation on Done, Error or
        cancellation.

        :param callback:
        :return: a function removing the callback
        """
        if callback not in self._terminal_callbacks:
            self._terminal_callbacks.append(callback)
        return (
            lambda: self._terminal_callbacks.remove(callback)
            if callback in self._terminal_callbacks
            else None
        )

    def supply_gas(self, gas) -> bool:
        """Deliver the user's gas choice to the waiting invocation.

        :param gas: decimal or 0x-hex quantity
        :return: False when no request is outstanding
        """
        if gas is None or str(gas).strip() == "":
            raise InvalidGas("Invalid gas")
        try:
            parse_quantity(gas)
        except ValueError:
            raise InvalidGas("Invalid gas {!r}".format(gas))
        request = self.negotiator.pending
        if request is None:
            log.warning("%s: no gas request is pending, ignoring gas", self.workflow_id)
            return False
        return self.negotiator.supply(request, str(gas).strip())

    def cancel(self) -> bool:
        """Stop the invocation before anything is sent.

        :return: whether the invocation will stop
        """
        if self.state is WorkflowState.ESTIMATING:
            self._cancel_requested = True
            return True
        if self.state is WorkflowState.AWAITING_GAS:
            return self.negotiator.cancel()
        if self.busy:
            log.warning(
                "%s: transaction already submitted, it is tracked to completion",
                self.workflow_id,
            )
        return False

    def clear(self) -> None:
        """Return a finished or failed workflow to Idle."""
        if self.busy and not self.cancel():
            raise WorkflowBusy(
                "{} has a transaction in flight".format(self.workflow_id)
            )
        if not self.busy:
            self._reset()

    def _reset(self) -> None:
        self.state = WorkflowState.IDLE
        self.gas_estimate = None
        self.transaction_hash = None
        self.error = None
        self.result = None
        self._cancel_requested = False
        self._clear_input()

    def _begin(self) -> None:
        if self.busy:
            raise WorkflowBusy(
                "{} is already {}".format(self.workflow_id, self.state.value)
            )
        self._reset()
        self.invocation += 1

    def _emit(self, event: WorkflowEvent, callbacks: List[Listener]) -> None:
        for listener in list(callbacks):
            try:
                listener(event)
            except Exception:
                log.exception("%s: listener %r failed on %r", self.workflow_id, listener, event)

    def _transition(self, state: WorkflowState, **payload) -> WorkflowEvent:
        if state is not WorkflowState.ERROR and state not in TRANSITIONS[self.state]:
            raise RuntimeError(
                "Illegal transition {} -> {}".format(self.state.value, state.value)
            )
        log.debug("%s: %s -> %s", self.workflow_id, self.state.value, state.value)
        self.state = state
        event = WorkflowEvent(self.workflow_id, self.invocation, state, payload)
        self._emit(event, self._listeners)
        if event.terminal:
            self._emit(event, self._terminal_callbacks)
        return event

    def _fail(self, error: VUnitBaseException) -> VUnitBaseException:
        log.error("%s: %s", self.workflow_id, error)
        self.error = error
        self._transition(
            WorkflowState.ERROR, error=str(error), errorType=type(error).__name__
        )
        return error

    def _finish_cancelled(self) -> None:
        self.gas_estimate = None
        self._clear_input()
        self._transition(WorkflowState.IDLE, cancelled=True)

    def validate(self, context: ChainContext) -> None:
        if context is None or not context.account:
            raise NoActiveAccount("Invalid account.")
        if context.client is None:
            raise NoRpcClient("Invalid chain client.")

    async def _invoke(self, context: ChainContext):
        try:
            return await self._advance(context)
        except asyncio.CancelledError:
            self._abandon()
            raise

    def _abandon(self) -> None:
        if self.state in (WorkflowState.ESTIMATING, WorkflowState.AWAITING_GAS):
            log.info("%s: invocation cancelled while %s", self.workflow_id, self.state.value)
            self.negotiator.cancel()
            self._finish_cancelled()
        elif self.busy:
            self._fail(
                TransactionFailed(
                    self.state.value,
                    RuntimeError("invocation cancelled, the transaction is no longer tracked"),
                    self.transaction_hash,
                )
            )

    async def _advance(self, context: ChainContext):
        self._transition(WorkflowState.ESTIMATING)
        try:
            transaction = self._transaction(context)
            estimate = await context.client.estimate_gas(transaction)
        except Exception as e:
            if self._cancel_requested:
                self._finish_cancelled()
                raise GasRequestCancelled("{} was cancelled".format(self.workflow_id))
            raise self._fail(TransactionFailed(WorkflowState.ESTIMATING.value, e))

        if self._cancel_requested:
            self._finish_cancelled()
            raise GasRequestCancelled("{} was cancelled".format(self.workflow_id))

        self.gas_estimate = str(estimate)
        request = self.negotiator.request_gas()
        self._transition(WorkflowState.AWAITING_GAS, gasEstimate=self.gas_estimate)
        try:
            gas = await self.negotiator.wait(request)
        except GasRequestCancelled:
            self._finish_cancelled()
            raise

        transaction["gas"] = parse_quantity(gas)
        self._transition(WorkflowState.SENDING, gas=gas)
        try:
            transaction_hash = await context.client.send_transaction(transaction)
        except Exception as e:
            raise self._fail(TransactionFailed(WorkflowState.SENDING.value, e))

        self.transaction_hash = transaction_hash
        self._transition(WorkflowState.SENT, transactionHash=transaction_hash)
        self._transition(WorkflowState.AWAITING_RECEIPT, transactionHash=transaction_hash)
        try:
            receipt = await context.client.wait_for_receipt(transaction_hash)
        except ReceiptTimeout as e:
            raise self._fail(e)
        except Exception as e:
            raise self._fail(
                TransactionFailed(
                    WorkflowState.AWAITING_RECEIPT.value, e, transaction_hash
                )
            )
        if _reverted(receipt):
            raise self._fail(TransactionReverted(transaction_hash))

        self._transition(WorkflowState.DECODING, transactionHash=transaction_hash)
        try:
            result = await self._decode(context, receipt)
        except DecodeError as e:
            raise self._fail(e)
        except Exception as e:
            raise self._fail(
                TransactionFailed(WorkflowState.DECODING.value, e, transaction_hash)
            )

        self.result = result
        self.gas_estimate = None
        self._clear_input()
        self._transition(WorkflowState.DONE, **result.as_dict())
        return result

    def _transaction(self, context: ChainContext) -> Dict:
        raise NotImplementedError

    async def _decode(self, context: ChainContext, receipt: Dict):
        raise NotImplementedError

    def _clear_input(self) -> None:
        pass


def _reverted(receipt: Dict) -> bool:
    status = receipt.get("status")
    if status is None:
        # pre-Byzantium receipts carry no status
        return False
    return parse_quantity(status) == 0


class DeploymentWorkflow(TransactionWorkflow):
    """Deploys the virtualization unit contract."""

    kind = "deployment"

    async def deploy(self, context: ChainContext) -> DeploymentResult:
        """

        :param context:
        :return: the address of the new contract
        """
        self.validate(context)
        self._begin()
        return await self._invoke(context)

    def _transaction(self, context: ChainContext) -> Dict:
        return {"from": context.account, "data": creation_bytecode()}

    async def _decode(self, context: ChainContext, receipt: Dict) -> DeploymentResult:
        contract_address = receipt.get("contractAddress")
        if not contract_address:
            raise DecodeError("Receipt has no contract address", self.transaction_hash)
        return DeploymentResult(contract_address, self.transaction_hash)


class ExecutionWorkflow(TransactionWorkflow):
    """Runs composed bytecode through a deployed virtualization unit and reads
    its output."""

    kind = "execution"

    def __init__(self, workflow_id: str = None) -> None:
        super().__init__(workflow_id)
        self.contract_address = None  # type: Optional[str]
        self.input_bytecode = None  # type: Optional[str]

    async def run(
        self, context: ChainContext, contract_address: str, input_bytecode: str
    ) -> ExecutionResult:
        """

        :param context:
        :param contract_address: the virtualization unit to run against
        :param input_bytecode: composed, 0x-prefixed bytecode
        :return: the output bytes and the transaction hash
        """
        self.validate(context)
        if not contract_address:
            raise NoTargetContract("Invalid virtualization unit contract.")
        if not input_bytecode:
            raise InvalidArguments("No composed input to execute.")
        try:
            safe_decode(input_bytecode)
        except (TypeError, ValueError):
            raise InvalidArguments("Composed input is not hex bytecode: {!r}".format(input_bytecode))
        self._begin()
        self.contract_address = contract_address
        self.input_bytecode = input_bytecode
        return await self._invoke(context)

    def _transaction(self, context: ChainContext) -> Dict:
        return {
            "from": context.account,
            "to": self.contract_address,
            "data": encode_run_bytecode(self.input_bytecode),
        }

    async def _decode(self, context: ChainContext, receipt: Dict) -> ExecutionResult:
        bytecode_address = find_deployed_address(
            receipt.get("logs") or [], self.contract_address, self.transaction_hash
        )
        raw = await context.client.call(
            {
                "from": context.account,
                "to": self.contract_address,
                "data": encode_get_runtime_return(bytecode_address),
            }
        )
        output = decode_runtime_return(raw, self.transaction_hash)
        return ExecutionResult(output, self.transaction_hash, bytecode_address)

    def _clear_input(self) -> None:
        self.input_bytecode = None
