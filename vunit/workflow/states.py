"""This module contains the states, statuses and events of the transaction
workflows."""
from enum import Enum
from typing import Any, Dict, Optional


class WorkflowState(Enum):
    IDLE = "idle"
    ESTIMATING = "estimating"
    AWAITING_GAS = "awaitingGas"
    SENDING = "sending"
    SENT = "sent"
    AWAITING_RECEIPT = "awaitingReceipt"
    DECODING = "decoding"
    DONE = "done"
    ERROR = "error"


class TransactionStatus(Enum):
    NONE = "none"
    SENDING = "sending"
    SENT = "sent"
    CONFIRMING = "confirming"
    CONFIRMED = "confirmed"
    ERROR = "error"


STATUS_BY_STATE = {
    WorkflowState.IDLE: TransactionStatus.NONE,
    WorkflowState.ESTIMATING: TransactionStatus.NONE,
    WorkflowState.AWAITING_GAS: TransactionStatus.NONE,
    WorkflowState.SENDING: TransactionStatus.SENDING,
    WorkflowState.SENT: TransactionStatus.SENT,
    WorkflowState.AWAITING_RECEIPT: TransactionStatus.CONFIRMING,
    WorkflowState.DECODING: TransactionStatus.CONFIRMING,
    WorkflowState.DONE: TransactionStatus.CONFIRMED,
    WorkflowState.ERROR: TransactionStatus.ERROR,
}

# Transitions an invocation may take, Error aside
TRANSITIONS = {
    WorkflowState.IDLE: (WorkflowState.ESTIMATING,),
    WorkflowState.ESTIMATING: (WorkflowState.AWAITING_GAS, WorkflowState.IDLE),
    WorkflowState.AWAITING_GAS: (WorkflowState.SENDING, WorkflowState.IDLE),
    WorkflowState.SENDING: (WorkflowState.SENT,),
    WorkflowState.SENT: (WorkflowState.AWAITING_RECEIPT,),
    WorkflowState.AWAITING_RECEIPT: (WorkflowState.DECODING,),
    WorkflowState.DECODING: (WorkflowState.DONE,),
    WorkflowState.DONE: (),
    WorkflowState.ERROR: (),
}

TERMINAL_STATES = (WorkflowState.DONE, WorkflowState.ERROR)


class WorkflowEvent:
    """One state transition of a workflow invocation."""

    def __init__(
        self,
        workflow_id: str,
        invocation: int,
        state: WorkflowState,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.workflow_id = workflow_id
        self.invocation = invocation
        self.state = state
        self.payload = payload or {}

    @property
    def status(self) -> TransactionStatus:
        return STATUS_BY_STATE[self.state]

    @property
    def cancelled(self) -> bool:
        return bool(self.payload.get("cancelled"))

    @property
    def terminal(self) -> bool:
        return self.state in TERMINAL_STATES or self.cancelled

    def __repr__(self) -> str:
        return "<WorkflowEvent {}#{} {}>".format(
            self.workflow_id, self.invocation, self.state.value
        )


class ExecutionResult:
    """Output of a bytecode execution."""

    def __init__(self, output: str, transaction_hash: str, bytecode_address: str) -> None:
        self.output = output
        self.transaction_hash = transaction_hash
        self.bytecode_address = bytecode_address

    def as_dict(self) -> Dict[str, str]:
        return {
            "output": self.output,
            "transactionHash": self.transaction_hash,
            "bytecodeAddress": self.bytecode_address,
        }


class DeploymentResult:
    """Address of a freshly deployed virtualization unit."""

    def __init__(self, contract_address: str, transaction_hash: str) -> None:
        self.contract_address = contract_address
        self.transaction_hash = transaction_hash

    def as_dict(self) -> Dict[str, str]:
        return {
            "contractAddress": self.contract_address,
            "transactionHash": self.transaction_hash,
        }
