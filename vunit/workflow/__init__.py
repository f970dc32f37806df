from vunit.workflow.context import ChainContext
from vunit.workflow.negotiator import GasNegotiator, GasRequest
from vunit.workflow.states import (
    DeploymentResult,
    ExecutionResult,
    TransactionStatus,
    WorkflowEvent,
    WorkflowState,
)
from vunit.workflow.transaction import (
    DeploymentWorkflow,
    ExecutionWorkflow,
    TransactionWorkflow,
)
