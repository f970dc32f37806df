import asyncio
import threading

import pytest

from tests import (
    ACCOUNT,
    BYTECODE_ADDRESS,
    CONTRACT,
    TX_HASH,
    FakeEth,
    wait_for,
)
from vunit.ethereum.chain import ChainClient
from vunit.ethereum.interface.rpc.exceptions import RpcError
from vunit.ethereum.vunit_abi import (
    GET_RUNTIME_RETURN_SIGNATURE,
    RUN_BYTECODE_SIGNATURE,
    creation_bytecode,
    function_selector,
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
    WorkflowBusy,
)
from vunit.workflow import (
    ChainContext,
    DeploymentWorkflow,
    ExecutionWorkflow,
    TransactionStatus,
    WorkflowState,
)

INPUT = "0x6001600201"

HAPPY_PATH = [
    WorkflowState.ESTIMATING,
    WorkflowState.AWAITING_GAS,
    WorkflowState.SENDING,
    WorkflowState.SENT,
    WorkflowState.AWAITING_RECEIPT,
    WorkflowState.DECODING,
    WorkflowState.DONE,
]


def context(eth, account=ACCOUNT, **kwargs):
    kwargs.setdefault("poll_interval", 0.01)
    return ChainContext(account, ChainClient(eth, **kwargs))


def recorded(workflow):
    events = []
    workflow.subscribe(events.append)
    return events


@pytest.mark.asyncio
async def test_execution_happy_path():
    eth = FakeEth()
    workflow = ExecutionWorkflow()
    events = recorded(workflow)

    task = asyncio.ensure_future(workflow.run(context(eth), CONTRACT, INPUT))
    await wait_for(lambda: workflow.awaiting_gas)
    assert workflow.gas_estimate == "21000"
    assert events[-1].payload["gasEstimate"] == "21000"
    assert workflow.status is TransactionStatus.NONE

    assert workflow.supply_gas("24150")
    result = await task

    assert [event.state for event in events] == HAPPY_PATH
    assert [event.status for event in events] == [
        TransactionStatus.NONE,
        TransactionStatus.NONE,
        TransactionStatus.SENDING,
        TransactionStatus.SENT,
        TransactionStatus.CONFIRMING,
        TransactionStatus.CONFIRMING,
        TransactionStatus.CONFIRMED,
    ]
    assert all(event.invocation == 1 for event in events)
    assert result.output == "0x2a"
    assert result.transaction_hash == TX_HASH
    assert result.bytecode_address.lower() == BYTECODE_ADDRESS
    assert events[-1].payload["output"] == "0x2a"
    assert workflow.gas_estimate is None
    assert workflow.input_bytecode is None

    (transaction,) = eth.sent("eth_sendTransaction")[0]
    assert transaction["gas"] == "0x5e56"
    assert transaction["to"] == CONTRACT
    assert transaction["from"] == ACCOUNT
    assert transaction["data"].startswith("0x" + function_selector(RUN_BYTECODE_SIGNATURE))

    (call, block) = eth.sent("eth_call")[0]
    assert call["data"].startswith("0x" + function_selector(GET_RUNTIME_RETURN_SIGNATURE))
    assert call["data"].endswith(BYTECODE_ADDRESS[2:])


@pytest.mark.asyncio
async def test_deployment_happy_path():
    address = "0x" + "11" * 20
    eth = FakeEth(
        eth_getTransactionReceipt={
            "transactionHash": TX_HASH,
            "status": "0x1",
            "contractAddress": address,
            "logs": [],
        }
    )
    workflow = DeploymentWorkflow()
    events = recorded(workflow)

    task = asyncio.ensure_future(workflow.deploy(context(eth)))
    await wait_for(lambda: workflow.awaiting_gas)
    workflow.supply_gas("0x7a120")
    result = await task

    assert [event.state for event in events] == HAPPY_PATH
    assert result.contract_address == address
    assert result.transaction_hash == TX_HASH
    (transaction,) = eth.sent("eth_sendTransaction")[0]
    assert "to" not in transaction
    assert transaction["data"] == creation_bytecode()
    assert transaction["gas"] == "0x7a120"
    assert eth.sent("eth_call") == []


@pytest.mark.asyncio
async def test_estimate_failure():
    eth = FakeEth(eth_estimateGas=RpcError("eth_estimateGas", -32000, "execution reverted"))
    workflow = ExecutionWorkflow()
    events = recorded(workflow)

    with pytest.raises(TransactionFailed) as e:
        await workflow.run(context(eth), CONTRACT, INPUT)

    assert e.value.stage == "estimating"
    assert isinstance(e.value.cause, RpcError)
    assert [event.state for event in events] == [
        WorkflowState.ESTIMATING,
        WorkflowState.ERROR,
    ]
    assert events[-1].payload["errorType"] == "TransactionFailed"
    assert workflow.status is TransactionStatus.ERROR
    assert workflow.gas_estimate is None
    assert workflow.negotiator.pending is None
    assert eth.sent("eth_sendTransaction") == []


@pytest.mark.asyncio
async def test_send_failure():
    eth = FakeEth(eth_sendTransaction=RpcError("eth_sendTransaction", -32000, "nonce too low"))
    workflow = DeploymentWorkflow()

    task = asyncio.ensure_future(workflow.deploy(context(eth)))
    await wait_for(lambda: workflow.awaiting_gas)
    workflow.supply_gas("100000")
    with pytest.raises(TransactionFailed) as e:
        await task
    assert e.value.stage == "sending"
    assert workflow.state is WorkflowState.ERROR


@pytest.mark.asyncio
async def test_duplicate_gas_supply():
    eth = FakeEth()
    workflow = ExecutionWorkflow()

    task = asyncio.ensure_future(workflow.run(context(eth), CONTRACT, INPUT))
    await wait_for(lambda: workflow.awaiting_gas)
    assert workflow.supply_gas("30000")
    assert not workflow.supply_gas("40000")
    await task

    assert len(eth.sent("eth_sendTransaction")) == 1
    (transaction,) = eth.sent("eth_sendTransaction")[0]
    assert transaction["gas"] == hex(30000)


@pytest.mark.asyncio
@pytest.mark.parametrize("gas", [None, "", "  ", "lots"])
async def test_invalid_gas(gas):
    workflow = ExecutionWorkflow()
    task = asyncio.ensure_future(workflow.run(context(FakeEth()), CONTRACT, INPUT))
    await wait_for(lambda: workflow.awaiting_gas)
    with pytest.raises(InvalidGas):
        workflow.supply_gas(gas)
    assert workflow.awaiting_gas
    workflow.cancel()
    with pytest.raises(GasRequestCancelled):
        await task


@pytest.mark.asyncio
async def test_cancel_while_awaiting_gas():
    eth = FakeEth()
    workflow = ExecutionWorkflow()
    events = recorded(workflow)
    terminal = []
    workflow.on_terminal(terminal.append)

    task = asyncio.ensure_future(workflow.run(context(eth), CONTRACT, INPUT))
    await wait_for(lambda: workflow.awaiting_gas)
    assert workflow.cancel()
    with pytest.raises(GasRequestCancelled):
        await task

    assert [event.state for event in events] == [
        WorkflowState.ESTIMATING,
        WorkflowState.AWAITING_GAS,
        WorkflowState.IDLE,
    ]
    assert events[-1].cancelled
    assert len(terminal) == 1
    assert workflow.state is WorkflowState.IDLE
    assert workflow.gas_estimate is None
    assert eth.sent("eth_sendTransaction") == []


@pytest.mark.asyncio
async def test_cancel_while_estimating():
    release = threading.Event()

    def slow_estimate(params):
        release.wait(5)
        return hex(21000)

    eth = FakeEth(eth_estimateGas=slow_estimate)
    workflow = ExecutionWorkflow()
    events = recorded(workflow)

    task = asyncio.ensure_future(workflow.run(context(eth), CONTRACT, INPUT))
    await wait_for(lambda: workflow.estimating)
    assert workflow.cancel()
    release.set()
    with pytest.raises(GasRequestCancelled):
        await task

    assert [event.state for event in events] == [
        WorkflowState.ESTIMATING,
        WorkflowState.IDLE,
    ]
    assert workflow.negotiator.pending is None


@pytest.mark.asyncio
async def test_cancel_after_sending_is_refused():
    release = threading.Event()

    def slow_receipt(params):
        release.wait(5)
        return {"transactionHash": TX_HASH, "status": "0x1", "logs": [], "contractAddress": CONTRACT}

    eth = FakeEth(eth_getTransactionReceipt=slow_receipt)
    workflow = DeploymentWorkflow()

    task = asyncio.ensure_future(workflow.deploy(context(eth)))
    await wait_for(lambda: workflow.awaiting_gas)
    workflow.supply_gas("21000")
    await wait_for(lambda: workflow.state is WorkflowState.AWAITING_RECEIPT)
    assert not workflow.cancel()
    release.set()
    result = await task
    assert result.contract_address == CONTRACT


@pytest.mark.asyncio
async def test_decode_error_keeps_the_transaction_hash():
    eth = FakeEth(
        eth_getTransactionReceipt={"transactionHash": TX_HASH, "status": "0x1", "logs": []}
    )
    workflow = ExecutionWorkflow()
    events = recorded(workflow)

    task = asyncio.ensure_future(workflow.run(context(eth), CONTRACT, INPUT))
    await wait_for(lambda: workflow.awaiting_gas)
    workflow.supply_gas("21000")
    with pytest.raises(DecodeError) as e:
        await task

    assert e.value.transaction_hash == TX_HASH
    assert events[-2].state is WorkflowState.DECODING
    assert events[-1].state is WorkflowState.ERROR
    assert workflow.transaction_hash == TX_HASH


@pytest.mark.asyncio
async def test_reverted_transaction():
    eth = FakeEth(
        eth_getTransactionReceipt={"transactionHash": TX_HASH, "status": "0x0", "logs": []}
    )
    workflow = ExecutionWorkflow()

    task = asyncio.ensure_future(workflow.run(context(eth), CONTRACT, INPUT))
    await wait_for(lambda: workflow.awaiting_gas)
    workflow.supply_gas("21000")
    with pytest.raises(TransactionReverted):
        await task
    assert workflow.status is TransactionStatus.ERROR


@pytest.mark.asyncio
async def test_receipt_timeout():
    eth = FakeEth(eth_getTransactionReceipt=None)
    workflow = DeploymentWorkflow()

    task = asyncio.ensure_future(
        workflow.deploy(context(eth, receipt_timeout=0.05))
    )
    await wait_for(lambda: workflow.awaiting_gas)
    workflow.supply_gas("21000")
    with pytest.raises(ReceiptTimeout) as e:
        await task
    assert e.value.transaction_hash == TX_HASH
    assert workflow.state is WorkflowState.ERROR


@pytest.mark.asyncio
async def test_preconditions_change_no_state():
    workflow = ExecutionWorkflow()
    events = recorded(workflow)

    with pytest.raises(NoActiveAccount):
        await workflow.run(context(FakeEth(), account=None), CONTRACT, INPUT)
    with pytest.raises(NoRpcClient):
        await workflow.run(ChainContext(ACCOUNT, None), CONTRACT, INPUT)
    with pytest.raises(NoTargetContract):
        await workflow.run(context(FakeEth()), None, INPUT)

    assert events == []
    assert workflow.state is WorkflowState.IDLE
    assert workflow.invocation == 0


@pytest.mark.asyncio
async def test_busy_workflow_rejects_new_invocation():
    eth = FakeEth()
    workflow = ExecutionWorkflow()

    task = asyncio.ensure_future(workflow.run(context(eth), CONTRACT, INPUT))
    await wait_for(lambda: workflow.awaiting_gas)
    with pytest.raises(WorkflowBusy):
        await workflow.run(context(eth), CONTRACT, INPUT)
    workflow.supply_gas("21000")
    await task


@pytest.mark.asyncio
async def test_new_invocation_after_error():
    eth = FakeEth(eth_estimateGas=RpcError("eth_estimateGas", -32000, "boom"))
    workflow = ExecutionWorkflow()
    events = recorded(workflow)

    with pytest.raises(TransactionFailed):
        await workflow.run(context(eth), CONTRACT, INPUT)

    eth.responses["eth_estimateGas"] = hex(21000)
    task = asyncio.ensure_future(workflow.run(context(eth), CONTRACT, INPUT))
    await wait_for(lambda: workflow.awaiting_gas)
    workflow.supply_gas("21000")
    await task

    assert [event.invocation for event in events] == [1, 1] + [2] * 7
    assert workflow.error is None


@pytest.mark.asyncio
async def test_clear_returns_to_idle():
    eth = FakeEth(eth_estimateGas=RpcError("eth_estimateGas", -32000, "boom"))
    workflow = DeploymentWorkflow()
    with pytest.raises(TransactionFailed):
        await workflow.deploy(context(eth))

    workflow.clear()
    assert workflow.state is WorkflowState.IDLE
    assert workflow.error is None


@pytest.mark.asyncio
async def test_subscribe_is_idempotent():
    workflow = ExecutionWorkflow()
    events = []
    workflow.subscribe(events.append)
    unsubscribe = workflow.subscribe(events.append)

    task = asyncio.ensure_future(workflow.run(context(FakeEth()), CONTRACT, INPUT))
    await wait_for(lambda: workflow.awaiting_gas)
    unsubscribe()
    workflow.supply_gas("21000")
    await task

    assert [event.state for event in events] == HAPPY_PATH[:2]


@pytest.mark.asyncio
async def test_failing_listener_does_not_break_the_workflow():
    def broken(event):
        raise RuntimeError("listener bug")

    workflow = ExecutionWorkflow()
    workflow.subscribe(broken)
    events = recorded(workflow)

    task = asyncio.ensure_future(workflow.run(context(FakeEth()), CONTRACT, INPUT))
    await wait_for(lambda: workflow.awaiting_gas)
    workflow.supply_gas("21000")
    await task
    assert [event.state for event in events] == HAPPY_PATH


@pytest.mark.asyncio
@pytest.mark.parametrize("input_bytecode", ["0xzz", "0x600", "0x60g0"])
async def test_run_rejects_malformed_input(input_bytecode):
    eth = FakeEth()
    workflow = ExecutionWorkflow()
    events = recorded(workflow)

    with pytest.raises(InvalidArguments):
        await workflow.run(context(eth), CONTRACT, input_bytecode)

    assert events == []
    assert workflow.state is WorkflowState.IDLE
    assert not workflow.busy
    assert eth.calls == []

    task = asyncio.ensure_future(workflow.run(context(eth), CONTRACT, INPUT))
    await wait_for(lambda: workflow.awaiting_gas)
    workflow.supply_gas("30000")
    assert (await task).output == "0x2a"


@pytest.mark.asyncio
async def test_transaction_build_failure_ends_in_error(monkeypatch):
    def unreadable():
        raise OSError("virtualization_unit.bin is missing")

    monkeypatch.setattr("vunit.workflow.transaction.creation_bytecode", unreadable)
    eth = FakeEth()
    workflow = DeploymentWorkflow()
    events = recorded(workflow)

    with pytest.raises(TransactionFailed) as e:
        await workflow.deploy(context(eth))

    assert e.value.stage == "estimating"
    assert isinstance(e.value.cause, OSError)
    assert [event.state for event in events] == [
        WorkflowState.ESTIMATING,
        WorkflowState.ERROR,
    ]
    assert not workflow.busy
    assert eth.sent("eth_estimateGas") == []

    monkeypatch.undo()
    task = asyncio.ensure_future(workflow.deploy(context(eth)))
    await wait_for(lambda: workflow.awaiting_gas)
    assert workflow.invocation == 2
    workflow.cancel()
    with pytest.raises(GasRequestCancelled):
        await task


@pytest.mark.asyncio
async def test_cancelled_task_releases_the_gas_request():
    eth = FakeEth()
    workflow = ExecutionWorkflow()
    events = recorded(workflow)

    task = asyncio.ensure_future(workflow.run(context(eth), CONTRACT, INPUT))
    await wait_for(lambda: workflow.awaiting_gas)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert workflow.negotiator.pending is None
    assert not workflow.busy
    assert workflow.state is WorkflowState.IDLE
    assert workflow.gas_estimate is None
    assert events[-1].cancelled
    assert not workflow.supply_gas("30000")
    assert eth.sent("eth_sendTransaction") == []


@pytest.mark.asyncio
async def test_cancelled_task_while_estimating_returns_to_idle():
    started = threading.Event()
    release = threading.Event()

    def slow_estimate(params):
        started.set()
        release.wait(5)
        return hex(21000)

    workflow = DeploymentWorkflow()
    task = asyncio.ensure_future(
        workflow.deploy(context(FakeEth(eth_estimateGas=slow_estimate)))
    )
    await wait_for(started.is_set)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    release.set()

    assert workflow.state is WorkflowState.IDLE
    assert workflow.negotiator.pending is None


@pytest.mark.asyncio
async def test_cancelled_task_after_sending_ends_in_error():
    eth = FakeEth(eth_getTransactionReceipt=None)
    workflow = ExecutionWorkflow()

    task = asyncio.ensure_future(
        workflow.run(context(eth, receipt_timeout=60), CONTRACT, INPUT)
    )
    await wait_for(lambda: workflow.awaiting_gas)
    workflow.supply_gas("30000")
    await wait_for(lambda: workflow.state is WorkflowState.AWAITING_RECEIPT)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert workflow.state is WorkflowState.ERROR
    assert isinstance(workflow.error, TransactionFailed)
    assert workflow.error.stage == "awaitingReceipt"
    assert workflow.error.transaction_hash == TX_HASH
    assert not workflow.busy
