"""This module contains the bridge between the models and the presentation
layer.

Inbound commands are routed to their handler. Workflow events are turned into
view snapshots following a fixed fan-out table, and the side effects of a
finished invocation (a history row, a new contract) are applied once per
invocation.
"""
import asyncio
import json
import logging

from typing import Any, Awaitable, Callable, Dict, Set, Tuple

from vunit.compiler.api import CompilerApi
from vunit.compiler.files import load_executor_file
from vunit.exceptions import (
    GasRequestCancelled,
    InvalidArguments,
    NoBytecodeStructure,
    NoTargetContract,
    WorkflowBusy,
)
from vunit.models.executor import ExecutorModel
from vunit.models.transaction_history import (
    TransactionHistoryModel,
    TransactionHistoryRow,
)
from vunit.models.virtualization_unit import VirtualizationUnitModel
from vunit.models.wallet import WalletSession
from vunit.bridge.presenter import Presenter
from vunit.bridge.views import (
    Command,
    ViewType,
    executor_view_state,
    transaction_history_view_state,
    virtualization_unit_view_state,
    wallet_view_state,
)
from vunit.support.support_utils import parse_quantity
from vunit.workflow.states import WorkflowEvent, WorkflowState
from vunit.workflow.transaction import TransactionWorkflow

log = logging.getLogger(__name__)

EXECUTION = "execution"
DEPLOYMENT = "deployment"

# (workflow kind, finished) -> views to re-render
FAN_OUT = {
    (EXECUTION, False): (ViewType.EXECUTOR,),
    (EXECUTION, True): (
        ViewType.WALLET,
        ViewType.EXECUTOR,
        ViewType.TRANSACTION_HISTORY,
    ),
    (DEPLOYMENT, False): (ViewType.VIRTUALIZATION_UNIT,),
    (DEPLOYMENT, True): (
        ViewType.WALLET,
        ViewType.VIRTUALIZATION_UNIT,
        ViewType.EXECUTOR,
    ),
}


def parse_args(value) -> list:
    """
    Parses runtime arguments given as a JSON array or a list
    :param value:
    :return: list of integers
    """
    if value is None or value == "":
        raise InvalidArguments("Invalid arguments.")
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            raise InvalidArguments("Arguments must be a JSON array")
    if not isinstance(value, list):
        raise InvalidArguments("Arguments must be a JSON array")
    args = []
    for i, arg in enumerate(value):
        try:
            args.append(parse_quantity(arg))
        except (TypeError, ValueError):
            raise InvalidArguments("Argument {} is not an integer: {!r}".format(i, arg))
    return args


class EventSyncBridge:
    """Routes commands to the models and pushes snapshots to the presenter."""

    def __init__(
        self,
        presenter: Presenter,
        wallet: WalletSession,
        executor: ExecutorModel = None,
        virtualization_unit: VirtualizationUnitModel = None,
        history: TransactionHistoryModel = None,
        compiler: CompilerApi = None,
    ) -> None:
        self.presenter = presenter
        self.wallet = wallet
        self.executor = executor or ExecutorModel()
        self.virtualization_unit = virtualization_unit or VirtualizationUnitModel()
        self.history = history or TransactionHistoryModel()
        self.compiler = compiler or CompilerApi()
        self._composed = set()  # type: Set[Tuple[str, int]]
        self._tasks = set()  # type: Set[asyncio.Task]
        self._claimed = set()  # type: Set[asyncio.Task]
        self._kinds = {
            self.executor.workflow.workflow_id: EXECUTION,
            self.virtualization_unit.workflow.workflow_id: DEPLOYMENT,
        }
        self._handlers = {
            Command.COMPILE: self._compile,
            Command.ESTIMATE: self._estimate,
            Command.EXECUTE: self._execute,
            Command.DEPLOY: self._deploy,
            Command.SEND: self._send,
            Command.CANCEL_COMPILE: self._cancel_compile,
            Command.CANCEL_EXECUTION: self._cancel_execution,
            Command.CLEAR_DEPLOYMENT: self._clear_deployment,
            Command.SET_CONTRACT: self._set_contract,
            Command.SELECT_FILE: self._select_file,
            Command.CLEAR_FILE: self._clear_file,
            Command.READY: self._ready,
        }  # type: Dict[Command, Callable[[Any], Awaitable[Any]]]
        self.executor.workflow.subscribe(self._listener)
        self.virtualization_unit.workflow.subscribe(self._listener)

    @property
    def tasks(self) -> Set[asyncio.Task]:
        return set(self._tasks)

    def claim(self, task: asyncio.Task) -> asyncio.Task:
        """
        Marks a background task whose outcome the caller awaits itself, its
        failure is then raised to the caller instead of reported
        :param task: a task returned by dispatch()
        :return: the task
        """
        if task in self._tasks:
            self._claimed.add(task)
        return task

    async def dispatch(self, command, value=None):
        """
        Routes an inbound command to its handler
        :param command: a Command or its name
        :param value: the command payload
        :return: the handler's result, a task for long-running commands
        """
        try:
            command = Command(command)
        except ValueError:
            raise ValueError("Unknown command {!r}".format(command))
        log.debug("dispatch %s %r", command.value, value)
        return await self._handlers[command](value)

    def on_state_change(self, workflow_id: str, event: WorkflowEvent) -> None:
        """
        Applies the side effects of a workflow event and re-renders the views
        :param workflow_id:
        :param event:
        """
        kind = self._kinds.get(workflow_id)
        if kind is None:
            log.warning("Event from unknown workflow %s", workflow_id)
            return
        done = event.state is WorkflowState.DONE
        if done:
            self._compose(kind, workflow_id, event)
        self.sync(*FAN_OUT[(kind, done)])

    def _listener(self, event: WorkflowEvent) -> None:
        self.on_state_change(event.workflow_id, event)

    def _compose(self, kind: str, workflow_id: str, event: WorkflowEvent) -> None:
        key = (workflow_id, event.invocation)
        if key in self._composed:
            return
        self._composed.add(key)
        payload = event.payload
        if kind == EXECUTION:
            self.history.add_row(
                TransactionHistoryRow(
                    payload["output"],
                    payload["transactionHash"],
                    self.wallet.transaction_url(payload["transactionHash"]),
                )
            )
        else:
            self.virtualization_unit.add_contract(payload["contractAddress"])
            log.info("Virtualization unit deployed at %s", payload["contractAddress"])

    def snapshot(self, view: ViewType) -> Dict[str, Any]:
        """
        The synchronous snapshots, the wallet's needs update()
        :param view:
        :return:
        """
        if view is ViewType.EXECUTOR:
            return executor_view_state(
                self.executor, self.virtualization_unit, self.wallet
            )
        if view is ViewType.VIRTUALIZATION_UNIT:
            return virtualization_unit_view_state(self.virtualization_unit, self.wallet)
        if view is ViewType.TRANSACTION_HISTORY:
            return transaction_history_view_state(self.history, self.wallet)
        raise ValueError("{} has no synchronous snapshot".format(view))

    def sync(self, *views: ViewType) -> None:
        """
        Renders the views now, the wallet view in a background task
        :param views:
        """
        for view in views:
            if view is ViewType.WALLET:
                self._spawn(self._render_wallet())
            else:
                self.presenter.render(view, self.snapshot(view))

    async def update(self, *views: ViewType) -> None:
        for view in views:
            if view is ViewType.WALLET:
                await self._render_wallet()
            else:
                self.presenter.render(view, self.snapshot(view))

    async def _render_wallet(self) -> None:
        self.presenter.render(ViewType.WALLET, await wallet_view_state(self.wallet))

    def _spawn(self, coroutine) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coroutine)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        claimed = task in self._claimed
        self._claimed.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return
        if isinstance(error, GasRequestCancelled):
            log.info("%s", error)
            return
        if claimed:
            log.debug("Claimed task failed: %s", error)
            return
        log.error("Background task failed: %s", error)
        self.presenter.report_error(error)

    async def join(self) -> None:
        """Waits for every background task, failures included."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _check_idle(self, workflow: TransactionWorkflow) -> None:
        if workflow.busy:
            raise WorkflowBusy(
                "{} is already {}".format(workflow.workflow_id, workflow.state.value)
            )

    # -------------------- Handlers --------------------

    async def _compile(self, nargs) -> asyncio.Task:
        compilation = self.executor.begin_compile(nargs)
        self.sync(ViewType.EXECUTOR)
        return self._spawn(self._run_compile(compilation))

    async def _run_compile(self, compilation: int):
        try:
            return await self.executor.compile(self.compiler, compilation)
        finally:
            self.sync(ViewType.EXECUTOR)

    async def _estimate(self, value) -> asyncio.Task:
        args = parse_args(value)
        if self.executor.bytecode_structure is None:
            raise NoBytecodeStructure("Invalid bytecode structure.")
        contract = self.virtualization_unit.current_contract
        if not contract:
            raise NoTargetContract("Invalid virtualization unit contract.")
        workflow = self.executor.workflow
        context = self.wallet.context()
        workflow.validate(context)
        self._check_idle(workflow)
        input_bytecode = self.executor.compose(args)
        return self._spawn(workflow.run(context, contract, input_bytecode))

    async def _execute(self, gas) -> bool:
        supplied = self.executor.workflow.supply_gas(gas)
        self.sync(ViewType.EXECUTOR)
        return supplied

    async def _deploy(self, _value=None) -> asyncio.Task:
        workflow = self.virtualization_unit.workflow
        context = self.wallet.context()
        workflow.validate(context)
        self._check_idle(workflow)
        return self._spawn(workflow.deploy(context))

    async def _send(self, gas) -> bool:
        supplied = self.virtualization_unit.workflow.supply_gas(gas)
        self.sync(ViewType.VIRTUALIZATION_UNIT)
        return supplied

    async def _cancel_compile(self, _value=None) -> None:
        self.executor.cancel_compile()
        self.sync(ViewType.EXECUTOR)

    async def _cancel_execution(self, _value=None) -> bool:
        cancelled = self.executor.cancel_execution()
        self.sync(ViewType.EXECUTOR)
        return cancelled

    async def _clear_deployment(self, _value=None) -> None:
        self.virtualization_unit.workflow.clear()
        self.sync(ViewType.VIRTUALIZATION_UNIT)

    async def _set_contract(self, address) -> None:
        self.virtualization_unit.set_contract(address)
        self.sync(ViewType.VIRTUALIZATION_UNIT, ViewType.EXECUTOR)

    async def _select_file(self, path) -> None:
        self.executor.user_file = load_executor_file(path)
        self.sync(ViewType.EXECUTOR)

    async def _clear_file(self, _value=None) -> None:
        self.executor.clear_file()
        self.sync(ViewType.EXECUTOR)

    async def _ready(self, view) -> None:
        await self.update(ViewType(view))

    def close(self) -> None:
        for task in self._tasks:
            task.cancel()
        self.compiler.close()
