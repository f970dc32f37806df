"""This module contains the views, the inbound commands and the generators of
view snapshots."""
import logging

from enum import Enum
from typing import Any, Dict, Optional

from vunit.compiler.files import ExecutorFile
from vunit.ethereum.interface.rpc.exceptions import EthJsonRpcError
from vunit.models.executor import ExecutorModel
from vunit.models.transaction_history import TransactionHistoryModel
from vunit.models.virtualization_unit import VirtualizationUnitModel
from vunit.models.wallet import WalletSession

log = logging.getLogger(__name__)


class ViewType(Enum):
    EXECUTOR = "executor"
    TRANSACTION_HISTORY = "transactionHistory"
    VIRTUALIZATION_UNIT = "virtualizationUnit"
    WALLET = "wallet"


class Command(Enum):
    COMPILE = "compile"
    ESTIMATE = "estimate"
    EXECUTE = "execute"
    DEPLOY = "deploy"
    SEND = "send"
    CANCEL_COMPILE = "cancelCompile"
    CANCEL_EXECUTION = "cancelExecution"
    CLEAR_DEPLOYMENT = "clearDeployment"
    SET_CONTRACT = "setContract"
    SELECT_FILE = "selectFile"
    CLEAR_FILE = "clearFile"
    READY = "ready"


def _file(file: Optional[ExecutorFile]) -> Optional[Dict[str, str]]:
    return file.as_dict() if file is not None else None


def executor_view_state(
    executor: ExecutorModel,
    virtualization_unit: VirtualizationUnitModel,
    wallet: WalletSession,
) -> Dict[str, Any]:
    workflow = executor.workflow
    return {
        "compilerStatus": executor.compiler_status,
        "contractTransactionStatus": workflow.status.value,
        "currentFile": _file(executor.current_file),
        "disabled": not (wallet.account and virtualization_unit.current_contract),
        "estimating": workflow.estimating,
        "awaitingGas": workflow.awaiting_gas,
        "gasEstimate": workflow.gas_estimate,
        "nargs": executor.nargs,
        "userFile": _file(executor.user_file),
    }


def virtualization_unit_view_state(
    virtualization_unit: VirtualizationUnitModel, wallet: WalletSession
) -> Dict[str, Any]:
    workflow = virtualization_unit.workflow
    return {
        "contracts": list(virtualization_unit.contracts),
        "contractTransactionStatus": workflow.status.value,
        "currentContract": virtualization_unit.current_contract,
        "disabled": not wallet.account,
        "estimating": workflow.estimating,
        "awaitingGas": workflow.awaiting_gas,
        "gasEstimate": workflow.gas_estimate,
    }


def transaction_history_view_state(
    history: TransactionHistoryModel, wallet: WalletSession
) -> Dict[str, Any]:
    return {
        "disabled": not wallet.account,
        "rows": [row.as_dict() for row in history.rows],
    }


async def wallet_view_state(wallet: WalletSession) -> Dict[str, Any]:
    try:
        balance = await wallet.balance()
    except EthJsonRpcError as e:
        log.warning("Cannot read the balance of %s: %s", wallet.account, e)
        balance = None
    return {
        "account": wallet.account,
        "balance": balance,
        "chain": wallet.chain.as_dict() if wallet.chain else None,
    }
