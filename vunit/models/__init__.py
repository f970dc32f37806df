from vunit.models.executor import ExecutorModel
from vunit.models.transaction_history import TransactionHistoryModel, TransactionHistoryRow
from vunit.models.virtualization_unit import VirtualizationUnitModel
from vunit.models.wallet import WalletSession
