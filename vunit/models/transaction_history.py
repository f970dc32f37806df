"""This module contains the history of executed transactions."""
from typing import Dict, List


class TransactionHistoryRow:
    def __init__(self, output: str, transaction_hash: str, transaction_url: str) -> None:
        self.output = output
        self.transaction_hash = transaction_hash
        self.transaction_url = transaction_url

    def as_dict(self) -> Dict[str, str]:
        return {
            "output": self.output,
            "transactionHash": self.transaction_hash,
            "transactionUrl": self.transaction_url,
        }


class TransactionHistoryModel:
    """Rows of executed transactions, newest first."""

    def __init__(self) -> None:
        self.rows = []  # type: List[TransactionHistoryRow]

    def add_row(self, row: TransactionHistoryRow) -> None:
        self.rows.insert(0, row)

    def clear(self) -> None:
        self.rows = []
