from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class ProcessingResult:
    signature: str
    num_of_transaction_rows: int
    num_of_account_rows: int
    processing_duration_in_secs: float
    db_insertion_duration_in_secs: float


class TransactionsProcessor(ABC):
    # Name of the processor for status logging and metrics labels
    @abstractmethod
    def name(self) -> str:
        pass

    # Process one inbound webhook body end to end.
    # Raises `ClientInputError` for a malformed body; any other exception fails
    # the event, even when some of its rows were already committed.
    @abstractmethod
    def process_event(self, body: Any) -> ProcessingResult:
        pass
