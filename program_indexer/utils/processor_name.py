from enum import Enum


class ProcessorName(Enum):
    SOLANA_WEBHOOK_PROCESSOR = "solana_webhook_processor"
