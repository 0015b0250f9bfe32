from prometheus_client import Counter, Gauge

PROCESSED_EVENTS_COUNTER = Counter(
    "indexer_processor_processed_events",
    "Number of webhook events processed",
    ["processor_name", "outcome"],
)

WRITTEN_ROWS_COUNTER = Counter(
    "indexer_processor_written_rows",
    "Number of rows upserted into program tables",
    ["processor_name", "table_kind"],
)

FAILED_WRITES_COUNTER = Counter(
    "indexer_processor_failed_writes",
    "Number of row upserts that raised",
    ["processor_name", "table_kind"],
)

ENSURED_TABLES = Gauge(
    "indexer_processor_ensured_tables",
    "Number of program tables ensured by this process",
    ["table_kind"],
)
