"""
JSON logging for the indexer.

`configure_logging` installs a `CustomLogger` as the root logger, so module code
keeps calling the plain `logging` functions and passes structured values
through `extra`:

        import logging
        logging.info("[Indexer] Upserted row", extra={"table_name": "program_abc"})

Each record is written as one JSON line:
    {
        "timestamp": "2024-03-15 14:29:31,000",
        "level": "INFO",
        "fields": {
            "message": "[Indexer] Upserted row",
            "table_name": "program_abc"
        },
        "module": "writer",
        "func_name": "upsert_account",
        "path_name": "/.../program_indexer/processors/solana_webhook/writer.py",
        "line_no": 41
    }
"""

import json
import logging

ROOT_LOGGER_NAME = "program_indexer"


class CustomLogger(logging.Logger):
    def makeRecord(
        self,
        name,
        level,
        fn,
        lno,
        msg,
        args,
        exc_info,
        func=None,
        extra=None,
        sinfo=None,
    ):
        if extra:
            extra = {"fields": extra}
        return super().makeRecord(
            name,
            level,
            fn,
            lno,
            msg,
            args,
            exc_info,
            func=func,
            extra=extra,
            sinfo=sinfo,
        )


class JsonFormatter(logging.Formatter):
    def format(self, record):
        fields = {"message": record.getMessage()}
        fields.update(record.__dict__.get("fields", {}))
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "fields": fields,
            "module": record.module,
            "func_name": record.funcName,
            "path_name": record.pathname,
            "line_no": record.lineno,
        }
        return json.dumps(log_data, default=str)


def configure_logging(level: int = logging.INFO) -> logging.Logger:
    logger = CustomLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(JsonFormatter())
    logger.addHandler(stream_handler)

    logging.root = logger
    return logger
