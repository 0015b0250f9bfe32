import hmac
import json
import logging
from typing import Optional, Tuple

from prometheus_client.twisted import MetricsResource
from twisted.internet import reactor
from twisted.internet.threads import deferToThread
from twisted.web.resource import Resource
from twisted.web.server import NOT_DONE_YET, Site

from program_indexer.processors.solana_webhook.processor import (
    PROCESSOR_SERVICE_TYPE,
    SolanaWebhookProcessor,
)
from program_indexer.processors.solana_webhook.writer import ProgramTableWriter
from program_indexer.utils.config import Config
from program_indexer.utils.db import create_db_engine
from program_indexer.utils.exceptions import AuthError, ClientInputError
from program_indexer.utils.metrics import PROCESSED_EVENTS_COUNTER
from program_indexer.utils.models.program_tables import ProgramTableRegistry
from program_indexer.utils.rpc_client import RpcClient
from program_indexer.utils.transactions_processor import TransactionsProcessor

Response = Tuple[int, bytes]

METHOD_NOT_ALLOWED_RESPONSE: Response = (405, b"Method Not Allowed")
UNAUTHORIZED_RESPONSE: Response = (401, b"Unauthorized")
INVALID_INPUT_RESPONSE: Response = (400, b"Invalid input")
SUCCESS_RESPONSE: Response = (200, b"Account data stored")


def authorize(authorization: Optional[bytes], expected: str) -> None:
    if authorization is None or not hmac.compare_digest(
        authorization, expected.encode()
    ):
        raise AuthError("Authorization header mismatch")


def preflight_response(
    method: bytes, authorization: Optional[bytes], expected_authorization: str
) -> Optional[Response]:
    """Answers requests that never reach the processor. None means proceed."""
    if method != b"POST":
        return METHOD_NOT_ALLOWED_RESPONSE
    try:
        authorize(authorization, expected_authorization)
    except AuthError:
        return UNAUTHORIZED_RESPONSE
    return None


def process_webhook_body(processor: TransactionsProcessor, raw_body: bytes) -> Response:
    processor_name = processor.name()
    try:
        try:
            body = json.loads(raw_body)
        except ValueError as e:
            raise ClientInputError("Invalid input") from e
        processor.process_event(body)
    except ClientInputError:
        PROCESSED_EVENTS_COUNTER.labels(
            processor_name=processor_name, outcome="invalid_input"
        ).inc()
        return INVALID_INPUT_RESPONSE
    except Exception as e:
        logging.exception(
            "[Indexer] Error processing webhook event",
            extra={
                "processor_name": processor_name,
                "error": str(e),
                "service_type": PROCESSOR_SERVICE_TYPE,
            },
        )
        PROCESSED_EVENTS_COUNTER.labels(
            processor_name=processor_name, outcome="error"
        ).inc()
        return 500, ("Error: %s" % e).encode()

    PROCESSED_EVENTS_COUNTER.labels(
        processor_name=processor_name, outcome="success"
    ).inc()
    return SUCCESS_RESPONSE


class WebhookResource(Resource):
    isLeaf = True

    def __init__(self, processor: TransactionsProcessor, expected_authorization: str):
        Resource.__init__(self)
        self.processor = processor
        self.expected_authorization = expected_authorization

    def render(self, request):
        authorization = request.getHeader(b"authorization")
        response = preflight_response(
            request.method, authorization, self.expected_authorization
        )
        if response is not None:
            return self.prepare_response(request, response)

        raw_body = request.content.read()
        finished = []
        request.notifyFinish().addBoth(finished.append)

        # Processing blocks on RPC and DB calls, so it runs in the reactor's thread pool
        d = deferToThread(process_webhook_body, self.processor, raw_body)

        def on_response(response: Response) -> None:
            # The client may have hung up while the event was processed
            if not finished:
                request.write(self.prepare_response(request, response))
                request.finish()

        d.addCallback(on_response)
        d.addErrback(
            lambda failure: logging.error(
                "[Indexer] Failed to write webhook response",
                extra={"error": str(failure.value)},
            )
        )
        return NOT_DONE_YET

    @staticmethod
    def prepare_response(request, response: Response) -> bytes:
        status, body = response
        request.setResponseCode(status)
        request.setHeader(b"content-type", b"text/plain; charset=utf-8")
        return body


class ServerOk(Resource):
    isLeaf = True

    def render_GET(self, request):
        return b"ok"


class IndexerWebhookServer:
    config: Config

    def __init__(self, config: Config):
        self.config = config
        server_config = self.config.server_config

        self.engine = create_db_engine(server_config)
        self.registry = ProgramTableRegistry(self.engine)
        self.processor = SolanaWebhookProcessor(
            RpcClient.from_server_config(server_config),
            ProgramTableWriter(self.engine, self.registry),
            delegation_program_id=server_config.delegation_program_id,
            index_delegations=server_config.index_delegations,
        )
        logging.info(
            "[Indexer] Kicking off",
            extra={
                "processor_name": self.processor.name(),
                "service_type": PROCESSOR_SERVICE_TYPE,
            },
        )

    def build_site(self) -> Site:
        root = Resource()
        root.putChild(b"metrics", MetricsResource())  # type: ignore
        root.putChild(b"healthz", ServerOk())  # type: ignore
        webhook = WebhookResource(
            self.processor, self.config.server_config.auth_header
        )
        root.putChild(b"", webhook)  # type: ignore
        return Site(root)

    def run(self) -> None:
        # Writer threads check connections out of the same pool
        reactor.suggestThreadPoolSize(self.config.server_config.postgres_pool_size)  # type: ignore
        reactor.listenTCP(self.config.http_port, self.build_site())  # type: ignore
        logging.info(
            "[Indexer] Listening for webhook events",
            extra={
                "processor_name": self.processor.name(),
                "http_port": self.config.http_port,
                "service_type": PROCESSOR_SERVICE_TYPE,
            },
        )
        try:
            reactor.run()  # type: ignore
        finally:
            self.engine.dispose()
