import argparse

from program_indexer.utils.config import Config
from program_indexer.utils.logging import configure_logging
from program_indexer.utils.worker import IndexerWebhookServer


def main() -> None:
    configure_logging()

    parser = argparse.ArgumentParser()
    parser.add_argument("-c", "--config", help="Path to config file", required=True)
    args = parser.parse_args()
    config = Config.from_yaml_file(args.config)

    indexer_server = IndexerWebhookServer(config)
    indexer_server.run()


if __name__ == "__main__":
    main()
