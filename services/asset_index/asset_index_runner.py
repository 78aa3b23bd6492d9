"""Index runner entry point.

One-shot maintenance of the vector index outside the API process:
queue every unindexed asset (recover) or every asset (reindex), then
drain the queue. The bulk command adds every unindexed asset directly,
without the queue and its retries.

Usage:
    python -m services.asset_index.asset_index_runner recover
    python -m services.asset_index.asset_index_runner reindex
    python -m services.asset_index.asset_index_runner bulk
"""

import argparse
import asyncio
from datetime import datetime

import pytz

from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.store.StoreClientManager import StoreClientManager
from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.clients.store.models.Asset import Asset
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from services.asset_index.IndexingService import IndexingService
from services.asset_index.IndexJobQueue import IndexJobWorker
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Maintain the asset vector index.")
    parser.add_argument(
        "command",
        choices=["recover", "reindex", "bulk"],
        help=(
            "recover: index assets without the indexed flag; reindex: rebuild every asset; "
            "bulk: add unindexed assets directly, without retries"
        ),
    )
    return parser.parse_args(argv)


async def run_bulk_add(indexing_service: IndexingService, store_client: StoreClientInterface, logger) -> int:
    """Add every unindexed asset in one pass and mark each written asset indexed.

    Returns:
        int: 0 when every asset was added or skipped, 2 when some failed.
    """
    assets = await store_client.do_fetch_unindexed_assets()

    async def mark_indexed(asset: Asset) -> None:
        await store_client.do_mark_indexed(asset.id, datetime.now(pytz.utc))

    counts = await indexing_service.do_batch_add_assets(assets, on_added=mark_indexed)
    logger.info(
        "Bulk add finished: %d of %d assets added, %d failed.",
        counts["added"], len(assets), counts["failed"],
        color="green",
    )
    return 0 if counts["failed"] == 0 else 2


async def main(command: str) -> int:
    """Boot the clients, queue the jobs for the command and drain the queue.

    Returns:
        int: Process exit code.
    """
    logger = setup_logging()
    config = HelperConfig(logger=logger)
    rag_client = RAGClientManager(helper_config=config).get_client()
    store_client = StoreClientManager(helper_config=config).get_client()
    embed_client = EmbedClientManager(helper_config=config).get_client()

    if rag_client is None:
        logger.error("No RAG engine configured. Nothing to index.")
        return 1

    try:
        # all three clients are required here
        for client in (embed_client, store_client, rag_client):
            try:
                await client.boot()
                await client.do_healthcheck()
            except Exception as e:
                logger.error(f"Error booting {client.get_client_type()} client {client.get_engine_name()}: {e}. Aborting.")
                return 1

        indexing_service = IndexingService(helper_config=config, rag_client=rag_client, embed_client=embed_client)
        await indexing_service.do_prepare_index()

        if command == "bulk":
            return await run_bulk_add(indexing_service, store_client, logger)

        worker = IndexJobWorker(helper_config=config, indexing_service=indexing_service, store_client=store_client)
        if command == "reindex":
            await worker.reindex_all()
        else:
            await worker.process_all_unindexed()

        executed = await worker.drain()
        status = worker.get_status()
        logger.info(
            "Index run '%s' finished: %d jobs executed, %d succeeded, %d retried, %d dropped.",
            command, executed, status["processed"], status["retried"], status["dropped"],
            color="green",
        )
        return 0 if status["dropped"] == 0 else 2
    finally:
        await embed_client.close()
        await store_client.close()
        await rag_client.close()


if __name__ == "__main__":
    args = parse_args()
    raise SystemExit(asyncio.run(main(args.command)))
