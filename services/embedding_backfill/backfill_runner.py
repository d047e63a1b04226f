"""Embedding backfill entry point.

Embeds every risk or control that has no embedding yet, or reports how many
are still missing one.

Usage:
    python -m services.embedding_backfill.backfill_runner [--kind risk|control]
        [--batch-size N] [--concurrency N] [--dry-run] [--status]
"""

import argparse
import asyncio
import sys

from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.store.StoreClientManager import StoreClientManager
from services.embedding_backfill.EmbeddingService import BACKFILL_BATCH_SIZE, BACKFILL_CONCURRENCY, EmbeddingService
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.record import RecordKind


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got '{value}'")
    if parsed < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got '{value}'")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Backfill embeddings for records that have none",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m services.embedding_backfill.backfill_runner
  python -m services.embedding_backfill.backfill_runner --kind control --batch-size 20 --concurrency 4
  python -m services.embedding_backfill.backfill_runner --dry-run
  python -m services.embedding_backfill.backfill_runner --kind control --status
""",
    )
    parser.add_argument(
        "--kind", "-k",
        choices=[kind.value for kind in RecordKind],
        default=RecordKind.RISK.value,
        help="Register to backfill (default: risk)",
    )
    parser.add_argument(
        "--batch-size", "-b",
        type=_positive_int,
        default=BACKFILL_BATCH_SIZE,
        help=f"Records per batch (default: {BACKFILL_BATCH_SIZE})",
    )
    parser.add_argument(
        "--concurrency", "-c",
        type=_positive_int,
        default=BACKFILL_CONCURRENCY,
        help=f"Max concurrent embedding computations (default: {BACKFILL_CONCURRENCY})",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Count the records that would be processed without embedding or writing",
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Only report how many records have an embedding",
    )
    return parser


async def run(args: argparse.Namespace) -> int:
    """Boot the clients, run the backfill or status check and print the result.

    Returns:
        int: Process exit code.
    """
    logger = setup_logging()
    config = HelperConfig(logger=logger)
    kind = RecordKind(args.kind)

    try:
        store_client = StoreClientManager(helper_config=config).get_client()
        embed_client = EmbedClientManager(helper_config=config).get_client()
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 1

    try:
        # store is required in every mode
        try:
            await store_client.boot()
            await store_client.do_healthcheck()
        except Exception as e:
            logger.error("Error booting store client %s: %s. Aborting.", store_client.get_engine_name(), e)
            return 1

        # embed backend only when records are actually embedded
        if not args.status and not args.dry_run:
            try:
                await embed_client.boot()
                await embed_client.do_healthcheck()
            except Exception as e:
                logger.error("Error booting embed client %s: %s. Aborting.", embed_client.get_engine_name(), e)
                return 1

        service = EmbeddingService(helper_config=config, store_client=store_client, embed_client=embed_client)

        if args.status:
            status = await service.embedding_status(kind)
            print(f"\n=== {kind.value.capitalize()} Embedding Status ===")
            print(f"Total: {status.total}")
            print(f"With embeddings: {status.with_embedding}")
            print(f"Without embeddings: {status.without_embedding}")
            return 0

        stats = await service.backfill_embeddings(
            kind,
            batch_size=args.batch_size,
            max_concurrency=args.concurrency,
            dry_run=args.dry_run,
        )
        print("\n=== Backfill Complete ===")
        print(f"Processed: {stats.processed}")
        print(f"Succeeded: {stats.succeeded}")
        print(f"Failed: {stats.failed}")
        if args.dry_run:
            print("\n(Dry run - no embeddings were computed or written)")
        return 0
    except Exception as e:
        logger.exception("Error during backfill: %s", e)
        return 1
    finally:
        await embed_client.close()
        await store_client.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
