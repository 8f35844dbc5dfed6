"""
Entrypoint: load config, init logging, connect storage and the blob store,
seed the frontier and run the crawl loop until SIGINT/SIGTERM.
"""

import argparse
import asyncio
import signal
import sys

import structlog
from dotenv import load_dotenv

from webarchive.archive import Archiver
from webarchive.blobstore import create_blob_store
from webarchive.config import Config
from webarchive.fetcher import HTTPFetcher
from webarchive.frontier import FrontierScheduler
from webarchive.inflight import InFlightTracker
from webarchive.log import setup_logging
from webarchive.storage import MongoStorage
from webarchive.worker import Crawler

logger = structlog.get_logger(__name__)


class CrawlerApp:
    """Wires the crawler components together from configuration."""

    def __init__(self, config: Config):
        self.config = config
        self.storage = None
        self.fetcher = None
        self.crawler = None

    def _setup_signal_handlers(self, loop: asyncio.AbstractEventLoop):
        def handle_signal(signum):
            logger.info("signal_received", signal=signum)
            self.stop_app()

        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, handle_signal, signum)

    def _init_components(self):
        self.storage = MongoStorage(self.config.mongodb)
        if not self.storage.connect():
            raise RuntimeError("Failed to connect to MongoDB")

        archiver = Archiver(create_blob_store(self.config.blobstore))
        self.fetcher = HTTPFetcher(self.config.fetcher)
        tracker = InFlightTracker()
        scheduler = FrontierScheduler(self.storage.urls, tracker, self.config.stale_duration)

        crawler_config = self.config.crawler
        self.crawler = Crawler(
            storage=self.storage,
            fetcher=self.fetcher,
            archiver=archiver,
            scheduler=scheduler,
            tracker=tracker,
            workers=crawler_config.get("workers", 4),
            idle_delay=float(crawler_config.get("idle_delay", 5)),
            error_delay=float(crawler_config.get("error_delay", 1)),
        )

    async def start_app(self, once: bool = False):
        self._init_components()
        logger.info(
            "crawler_configured",
            database=self.config.mongodb.get("database"),
            blobstore=self.config.blobstore.get("backend", "file"),
            user_agent=self.fetcher.user_agent,
            stale_seconds=self.config.stale_duration.total_seconds(),
        )

        for url in self.config.crawler.get("seeds") or []:
            self.crawler.seed(url)

        try:
            if once:
                await self.crawler.run_cycle()
            else:
                self._setup_signal_handlers(asyncio.get_running_loop())
                await self.crawler.start()
        finally:
            await self._close()

    def stop_app(self):
        if self.crawler:
            self.crawler.stop()

    async def _close(self):
        if self.fetcher:
            await self.fetcher.close()
        if self.storage:
            self.storage.close()
        logger.info("crawler_shutdown_complete")


def main():
    parser = argparse.ArgumentParser(description="Continuous web-archiving crawler")
    parser.add_argument("--config", help="path to config.yaml")
    parser.add_argument("--once", action="store_true", help="run a single crawl cycle and exit")
    args = parser.parse_args()

    # Load environment variables from .env file
    load_dotenv()

    try:
        config = Config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Fatal error during startup: {e}", file=sys.stderr)
        sys.exit(1)

    log_config = config.logging
    setup_logging(log_config.get("level", "INFO"), log_config.get("json", True))

    app = CrawlerApp(config)
    try:
        asyncio.run(app.start_app(once=args.once))
    except Exception as e:
        logger.error("fatal_error", error=str(e), exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
