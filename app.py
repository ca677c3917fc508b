#!/usr/bin/env python3
"""
Transaction Ingestion - Application Entry Point.

============================================================
COMPOSITION ROOT
============================================================
Wires the runtime in one place:

    catalog -> provider manager -> importer / processor factories
            -> ingestion service (over a SQLAlchemy session factory)

The provider manager is destroyed on every exit path.

============================================================
USAGE
============================================================
Environment-based configuration:
    INGEST_SOURCE=ethereum INGEST_ADDRESS=0x... python app.py
    INGEST_SOURCE=kraken INGEST_SOURCE_TYPE=exchange INGEST_CSV_DIRS=./exports python app.py

Variables:
    INGEST_SOURCE          blockchain or exchange name (required)
    INGEST_SOURCE_TYPE     blockchain | exchange (default blockchain)
    INGEST_ADDRESS         wallet address for blockchains
    INGEST_CSV_DIRS        comma separated csv directories for exchanges
    INGEST_PROVIDER        preferred provider name
    INGEST_PROCESS_ONLY    "1" to skip the import stage
    EXPLORER_CONFIG        path to a YAML/JSON provider config
    DATABASE_URL           SQLAlchemy URL (default sqlite:///data/transactions.db)
    LOG_LEVEL              logging level (default INFO)

============================================================
"""

import asyncio
import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import sessionmaker

from core.clock import ClockProtocol, SystemClock
from core.log_config import setup_logging
from ingestion import (
    ImporterFactory,
    ImportParams,
    IngestionServiceConfig,
    ProcessorFactory,
    TransactionIngestionService,
)
from providers import ExplorerConfig, ProviderManager, ProviderManagerConfig, get_default_catalog
from providers.config import load_environment
from providers.models import SourceType
from storage import create_database_engine, create_session_factory, initialize_database


# ============================================================
# WIRING
# ============================================================

@dataclass
class Application:
    """Everything main() needs, built by build_application()."""
    provider_manager: ProviderManager
    service: TransactionIngestionService
    session_factory: sessionmaker

    async def close(self) -> None:
        await self.provider_manager.destroy()


def build_application(
    database_url: Optional[str] = None,
    explorer_config: Optional[ExplorerConfig] = None,
    manager_config: Optional[ProviderManagerConfig] = None,
    service_config: Optional[IngestionServiceConfig] = None,
    clock: Optional[ClockProtocol] = None,
) -> Application:
    """Build the runtime. The caller owns Application.close()."""
    clock = clock or SystemClock()
    service_config = service_config or IngestionServiceConfig.from_env()

    engine = create_database_engine(database_url)
    initialize_database(engine)
    session_factory = create_session_factory(engine)

    manager = ProviderManager(
        get_default_catalog(),
        config=explorer_config or ExplorerConfig(),
        clock=clock,
        manager_config=manager_config or ProviderManagerConfig.from_env(),
    )
    service = TransactionIngestionService(
        session_factory,
        ImporterFactory(
            manager,
            clock=clock,
            window_days=service_config.window_days,
            network=service_config.network,
        ),
        ProcessorFactory.with_defaults(),
        config=service_config,
        clock=clock,
    )
    return Application(provider_manager=manager, service=service, session_factory=session_factory)


# ============================================================
# RUN
# ============================================================

def params_from_env() -> ImportParams:
    csv_dirs = os.getenv("INGEST_CSV_DIRS", "")
    return ImportParams(
        address=os.getenv("INGEST_ADDRESS") or None,
        csv_directories=tuple(d.strip() for d in csv_dirs.split(",") if d.strip()),
        provider_name=os.getenv("INGEST_PROVIDER") or None,
    )


async def run_application() -> int:
    """
    Run one import/process cycle configured from the environment.

    Returns:
        Exit code
    """
    logger = logging.getLogger(__name__)

    source_name = os.getenv("INGEST_SOURCE")
    if not source_name:
        logger.error("INGEST_SOURCE is required")
        return 1
    source_type = SourceType(os.getenv("INGEST_SOURCE_TYPE", SourceType.BLOCKCHAIN.value))

    app = build_application(explorer_config=ExplorerConfig.from_file(os.getenv("EXPLORER_CONFIG")))
    try:
        if os.getenv("INGEST_PROCESS_ONLY") == "1":
            processed = await app.service.process_raw_data_to_transactions(source_name, source_type)
        else:
            imported, processed = await app.service.import_and_process(
                source_name, source_type, params_from_env()
            )
            logger.info(
                f"Import session {imported.import_session_id}: "
                f"{imported.imported} imported, {imported.skipped_duplicate} skipped"
            )

        logger.info(
            f"Processed {processed.processed}, failed {processed.failed}, "
            f"saved {processed.transactions_saved} transactions"
        )
        for error in processed.errors:
            logger.warning(error)
        return 0 if processed.failed == 0 else 2

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        await app.close()


def main() -> int:
    """Main entry point."""
    load_environment()
    setup_logging()
    return asyncio.run(run_application())


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
