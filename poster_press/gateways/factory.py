# poster_press/gateways/factory.py
"""Factory for creating the configured queue, storage and template backends."""

from dataclasses import dataclass
from pathlib import Path

from poster_press.config.schema import PosterPressConfig
from poster_press.models.sqlite_store import SQLiteJobQueue
from poster_press.models.store import JobQueue

from .rest import RestClient
from .rest_queue import RestJobQueue
from .storage import LocalObjectStore, ObjectStore, RestObjectStore
from .templates import LocalTemplateSource, RestTemplateSource, TemplateSource


@dataclass
class Gateways:
    """The three external collaborators a pipeline needs."""

    queue: JobQueue
    storage: ObjectStore
    templates: TemplateSource

    async def close(self) -> None:
        await self.queue.close()
        await self.storage.close()
        await self.templates.close()


def create_queue(config: PosterPressConfig, data_dir: Path) -> JobQueue:
    if config.queue.backend == "rest":
        return RestJobQueue(
            RestClient.from_config(config.rest),
            table=config.queue.jobs_table,
            claim_rpc=config.queue.claim_rpc,
        )
    db_path = config.queue.db_path or str(data_dir / "jobs.db")
    return SQLiteJobQueue(db_path)


def create_gateways(config: PosterPressConfig, data_dir: Path) -> Gateways:
    """
    Create gateways based on the configured backends.

    Args:
        config: Root PosterPressConfig
        data_dir: Default location for local backends

    Raises:
        ValueError: If a REST backend is selected without rest.base_url/service_key
    """
    queue = create_queue(config, data_dir)

    if config.storage.backend == "rest":
        storage: ObjectStore = RestObjectStore(RestClient.from_config(config.rest))
    else:
        storage = LocalObjectStore(config.storage.root or data_dir / "storage")

    if config.templates.backend == "rest":
        templates: TemplateSource = RestTemplateSource(
            RestClient.from_config(config.rest),
            table=config.templates.table,
            column=config.templates.column,
        )
    else:
        templates = LocalTemplateSource(config.templates.directory or data_dir / "templates")

    return Gateways(queue=queue, storage=storage, templates=templates)
