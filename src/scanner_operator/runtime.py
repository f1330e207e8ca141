"""Process-wide singletons shared by the operator handlers and the API."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from scanner_operator.config import Settings
from scanner_operator.jobs import TemplateJobFactory
from scanner_operator.once import Once
from scanner_operator.store import SqlResultStore, connect

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Long-lived collaborators built once per process."""

    settings: Settings
    store: SqlResultStore
    jobs: TemplateJobFactory


def build_runtime(settings: Settings) -> Runtime:
    """Connect to the database and load the job template.

    Raises:
        ConfigurationError: Unsupported database type or unreadable template.
        StorageError: The database cannot be reached.
    """
    logger.info("Connecting to %s database", settings.database_type)
    engine = connect(settings.database_type, settings.dsn)
    jobs = TemplateJobFactory.from_path(settings.job_template_path, settings.report_url)
    return Runtime(settings=settings, store=SqlResultStore(engine), jobs=jobs)


_runtime: Once[Runtime] = Once()


def get_runtime(settings: Settings | None = None) -> Runtime:
    """Return the process runtime, building it on first call.

    Concurrent first callers block until construction finishes; if it
    failed, every caller gets the same exception.
    """
    return _runtime.do(lambda: build_runtime(settings or Settings()))
