"""Protean domain lifecycle shared by every bounded context.

Each service owns one ``Domain``. A domain is initialized once per
process, after every module registering elements with it has been
imported. Domain work runs in short synchronous blocks under the
domain's context; nothing awaits while a context is pushed.

Aggregates are immutable values: a transition builds a new instance with
``evolve()`` and ``persist()`` writes it over the stored record.
"""

import structlog
from protean.domain import Domain
from protean.exceptions import ObjectNotFoundError
from protean.utils.reflection import declared_fields

logger = structlog.get_logger(__name__)

_initialized: set[str] = set()


def initialize(domain: Domain) -> Domain:
    if domain.name not in _initialized:
        domain.init(traverse=False)
        _initialized.add(domain.name)
        logger.info("Domain initialized", domain=domain.name)
    return domain


def process(domain: Domain, command):
    """Run ``command`` through its handler and return the handler's result."""
    with domain.domain_context():
        return domain.process(command, asynchronous=False)


def reset(domain: Domain) -> None:
    """Drop everything ``domain`` has persisted."""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            provider._data_reset()
        domain.event_store.store._data_reset()


def _values(aggregate) -> dict:
    return {name: getattr(aggregate, name) for name in declared_fields(aggregate) if not name.startswith("_")}


def evolve(aggregate, **changes):
    """A new instance of ``aggregate`` with ``changes`` applied."""
    return type(aggregate)(**{**_values(aggregate), **changes})


def persist(repository, aggregate):
    """Add a new aggregate, or write a transitioned one over its stored record."""
    try:
        stored = repository.get(aggregate.id)
    except ObjectNotFoundError:
        repository.add(aggregate)
        return aggregate

    for name, value in _values(aggregate).items():
        if name != "id" and getattr(stored, name) != value:
            setattr(stored, name, value)
    repository.add(stored)
    return stored
