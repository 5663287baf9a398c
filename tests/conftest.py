import os
from pathlib import Path

import pytest

_LAYER_MARKERS = {
    "domain": pytest.mark.domain,
    "application": pytest.mark.application,
    "integration": pytest.mark.integration,
}


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="PROTEAN_ENV the commerce domain is initialised with",
    )


def pytest_sessionstart(session):
    """Initialise the commerce domain once and keep its context pushed.

    Module-level code that resolves ``current_domain`` (repositories,
    registries) then works during collection as well as in tests.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env

    from commerce.domain import commerce

    commerce.init()
    commerce.domain_context().push()


def pytest_collection_modifyitems(config, items):
    """Mark tests by the layer directory they live in."""
    for item in items:
        layer = next((part for part in Path(item.fspath).parts if part in _LAYER_MARKERS), None)
        if layer is None:
            continue
        item.add_marker(_LAYER_MARKERS[layer])
        if layer == "integration" and not any(m.name == "fast" for m in item.iter_markers()):
            item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def run_around_tests():
    """Reset stores and swapped-in adapters after every test."""
    yield

    from protean import current_domain

    from commerce.catalogue import reset_catalogue
    from commerce.discount import reset_discounts
    from commerce.gateway import reset_gateway
    from commerce.notification import reset_notifier
    from commerce.settings import reset_settings

    for _, provider in current_domain.providers.items():
        provider._data_reset()
    current_domain.event_store.store._data_reset()

    reset_gateway()
    reset_notifier()
    reset_catalogue()
    reset_discounts()
    reset_settings()
