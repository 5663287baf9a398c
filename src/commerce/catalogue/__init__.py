"""Catalogue factory.

Provides get_catalogue() / set_catalogue() so the stock ledger and checkout
can run against the repository-backed catalogue or a test double.
"""

from commerce.catalogue.port import Catalogue
from commerce.catalogue.repository_adapter import RepositoryCatalogue

_current_catalogue: Catalogue | None = None


def get_catalogue() -> Catalogue:
    """Return the active catalogue. Defaults to RepositoryCatalogue."""
    global _current_catalogue
    if _current_catalogue is None:
        _current_catalogue = RepositoryCatalogue()
    return _current_catalogue


def set_catalogue(catalogue: Catalogue) -> None:
    global _current_catalogue
    _current_catalogue = catalogue


def reset_catalogue() -> None:
    global _current_catalogue
    _current_catalogue = None
