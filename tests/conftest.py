"""Shared fixtures for rtx-state tests."""
import pytest

from rtx_state.config_engine import Catalog, ConfigEngine


@pytest.fixture(scope="session")
def catalog():
    """The bundled catalog."""
    return Catalog.load()


@pytest.fixture(scope="module")
def engine(catalog):
    """Config engine over the bundled catalog."""
    return ConfigEngine(catalog)


@pytest.fixture
def roundtrip(engine):
    """Synthesize a record and parse the commands back."""
    def _roundtrip(record):
        commands = engine.synthesize(record)
        return engine.parse("\n".join(commands))
    return _roundtrip
