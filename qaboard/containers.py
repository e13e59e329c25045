from dependency_injector import containers, providers

from qaboard.config import get_settings
from qaboard.providers.ledger.celo import CeloLedgerClient


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(get_settings)


class LedgerModule(containers.DeclarativeContainer):
    """Blockchain adapters shared across requests."""

    config = providers.DependenciesContainer()

    ledger_client = providers.Singleton(CeloLedgerClient, settings=config.config)


class Container(containers.DeclarativeContainer):
    """Application container."""

    config = providers.Container(ConfigModule)
    ledger = providers.Container(LedgerModule, config=config)
