from betvex_setup.exceptions.config import (
    ConfigurationError,
    CredentialsError,
    FixtureError,
    SettingsConfigurationError,
)
from betvex_setup.exceptions.setup import (
    InvalidTransition,
    LifecycleError,
    PhaseError,
    PreconditionError,
    RemoteCallError,
    SetupError,
    UnknownMatch,
)

__all__ = [
    "ConfigurationError",
    "CredentialsError",
    "FixtureError",
    "InvalidTransition",
    "LifecycleError",
    "PhaseError",
    "PreconditionError",
    "RemoteCallError",
    "SettingsConfigurationError",
    "SetupError",
    "UnknownMatch",
]
