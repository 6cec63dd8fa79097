class ConfigurationError(ValueError):
    """Generic error thrown if there was an error while loading the run configuration.

    Raised before any remote call is made.
    """

    exit_code = 20


class CredentialsError(ConfigurationError):
    """An account id or signing key is missing from the environment."""

    exit_code = 21


class FixtureError(ConfigurationError):
    """The match fixture file is missing, not valid JSON, or a match lacks a field."""

    exit_code = 22


class SettingsConfigurationError(ConfigurationError):
    """An error occurred while validating the settings of a definition file."""

    exit_code = 23
