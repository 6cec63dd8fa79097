from collections.abc import Mapping
from typing import Any, Optional, Union

import structlog

from betvex_setup.exceptions.config import ConfigurationError

log = structlog.get_logger(__name__)


class ConfigMapping(Mapping):
    """Read-only mapping around one section of a loaded definition file.

    Subclasses set :attr:`SECTION` to the top-level key they wrap, expose the
    options as properties with defaults and implement :meth:`validate`.
    """

    CONFIGURATION_ERROR = ConfigurationError
    SECTION: Optional[str] = None

    def __init__(self, loaded_definition: Optional[Mapping] = None):
        loaded_definition = loaded_definition or {}
        if self.SECTION is not None:
            loaded_definition = loaded_definition.get(self.SECTION) or {}
        self.assert_option(
            isinstance(loaded_definition, Mapping),
            f"Section {self.SECTION!r} must be a mapping, not {type(loaded_definition).__name__}",
        )
        self.dict = dict(loaded_definition)
        self.validate()

    def __getitem__(self, item):
        return self.dict[item]

    def __iter__(self):
        return iter(self.dict)

    def __len__(self):
        return len(self.dict)

    def __eq__(self, other):
        if isinstance(other, dict):
            return self.dict == other
        elif isinstance(other, ConfigMapping):
            return self.dict == other.dict
        raise TypeError(f"Incomparable types! {self.__class__.__qualname__} and {type(other)}")

    def __str__(self):
        return str(self.dict)

    def __repr__(self):
        return f"{self.__class__.__qualname__}({self.dict})"

    @classmethod
    def assert_option(cls, expression, err: Optional[Union[str, Exception]] = None):
        """Wrap `assert` to raise a ConfigurationError instead of an AssertionError."""
        try:
            assert expression
        except AssertionError as e:
            if err is None or isinstance(err, str):
                raise cls.CONFIGURATION_ERROR(err) from e
            else:
                exception = err
            raise exception from e

    def get_number(self, key: str, default: Any, kind: type = float) -> Any:
        """Return option `key` converted to `kind`, raising a configuration error if it isn't one."""
        value = self.dict.get(key, default)
        self.assert_option(
            isinstance(value, (int, float)) and not isinstance(value, bool),
            f"{self.SECTION}.{key} must be a number, not {value!r}",
        )
        return kind(value)

    def validate(self):
        """Validate the configuration.

        Assert that all options hold sensible values.
        """
