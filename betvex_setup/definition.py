import pathlib
from dataclasses import asdict
from typing import Dict, Optional

import jinja2
import structlog
import yaml

from betvex_setup.exceptions.config import SettingsConfigurationError
from betvex_setup.utils.configuration.settings import EnvironmentConfig, SettingsConfig

log = structlog.get_logger(__name__)


class SetupDefinition:
    """Interface for a setup definition `.yaml` file.

    Takes care of loading the yaml from the given `yaml_path`, and validates
    its contents. The file is optional, without it every setting uses its
    default value.

    The file is rendered as a jinja2 template first, with the public fields
    of the environment (account ids and the RPC endpoint) available as
    variables::

        >setup.yaml
        accounts:
          count: 5
          prefix: "{{ admin_account_id.split('.')[0] }}-user"

    `overrides` replaces single options per section, e.g. from the command
    line, before the settings are validated.
    """

    def __init__(
        self,
        yaml_path: Optional[pathlib.Path],
        environment: EnvironmentConfig,
        overrides: Optional[Dict[str, dict]] = None,
    ) -> None:
        self.path = yaml_path
        self._loaded: dict = {}
        if yaml_path is not None:
            self._loaded = self._load(yaml_path, environment)

        for section, values in (overrides or {}).items():
            loaded_section = self._loaded.get(section) or {}
            if isinstance(loaded_section, dict):
                self._loaded[section] = {**loaded_section, **values}

        self.settings = SettingsConfig(self._loaded)

    @staticmethod
    def _load(yaml_path: pathlib.Path, environment: EnvironmentConfig) -> dict:
        template_vars = {
            key: value
            for key, value in asdict(environment).items()
            if key in ("main_account_id", "admin_account_id", "rpc_endpoint")
        }
        try:
            with yaml_path.open() as f:
                yaml_template = jinja2.Template(f.read(), undefined=jinja2.StrictUndefined)
                rendered_yaml = yaml_template.render(**template_vars)
            loaded = yaml.safe_load(rendered_yaml)
        except FileNotFoundError as e:
            raise SettingsConfigurationError(f"Definition file {yaml_path} does not exist") from e
        except (jinja2.TemplateError, yaml.YAMLError) as e:
            raise SettingsConfigurationError(f"Cannot load definition {yaml_path}: {e}") from e

        if loaded is None:
            return {}
        if not isinstance(loaded, dict):
            raise SettingsConfigurationError(f"Definition {yaml_path} must be a mapping")
        log.debug("Loaded definition", path=str(yaml_path))
        return loaded

    @property
    def name(self) -> str:
        """Return the name of the definition file, sans extension."""
        return self.path.stem if self.path else "default"
