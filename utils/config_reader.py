from logging import Logger
from pathlib import Path

import yaml

from event_exporter.errors import ConfigurationError

"""
Config
Handles the loading of the exporter's run configuration and API credentials
from YAML files. Both documents are required before any request is made, so
every failure here is raised as a ConfigurationError.
"""


class ConfigReader:
    def __init__(self, log: Logger, configs_path: Path) -> None:
        """Initializes the ConfigReader with a configurations file path and a logger.

        :param configs_path: Path to the YAML file.
        :param log: Logger instance for logging messages.
        """
        self.configs_path = Path(configs_path)
        self.configs_data = None
        self.log = log

    def load_configurations(self) -> "ConfigReader":
        """Loads the YAML document into the configs_data attribute.

        :return: Self for fluent interface.
        :raises ConfigurationError: If the file is missing, unreadable or not a mapping.
        """
        self._check_path_exists()
        try:
            with open(self.configs_path, "rb") as configs_file:
                data = yaml.safe_load(configs_file)
        except (OSError, yaml.YAMLError) as e:
            self.log.error(
                "Issue loading file '%s': %s" % (self.configs_path, e)
            )
            raise ConfigurationError(
                "Could not load '%s': %s" % (self.configs_path, e)
            ) from e
        if not isinstance(data, dict):
            self.log.error(
                "File '%s' does not contain a mapping." % (self.configs_path)
            )
            raise ConfigurationError(
                "'%s' must contain a mapping." % (self.configs_path)
            )
        self.configs_data = data
        self.log.info("Loaded configuration file '%s'." % (self.configs_path))
        return self

    def _check_path_exists(self) -> None:
        """Checks if the file exists at the specified path.

        :raises ConfigurationError: If the file does not exist.
        """
        if not self.configs_path.is_file():
            self.log.error(
                "Issue loading file: '%s' does not exist." % (self.configs_path)
            )
            raise ConfigurationError(
                "The file '%s' does not exist." % (self.configs_path)
            )
