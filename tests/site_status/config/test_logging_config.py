"""
Unit tests for the logging configuration module.

This module contains tests for configure_logging and its helpers, ensuring
that the packaged and custom dictConfig files are loaded, that every record
carries the instance ID, and that configuration errors surface clearly.

The tests follow the Arrange-Act-Assert (AAA) pattern and use proper mocking
of all external dependencies to ensure true unit testing.
"""

import json
import logging
import os
from unittest.mock import mock_open, patch

import pytest

from site_status.config.logging_config import (
    _get_local_package_file_path,
    _InstanceIdFilter,
    _load_logging_config,
    configure_logging,
)
from site_status.config.status_context import StatusContext


def test_configure_logging_should_load_packaged_dev_config(status_context: StatusContext) -> None:
    """
    Tests that the dev logging type loads the packaged development configuration.
    """
    # Arrange
    with patch("site_status.config.logging_config._load_logging_config") as mock_load:
        # Act
        configure_logging(status_context)

    # Assert
    mock_load.assert_called_once_with(_get_local_package_file_path("logging-config-dev.json"))


def test_configure_logging_should_load_custom_file(status_context: StatusContext) -> None:
    """
    Tests that the custom logging type loads the configured file.
    """
    # Arrange
    context = status_context._replace(
        logging_type="custom", logging_config_file="/path/to/custom.json"
    )
    with patch("site_status.config.logging_config._load_logging_config") as mock_load:
        # Act
        configure_logging(context)

    # Assert
    mock_load.assert_called_once_with("/path/to/custom.json")


def test_configure_logging_should_raise_when_custom_file_is_missing(
    status_context: StatusContext,
) -> None:
    """
    Tests that the custom logging type requires a configuration file.
    """
    # Arrange
    context = status_context._replace(logging_type="custom", logging_config_file="")

    # Act & Assert
    with pytest.raises(ValueError, match="Custom logging configuration file must be provided"):
        configure_logging(context)


def test_configure_logging_should_raise_on_invalid_type(status_context: StatusContext) -> None:
    """
    Tests that an unknown logging type is rejected.
    """
    # Arrange
    context = status_context._replace(logging_type="verbose")

    # Act & Assert
    with pytest.raises(ValueError, match="Invalid logging type"):
        configure_logging(context)


def test_packaged_config_files_should_be_valid_dict_configs() -> None:
    """
    Tests that both packaged configuration files exist and are valid JSON dictConfigs.
    """
    for name in ("logging-config-dev.json", "logging-config-prod.json"):
        # Arrange
        path = _get_local_package_file_path(name)

        # Act
        with open(path) as f:
            config = json.load(f)

        # Assert
        assert os.path.isabs(path)
        assert config["version"] == 1
        assert "%(instance_id)s" in json.dumps(config["formatters"])


def test_load_logging_config_should_raise_runtime_error_when_file_not_found() -> None:
    """
    Tests that a missing file surfaces as a RuntimeError.
    """
    # Arrange
    with patch("builtins.open", side_effect=FileNotFoundError()):
        # Act & Assert
        with pytest.raises(RuntimeError, match="Logging config file not found"):
            _load_logging_config("/missing.json")


def test_load_logging_config_should_raise_runtime_error_when_invalid_json() -> None:
    """
    Tests that invalid JSON surfaces as a RuntimeError.
    """
    # Arrange
    with patch("builtins.open", mock_open(read_data="{not json")):
        # Act & Assert
        with pytest.raises(RuntimeError, match="Invalid JSON format"):
            _load_logging_config("/broken.json")


def test_instance_id_filter_should_add_instance_id_to_record() -> None:
    """
    Tests that the filter injects the instance ID and never drops a record.
    """
    # Arrange
    instance_filter = _InstanceIdFilter(instance_id="test-instance")
    record = logging.LogRecord("test", logging.INFO, __file__, 1, "message", None, None)

    # Act
    result = instance_filter.filter(record)

    # Assert
    assert result is True
    assert record.instance_id == "test-instance"
