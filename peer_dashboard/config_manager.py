"""Manages loading, updating, and validating the application's configuration.

This module is responsible for handling the `config.ini` file. It includes
functionality to:
- Create a new configuration file from a template if one doesn't exist.
- Update an existing configuration file with new options from the template
  while preserving user-defined values.
- Load the configuration into a `ConfigParser` object for use by the application.
- Validate the configuration to ensure all required sections and options are
  present and have valid values.
- Turn the `[DASHBOARD]` section into a typed `DashboardSettings` record.
"""
import configparser
from dataclasses import dataclass
from pathlib import Path
import shutil
import logging
import sys
import configupdater
import time
from typing import Dict, List, Tuple

SUPPORTED_ENGINES = ['qbittorrent']


@dataclass
class DashboardSettings:
    """Timing settings of the dashboard, in seconds."""
    refresh_interval: float = 0.5
    scan_redraw_interval: float = 0.25
    stall_seconds: float = 15.0
    check_poll_interval: float = 0.2

    @classmethod
    def from_config(cls, config: configparser.ConfigParser) -> "DashboardSettings":
        """Reads the `[DASHBOARD]` section, falling back to the defaults for missing options."""
        defaults = cls()
        if not config.has_section('DASHBOARD'):
            return defaults
        section = config['DASHBOARD']
        return cls(
            refresh_interval=section.getfloat('refresh_interval', fallback=defaults.refresh_interval),
            scan_redraw_interval=section.getfloat('scan_redraw_interval', fallback=defaults.scan_redraw_interval),
            stall_seconds=section.getfloat('stall_seconds', fallback=defaults.stall_seconds),
            check_poll_interval=section.getfloat('check_poll_interval', fallback=defaults.check_poll_interval),
        )


def update_config(config_path: str, template_path: str) -> None:
    """Updates an existing config.ini from a template, preserving user values.

    This function compares the user's configuration file with a template. It adds
    any new sections or options present in the template to the user's config
    file. Existing user-defined values, comments, and file structure are
    preserved.

    If the configuration file is modified, a timestamped backup of the original
    file is created in a `backup` subdirectory. If no configuration file exists
    at `config_path`, one is created from the template.

    Args:
        config_path: The path to the user's configuration file (e.g., 'config.ini').
        template_path: The path to the template file (e.g., 'config.ini.template').

    Raises:
        SystemExit: If the template file cannot be found or a new config cannot be created.
    """
    config_file = Path(config_path)
    template_file = Path(template_path)
    logging.info("STATE: Checking for configuration updates...")

    if not template_file.is_file():
        logging.error(f"FATAL: Config template '{template_path}' not found.")
        sys.exit(1)

    if not config_file.is_file():
        logging.warning(f"Configuration file not found at '{config_path}'.")
        logging.warning("Creating a new one from the template. Please review it.")
        try:
            config_file.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(template_file, config_file)
        except OSError as e:
            logging.error(f"FATAL: Could not create config file: {e}")
            sys.exit(1)
        return

    try:
        updater = configupdater.ConfigUpdater()
        updater.read(config_file, encoding='utf-8')
        template_updater = configupdater.ConfigUpdater()
        template_updater.read(template_file, encoding='utf-8')

        changes_made = False
        for section_name in template_updater.sections():
            template_section = template_updater[section_name]
            if not updater.has_section(section_name):
                updater.add_section(section_name)
                user_section = updater[section_name]
                for key, opt in template_section.items():
                    user_section.set(key, opt.value)
                changes_made = True
                logging.info(f"CONFIG: Added new section to config: [{section_name}]")
            else:
                user_section = updater[section_name]
                for key, opt in template_section.items():
                    if not user_section.has_option(key):
                        user_section.set(key, opt.value)
                        changes_made = True
                        logging.info(f"CONFIG: Added new option in [{section_name}]: {key}")

        if changes_made:
            backup_dir = config_file.parent / 'backup'
            backup_dir.mkdir(exist_ok=True)
            backup_filename = f"{config_file.stem}.bak_{time.strftime('%Y%m%d-%H%M%S')}"
            backup_path = backup_dir / backup_filename
            shutil.copy2(config_file, backup_path)
            logging.info(f"CONFIG: Backed up existing configuration to '{backup_path}'")
            with config_file.open('w', encoding='utf-8') as f:
                updater.write(f)
            logging.info("CONFIG: Configuration file has been updated with new options.")
        else:
            logging.info("CONFIG: Configuration file is already up-to-date.")
    except Exception as e:
        logging.error(f"FATAL: An error occurred during config update: {e}", exc_info=True)
        sys.exit(1)

def load_config(config_path: str = "config.ini") -> configparser.ConfigParser:
    """Loads the configuration from the specified .ini file.

    Args:
        config_path: The path to the configuration file.

    Returns:
        A `ConfigParser` object loaded with the configuration settings.

    Raises:
        SystemExit: If the configuration file does not exist at `config_path`.
    """
    config_file = Path(config_path)
    if not config_file.is_file():
        logging.error(f"FATAL: Configuration file not found at '{config_path}'.")
        sys.exit(1)
    config = configparser.ConfigParser()
    config.read(config_file, encoding='utf-8')
    return config


class ConfigValidator:
    """Validates the structure and values of the application's configuration.

    This class performs a series of checks on a `ConfigParser` object to ensure
    it meets the application's requirements. It verifies the presence of
    required sections and options, checks that the engine type is supported,
    and ensures that the dashboard timings are numbers within a sensible range.

    Attributes:
        config (configparser.ConfigParser): The configuration object to validate.
        errors (List[str]): A list of critical error messages found. If this list
            is not empty after validation, the configuration is considered invalid.
        warnings (List[str]): A list of non-critical warning messages. These
            highlight potential issues but do not invalidate the configuration.
    """

    REQUIRED_SECTIONS = {
        'ENGINE': ['type'],
        'QBITTORRENT': ['host', 'port'],
    }

    NUMERIC_RANGES: Dict[str, Tuple[float, float]] = {
        'refresh_interval': (0.1, 10),
        'scan_redraw_interval': (0.05, 5),
        'stall_seconds': (1, 600),
        'check_poll_interval': (0.05, 5),
    }

    def __init__(self, config: configparser.ConfigParser):
        """Initializes the ConfigValidator with a configuration object.

        Args:
            config: A `ConfigParser` object loaded with the configuration
                to be validated.
        """
        self.config = config
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate(self) -> bool:
        """Runs all validation checks and prints resulting errors or warnings.

        Returns:
            `True` if the configuration is valid (no errors), `False` otherwise.
        """
        self._check_required_sections()
        self._check_required_options()
        self._check_engine_type()
        self._check_port()
        self._check_numeric_values()

        if self.errors:
            print("Configuration errors found:", file=sys.stderr)
            for error in self.errors:
                print(f" ❌ {error}", file=sys.stderr)
            return False

        if self.warnings:
            print("Configuration warnings:", file=sys.stderr)
            for warning in self.warnings:
                print(f" ⚠️ {warning}", file=sys.stderr)

        return True

    def _check_required_sections(self) -> None:
        """Checks if all sections defined in `REQUIRED_SECTIONS` exist in the config."""
        for section in self.REQUIRED_SECTIONS:
            if not self.config.has_section(section):
                self.errors.append(f"Missing required section: [{section}]")

    def _check_required_options(self) -> None:
        """Checks if all required options exist and are non-empty in their respective sections."""
        for section, options in self.REQUIRED_SECTIONS.items():
            if not self.config.has_section(section):
                continue
            for option in options:
                if not self.config.has_option(section, option):
                    self.errors.append(f"Missing option '{option}' in [{section}]")
                elif not self.config.get(section, option).strip():
                    self.errors.append(f"Option '{option}' in [{section}] is empty")

    def _check_engine_type(self) -> None:
        if not self.config.has_section('ENGINE'):
            return
        engine_type = self.config.get('ENGINE', 'type', fallback='').strip().lower()
        if engine_type and engine_type not in SUPPORTED_ENGINES:
            self.errors.append(f"Invalid engine type '{engine_type}'. Must be one of: {', '.join(SUPPORTED_ENGINES)}")

    def _check_port(self) -> None:
        if not self.config.has_option('QBITTORRENT', 'port'):
            return
        try:
            port = self.config.getint('QBITTORRENT', 'port')
        except ValueError:
            self.errors.append("Option 'port' in [QBITTORRENT] must be an integer")
            return
        if not (1 <= port <= 65535):
            self.errors.append(f"port={port} in [QBITTORRENT] is not a valid TCP port")

    def _check_numeric_values(self) -> None:
        """Validates that dashboard timings are positive numbers and within a recommended range."""
        if not self.config.has_section('DASHBOARD'):
            return

        for option, (min_val, max_val) in self.NUMERIC_RANGES.items():
            if self.config.has_option('DASHBOARD', option):
                try:
                    value = self.config.getfloat('DASHBOARD', option)
                except ValueError:
                    self.errors.append(f"Option '{option}' must be a number")
                    continue
                if value <= 0:
                    self.errors.append(f"Option '{option}' must be greater than 0, got {value:g}")
                elif not (min_val <= value <= max_val):
                    self.warnings.append(
                        f"{option}={value:g} is outside recommended range [{min_val:g}-{max_val:g}]"
                    )
