import logging
import os
from configparser import RawConfigParser
from typing import Dict, List, Optional

base_logger = logging.getLogger("abilities.config")


# Possible paths for base configuration files, in increasing order of priority
CONFIG_FILES = {
    "abilities": ["/usr/etc/abilities/abilities.conf", "/etc/abilities/abilities.conf"],
    "logging": ["/usr/etc/abilities/logging.conf", "/etc/abilities/logging.conf"],
}

# Paths to directories in which options can be overriden using configuration snippets
CONFIG_SNIPPETS_DIRS = {
    "abilities": ["/usr/etc/abilities/abilities.conf.d", "/etc/abilities/abilities.conf.d"],
    "logging": ["/usr/etc/abilities/logging.conf.d", "/etc/abilities/logging.conf.d"],
}

CONFIG_ENV = {
    "abilities": os.environ.get("ABILITIES_CONFIG", ""),
    "logging": os.environ.get("ABILITIES_LOGGING_CONFIG", ""),
}

# Values used when an option is absent from every configuration file
DEFAULTS = {
    "abilities": {
        "not_auth": "",
        "auth_failure_path": "",
        "auth_use_referrer": "false",
        "default_aliases": "true",
        "log_decisions": "true",
    },
    "logging": {},
}

# Single instance
_config: Optional[Dict[str, RawConfigParser]] = None


def _new_parser(component: str) -> RawConfigParser:
    parser = RawConfigParser()
    parser.read_dict({component: DEFAULTS.get(component, {})})
    return parser


def _read_snippets(component: str, parser: RawConfigParser) -> List[str]:
    applied: List[str] = []

    for d in (x for x in CONFIG_SNIPPETS_DIRS.get(component, []) if os.path.isdir(x)):
        snippets = sorted(os.path.join(d, f) for f in os.listdir(d) if os.path.isfile(os.path.join(d, f)))
        applied.extend(parser.read(snippets))

    return applied


def get_config(component: str) -> RawConfigParser:
    """Find the configuration file to use for the given component and apply the overrides defined by configuration
    snippets.

    * If a configuration path is set through the ``ABILITIES_CONFIG`` (or ``ABILITIES_LOGGING_CONFIG``) environment
      variable, use the configuration from this file and ignore configuration from other files.
    * Otherwise, use the last file found in ``CONFIG_FILES`` as the base configuration, so that a file in
      /etc/abilities takes precedence over one in /usr/etc/abilities.
    * Apply any override from files in the ``CONFIG_SNIPPETS_DIRS`` directories, in lexical order.

    Missing files are not an error: every option has a default value.
    """
    global _config

    if not _config:
        _config = {}

    if not component:
        raise Exception("No component provided to get_config")

    if component not in _config:
        if component not in CONFIG_FILES:
            raise Exception(f"Invalid component '{component}'")

        parser = _new_parser(component)
        env_file = CONFIG_ENV.get(component)

        if env_file and os.path.isfile(env_file):
            files_read = parser.read(env_file)
            base_logger.info("Reading configuration from %s", files_read)
            _config[component] = parser
            return parser

        if env_file:
            base_logger.info(
                "Configuration file %s for %s set through environment variable not found, "
                "falling back to installed configuration",
                env_file,
                component,
            )

        installed = [c for c in CONFIG_FILES[component] if os.path.isfile(c)]

        if installed:
            files_read = parser.read(installed[-1])
            base_logger.info("Reading configuration from %s", files_read)

            if _read_snippets(component, parser):
                base_logger.info("Applied configuration snippets for %s", component)

        _config[component] = parser

    return _config[component]


def reset() -> None:
    """Drop all cached configuration so that it is read again on next access."""
    global _config
    _config = None


def _get_env(component: str, option: str, section: Optional[str]) -> Optional[str]:
    opt_section = f"_{section.upper()}" if section and section != component else ""
    env_name = f"ABILITIES_{component.upper()}{opt_section}_{option.upper()}"
    env_value = os.environ.get(env_name, None)
    if env_value is not None:
        base_logger.info(
            'option "%s" for component %s was overriden by environment variable %s', option, component, env_name
        )

    return env_value


def get(component: str, option: str, section: Optional[str] = None, fallback: str = "") -> str:
    env_value = _get_env(component, option, section)
    if not section:
        section = component

    if env_value is not None:
        return env_value.strip('" ')

    return get_config(component).get(section, option, fallback=fallback).strip('" ')


def getboolean(component: str, option: str, section: Optional[str] = None, fallback: bool = False) -> bool:
    env_value = _get_env(component, option, section)
    if not section:
        section = component

    if env_value is not None:
        env_value_lower = env_value.lower().strip('" ')
        if env_value_lower not in RawConfigParser.BOOLEAN_STATES:
            return fallback
        return RawConfigParser.BOOLEAN_STATES[env_value_lower]

    return get_config(component).getboolean(section, option, fallback=fallback)


def has_option(component: str, option: str, section: Optional[str] = None) -> bool:
    env_value = _get_env(component, option, section)
    if not section:
        section = component

    if env_value is not None:
        return True

    return get_config(component).has_option(section, option)
