# -*- coding: utf-8 -*-

"""
Environment configuration management.
"""

import os
import logging
from pathlib import Path
from typing import Optional
import dotenv

from .config import ENV_VARS, REQUIRED_FIELDS


def load_environment_variables(env_file: Optional[str] = None, verbose: bool = False) -> bool:
    """
    Load environment variables from .env file with smart path resolution.

    Args:
        env_file: Specific .env file path. If None, searches for .env files.
        verbose: Whether to log environment loading details.

    Returns:
        True if .env file was found and loaded, False otherwise.
    """
    if env_file:
        env_path = Path(env_file)
        if env_path.exists():
            dotenv.load_dotenv(env_path)
            if verbose:
                logging.debug(f"Loaded environment from: {env_path}")
            return True
        if verbose:
            logging.warning(f"Specified .env file not found: {env_path}")
        return False

    search_paths = [
        Path.cwd() / '.env.local',
        Path.cwd() / '.env',
    ]

    # src/sf_bulk_manager/core/utils -> project root
    project_root = Path(__file__).resolve().parents[4]
    search_paths.extend([
        project_root / '.env.local',
        project_root / '.env',
    ])

    for env_path in search_paths:
        if env_path.exists():
            dotenv.load_dotenv(env_path)
            if verbose:
                logging.debug(f"Loaded environment from: {env_path}")
            return True

    if verbose:
        logging.debug("No .env file found in search paths")
    return False


def validate_required_env_vars() -> list:
    """
    Validate that the connection environment variables are set.

    Returns:
        List of missing environment variables (empty if all present)
    """
    return [ENV_VARS[name] for name in REQUIRED_FIELDS if not os.getenv(ENV_VARS[name])]


def setup_environment(verbose: bool = False, env_file: Optional[str] = None) -> bool:
    """
    Set up environment for the package.

    Args:
        verbose: Whether to log environment setup details
        env_file: Optional specific .env file to load

    Returns:
        True if environment setup was successful
    """
    env_loaded = load_environment_variables(env_file, verbose)

    if verbose and not env_loaded:
        logging.debug("No .env file loaded. Relying on system environment variables.")
        logging.debug("Expected .env file locations:")
        logging.debug("  - ./.env (current directory)")
        logging.debug("  - ./.env.local (current directory)")
        logging.debug("  - <project_root>/.env (project root directory)")
        logging.debug("  - <project_root>/.env.local (project root directory)")

    return True  # .env is optional
