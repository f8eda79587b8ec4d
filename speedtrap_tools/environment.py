#
# environment.py: environment settings support
#
# Copyright SpeedTrap Project 2025
# All rights reserved
#
# Implements access to deployment settings passed via environment variables or env files
#

import dotenv, os, importlib, types
from typing import Dict, Optional

# environment variable names
var_TestMode = "TEST_MODE"
var_StreamUrl = "STREAM_URL"
var_S3AccessKey = "S3_KEY"
var_S3SecretKey = "S3_SECRET"
var_S3Host = "S3_HOST"
var_S3Bucket = "S3_BUCKET"

# env files searched in CWD and its parents, in order of preference
env_files = ("speedtrap.env", "env.ini", ".env")


def get_test_mode() -> bool:
    """Check if test mode is enabled; env files are ignored in test mode"""
    return bool(os.getenv(var_TestMode))


def reload_env() -> Optional[str]:
    """Load variables from the first env file found, overriding current values.

    Returns:
        Path of the loaded file, or None when nothing was loaded.
    """
    if get_test_mode():
        return None

    for name in env_files:
        path = dotenv.find_dotenv(name, usecwd=True)
        if path:
            dotenv.load_dotenv(dotenv_path=path, override=True)
            return path
    return None


def get_var(name: str, default: Optional[str] = None) -> str:
    """Get environment variable value.

    Args:
        name (str): Variable name.
        default (str, optional): Value used when the variable is not set.

    Raises:
        Exception: If the variable is not set and there is no default.
    """
    value = os.getenv(name, default)
    if value is None:
        raise Exception(
            f"Please define environment variable {name} in one of {', '.join(env_files)} files"
            + " located in your CWD, or in the process environment"
        )
    return value


def get_stream_url(default: Optional[str] = None) -> str:
    """Video stream URL, camera index, or file path of the monitored camera"""
    reload_env()
    return get_var(var_StreamUrl, default)


def get_storage_settings() -> Dict[str, str]:
    """Object storage connection settings.

    Returns:
        Dictionary with `endpoint`, `access_key`, `secret_key`, and `bucket` keys;
        keys are optional for storage emulated in a local directory.

    Raises:
        Exception: If storage host or bucket is not defined.
    """
    reload_env()
    return dict(
        endpoint=get_var(var_S3Host),
        access_key=get_var(var_S3AccessKey, ""),
        secret_key=get_var(var_S3SecretKey, ""),
        bucket=get_var(var_S3Bucket),
    )


def import_optional_package(pkg_name: str, extra: str = "") -> types.ModuleType:
    """Import package which is not installed with the base package.

    Args:
        pkg_name (str): Package import name.
        extra (str, optional): Package extra which installs it.

    Raises:
        Exception: If the package is not installed, with an install hint.
    """
    try:
        return importlib.import_module(pkg_name)
    except ModuleNotFoundError as e:
        hint = (
            f"Please run `pip install speedtrap_tools[{extra}]` to install it."
            if extra
            else "Not installed?"
        )
        raise Exception(f"`{pkg_name}` package is required. {hint}") from e
