"""
Artifact cache server
"""

import argparse
import logging
import os
import secrets
import sys
from pathlib import Path

import uvicorn
from pydantic import TypeAdapter, ValidationError
from pydantic.fields import FieldInfo
from uvicorn.config import LOGGING_CONFIG

from artifactcache.config import (
    ENV_PREFIX,
    SETTING_WARNINGS,
    ConfigError,
    Settings,
    check_settings,
    get_settings,
    validate_settings,
)


def run(args):
    settings = get_settings()
    try:
        check_settings(settings)
    except ConfigError as e:
        logging.error(str(e))
        sys.exit(1)
    port = int(args.port or settings.port)
    logging.info(
        f"Starting server at port {port}, storage={settings.storage_dir}, "
        f"cache_days={settings.cache_days}, cleanup_minutes={settings.cleanup_minutes}"
    )
    if warning := validate_settings():
        logging.warning(warning)
    logging.info(
        "To change server config, create an .env file and/or set environment parameters,\n"
        f"{' ' * 26}see artifactcache/config.py for more information.\n"
        f"{' ' * 26}You can also run `python -m artifactcache config` to create the .env settings file interactively\n"
    )

    log_config = "logging.yml" if Path("logging.yml").exists() else LOGGING_CONFIG
    # The index lives in memory, so there must be exactly one worker process
    uvicorn.run(
        "artifactcache.api:app", host="0.0.0.0", port=port, reload=args.reload, workers=1, log_config=log_config
    )


def base_env():
    return dict(
        TURBO_TOKEN=secrets.token_hex(nbytes=32),
    )


def create_env(args):
    if os.path.exists(".env"):
        print("*** File .env already exists, quitting ***")
        sys.exit(1)

    env = base_env()
    if args.storage_dir:
        env["STORAGE_DIR"] = args.storage_dir
    with open(".env", "w") as f:
        for key, val in env.items():
            f.write(f"{key}={val}\n")
    os.chmod(".env", 0o600)
    print("*** Created .env file ***")


def config_cache(args):
    settings = get_settings()
    print(f"Reading/writing settings from {settings.env_file}")
    values = settings.model_dump(exclude={"env_file"})
    try:
        for fieldname, value in values.items():
            fieldinfo = Settings.model_fields[fieldname]
            if (new_value := ask_setting(fieldname, fieldinfo, value)) is not None:
                values[fieldname] = new_value
    except (KeyboardInterrupt, EOFError):
        print(f"\n*** Aborted, {settings.env_file} is unchanged ***")
        return

    with settings.env_file.open("w") as f:
        for fieldname, value in values.items():
            if doc := Settings.model_fields[fieldname].description:
                f.write(f"# {doc}\n")
            if value is None:
                f.write(f"#{ENV_PREFIX.upper()}{fieldname.upper()}=\n\n")
            else:
                f.write(f"{ENV_PREFIX.upper()}{fieldname.upper()}={value}\n\n")
    os.chmod(settings.env_file, 0o600)
    print(f"*** Written settings to {settings.env_file} ***")


def check_value(fieldname: str, value: str) -> str | None:
    """
    Check a value typed in for a setting

    Returns a message if the value cannot be parsed as the setting's type,
    or if it triggers one of the configuration warnings (e.g. a short token).
    """
    try:
        parsed = TypeAdapter(Settings.model_fields[fieldname].annotation).validate_python(value)
    except ValidationError as e:
        return e.errors()[0]["msg"]
    if rule := SETTING_WARNINGS.get(fieldname):
        return rule(parsed)
    return None


def ask_setting(fieldname: str, fieldinfo: FieldInfo, current) -> str | None:
    """Ask for a new value until an acceptable one is given. Returns None to keep the current value."""
    print(f"\n{fieldname.upper()}: {fieldinfo.description}")
    print(f"Current value: {current}")
    while True:
        value = input("New value ([enter] keeps the current value, [control+c] aborts): ").strip()
        if not value:
            return None
        if message := check_value(fieldname, value):
            print(f"Invalid value: {message}")
            continue
        return value


def main():
    parser = argparse.ArgumentParser(description=__doc__, prog="python -m artifactcache")

    subparsers = parser.add_subparsers(dest="action", title="action", help="Action to perform:", required=True)
    p = subparsers.add_parser("run", help="Run the cache server")
    p.add_argument("--reload", action="store_true", help="Reload the server on code changes (development only)")
    p.add_argument("-p", "--port", help="Port (default: the PORT setting)")
    p.set_defaults(func=run)

    p = subparsers.add_parser("create-env", help="Create the .env file with a random token")
    p.add_argument("-s", "--storage_dir", help="Directory to store artifacts in.")
    p.set_defaults(func=create_env)

    p = subparsers.add_parser("config", help="Configure the cache settings in an interactive menu.")
    p.set_defaults(func=config_cache)

    args = parser.parse_args()

    logging.basicConfig(format="[%(levelname)-7s:%(name)-15s] %(message)s", level=logging.INFO)

    args.func(args)


if __name__ == "__main__":
    main()
