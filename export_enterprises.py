# -*- coding: utf-8 -*-

"""
VeloCloud Enterprise Exporter

This script logs into the VeloCloud Orchestrator with an operator or partner
account, fetches every enterprise the account can see and prints an
'enterprise_ids' line that can be pasted into the [VeloCloud] section of
'app.conf' for the VeloCloud API probe.
"""

import argparse
import configparser
import sys

import requests
from urllib3.exceptions import InsecureRequestWarning

import velocloud_api


def format_enterprise_config(enterprises):
    """Formats the enterprise list as app.conf lines."""
    lines = ["# --- Copy the line below into the [VeloCloud] section of your app.conf ---"]
    ids = []
    for enterprise in sorted(enterprises, key=lambda e: str(e.get('name') or 'Unnamed').lower()):
        name = enterprise.get('name') or 'Unnamed'
        lines.append(f"# {enterprise['id']}: {name}")
        ids.append(str(enterprise['id']))
    lines.append(f"enterprise_ids = {', '.join(ids)}")
    return "\n".join(lines)


def export_enterprises(config, hostname=None):
    """
    Connects to the Orchestrator, fetches all enterprises and prints them in
    app.conf format. Returns the process exit code.
    """
    session = None
    api_url = None
    timeout = velocloud_api.DEFAULT_TIMEOUT_SECONDS
    try:
        # 1. Read configuration from the [VeloCloud] section
        print("--- VeloCloud Enterprise Exporter ---")
        print("\nReading configuration from [VeloCloud] section...")
        hostname = hostname or config.get("VeloCloud", "hostname")
        verify_ssl = config.getboolean("General", "ssl_verify", fallback=True)
        timeout = config.getint("General", "timeout_seconds", fallback=velocloud_api.DEFAULT_TIMEOUT_SECONDS)

        # 2. Retrieve the credentials
        credentials = velocloud_api.read_credentials(config)
        if credentials is None:
            print("\n--- ERROR: Credentials not found! ---")
            return 1
        username, password, login_type = credentials

        if login_type not in velocloud_api.DISCOVERY_METHODS:
            print(f"\n--- ERROR: Enterprise listing needs an operator or partner account, got '{login_type}'. ---")
            return 1

        # 3. Log in to the VeloCloud API
        api_url = velocloud_api.build_api_url(hostname)
        session = velocloud_api.create_session(verify_ssl, velocloud_api.resolve_proxies(config))
        print(f"Attempting to log in to {api_url}...")
        if not verify_ssl:
            print("WARNING: SSL certificate verification is DISABLED.")

        if not velocloud_api.login(session, api_url, username, password, login_type, timeout):
            print("\n--- Login FAILED ---")
            session = None
            return 1
        print("Login successful.")

        # 4. Fetch all enterprises
        print("\nFetching enterprises...")
        enterprises = velocloud_api.list_enterprises(session, api_url, login_type, credentials, timeout)
        if enterprises is None:
            print("--- FAILED to fetch enterprises ---")
            return 1
        if not enterprises:
            print("No enterprises are visible to this account.")
            return 1

        print(f"Found {len(enterprises)} enterprises. Generating config entries...\n")
        print(format_enterprise_config(enterprises))
        return 0

    except (configparser.NoSectionError, configparser.NoOptionError, ValueError) as e:
        print(f"\nERROR: Configuration problem: {e}")
        return 1
    finally:
        # 5. Log out
        if session is not None:
            print("\nAttempting to log out...")
            if velocloud_api.logout(session, api_url, timeout):
                print("Logout successful.")
            print("\n--- Script finished ---")


def main(argv=None):
    """Main entry point for the script."""
    parser = argparse.ArgumentParser(description="VeloCloud Enterprise Exporter script.")
    parser.add_argument(
        "hostname",
        nargs="?",
        default=None,
        help="Orchestrator hostname. Overrides 'hostname' in the [VeloCloud] section."
    )
    parser.add_argument(
        "--config",
        default="app.conf",
        help="Path to the configuration file (default: app.conf)"
    )
    args = parser.parse_args(argv)

    config_file = args.config
    print(f"--- Using configuration file: {config_file} ---")

    try:
        config = configparser.ConfigParser(interpolation=None)
        if not config.read(config_file, encoding='utf-8'):
            print(f"ERROR: Configuration file '{config_file}' is empty or could not be read.")
            return 1

        requests.packages.urllib3.disable_warnings(category=InsecureRequestWarning)
        return export_enterprises(config, args.hostname)

    except Exception as e:
        print(f"A critical error occurred: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
