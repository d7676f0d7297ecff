# -*- coding: utf-8 -*-

"""
VeloCloud API Credential Probe

This script checks that the VeloCloud Orchestrator credentials configured for a
monitored host are usable. It reads the configuration file (app.conf), logs
into the Orchestrator, asks for aggregate edge link metrics of every configured
enterprise and logs out again. When every enterprise answers, the monitoring
category line is printed on stdout so the collector can tag the device.
"""

import argparse
import configparser
import logging
import sys
import time

import requests
from urllib3.exceptions import InsecureRequestWarning

import velocloud_api

# --- Constants ---
CATEGORY_LINE = "system.categories=VeloCloudAPI"
LOG_FILE = "velocloud_probe.log"
CONFIG_FILE = "app.conf"
DEFAULT_WINDOW_MINUTES = 15
PROBE_METHOD = "monitoring/getAggregateEdgeLinkMetrics"
PROBE_METRICS = ["bytesRx", "bytesTx"]

EXIT_OK = 0
EXIT_SETUP_FAILURE = 1

# --- Main Functions ---

def setup_logging(log_file=LOG_FILE):
    """Configures the logging format and destination. Nothing is logged to stdout."""
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.insert(0, logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=handlers
    )


def build_time_window(minutes=DEFAULT_WINDOW_MINUTES, now=None):
    """Returns the metrics interval ending now, as epoch milliseconds."""
    if minutes <= 0:
        raise ValueError(f"Metrics window must be positive, got {minutes} minutes")
    if now is None:
        now = time.time()
    end = int(now * 1000)
    start = end - int(minutes * 60 * 1000)
    return {"start": start, "end": end}


def check_enterprise_permissions(session, api_url, enterprise_id, interval, credentials, timeout):
    """Asks for the aggregate link metrics of one enterprise and reports whether the call was permitted."""
    payload = {
        "enterpriseId": enterprise_id,
        "interval": interval,
        "metrics": PROBE_METRICS,
    }
    status, data = velocloud_api.call_with_reauth(session, api_url, PROBE_METHOD, payload, credentials, timeout)

    if status != "ok":
        logging.error(f"Permission check for enterprise {enterprise_id} failed with status: {status} ({data.get('message')}).")
        return False

    if not isinstance(data, list):
        logging.error(f"Unexpected response for enterprise {enterprise_id}: expected a list, got {type(data).__name__}.")
        return False

    logging.info(f"Enterprise {enterprise_id}: link metrics readable ({len(data)} link(s) reported).")
    return True


def run_probe(config, hostname=None):
    """Main logic of the probe. Returns the process exit code."""
    try:
        verify_ssl = config.getboolean("General", "ssl_verify", fallback=True)
        timeout = config.getint("General", "timeout_seconds", fallback=velocloud_api.DEFAULT_TIMEOUT_SECONDS)
        hostname = hostname or config.get("VeloCloud", "hostname")
        window_minutes = config.getint("VeloCloud", "metrics_window_minutes", fallback=DEFAULT_WINDOW_MINUTES)
        raw_ids = config.get("VeloCloud", "enterprise_ids", fallback="")
    except (configparser.NoSectionError, configparser.NoOptionError, ValueError) as e:
        logging.error(f"Configuration error: {e}")
        return EXIT_SETUP_FAILURE

    if window_minutes <= 0:
        logging.error(f"Configuration error: 'metrics_window_minutes' must be positive, got {window_minutes}.")
        return EXIT_SETUP_FAILURE

    credentials = velocloud_api.read_credentials(config)
    if credentials is None:
        return EXIT_SETUP_FAILURE
    username, password, login_type = credentials

    api_url = velocloud_api.build_api_url(hostname)
    proxies = velocloud_api.resolve_proxies(config)
    session = velocloud_api.create_session(verify_ssl, proxies)

    logging.info(f"Starting VeloCloud API probe for {hostname}.")

    if not velocloud_api.login(session, api_url, username, password, login_type, timeout):
        logging.error("Cannot proceed without a valid session.")
        return EXIT_SETUP_FAILURE

    try:
        enterprise_ids = velocloud_api.parse_enterprise_ids(raw_ids)
        if not enterprise_ids and login_type in velocloud_api.DISCOVERY_METHODS:
            enterprise_ids = velocloud_api.get_enterprise_ids(session, api_url, login_type, credentials, timeout)

        if not enterprise_ids:
            logging.error("No enterprise IDs configured or discovered. Set 'enterprise_ids' in the [VeloCloud] section.")
            return EXIT_SETUP_FAILURE

        interval = build_time_window(window_minutes)
        results = [
            check_enterprise_permissions(session, api_url, enterprise_id, interval, credentials, timeout)
            for enterprise_id in enterprise_ids
        ]

        if all(results):
            logging.info(f"Permission check passed for {len(results)} enterprise(s).")
            print(CATEGORY_LINE)
        else:
            logging.warning(f"Permission check failed for {results.count(False)} of {len(results)} enterprise(s).")

        return EXIT_OK
    finally:
        velocloud_api.logout(session, api_url, timeout)


def main(argv=None):
    """Main entry point of the script."""
    parser = argparse.ArgumentParser(description="VeloCloud API credential probe.")
    parser.add_argument(
        "hostname",
        nargs="?",
        default=None,
        help="Orchestrator hostname. Overrides 'hostname' in the [VeloCloud] section."
    )
    parser.add_argument(
        "--config",
        default=CONFIG_FILE,
        help=f"Path to the configuration file (default: {CONFIG_FILE})"
    )
    args = parser.parse_args(argv)

    config = configparser.ConfigParser(interpolation=None)
    try:
        config.read(args.config, encoding='utf-8')
    except (configparser.Error, OSError) as e:
        print(f"ERROR: Could not parse the configuration file '{args.config}': {e}", file=sys.stderr)
        return EXIT_SETUP_FAILURE

    log_file = config.get("General", "log_file", fallback=LOG_FILE)
    try:
        setup_logging(log_file)
    except OSError as e:
        print(f"ERROR: Could not open the log file '{log_file}': {e}", file=sys.stderr)
        return EXIT_SETUP_FAILURE
    logging.info("--- Probe execution started ---")

    if not config.sections():
        logging.error(f"Configuration file '{args.config}' is empty or could not be read.")
        return EXIT_SETUP_FAILURE

    exit_code = EXIT_SETUP_FAILURE
    try:
        if not config.getboolean("General", "ssl_verify", fallback=True):
            requests.packages.urllib3.disable_warnings(category=InsecureRequestWarning)
        exit_code = run_probe(config, args.hostname)
    except Exception as e:
        logging.critical(f"An unhandled exception occurred: {e}", exc_info=True)
    logging.info("--- Probe execution finished ---")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
