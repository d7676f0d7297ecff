# -*- coding: utf-8 -*-

"""
VeloCloud Orchestrator API helpers

Shared session handling for the VeloCloud scripts: proxy resolution, login and
logout against the Orchestrator portal REST API, single API calls with
response-shape checks, and enterprise ID discovery for operator and partner
accounts.
"""

import configparser
import logging
from urllib.parse import quote

import keyring
import keyring.errors
import requests

# --- Constants ---
API_PATH = "/portal/rest"
SESSION_COOKIE = "velocloud.session"
DEFAULT_TIMEOUT_SECONDS = 30

LOGIN_METHODS = {
    "enterprise": "login/enterpriseLogin",
    "partner": "login/enterpriseLogin",
    "operator": "login/operatorLogin",
}

DISCOVERY_METHODS = {
    "operator": "network/getNetworkEnterprises",
    "partner": "enterpriseProxy/getEnterpriseProxyEnterprises",
}


def build_api_url(hostname):
    """Returns the portal REST base URL for an Orchestrator hostname."""
    hostname = hostname.strip().rstrip('/')
    if not hostname.startswith(("http://", "https://")):
        hostname = f"https://{hostname}"
    return f"{hostname}{API_PATH}"


def resolve_proxies(config):
    """Builds a requests proxy mapping from the [Proxy] section, or None."""
    if not config.has_section("Proxy"):
        return None

    try:
        enabled = config.getboolean("Proxy", "enabled", fallback=False)
        host = config.get("Proxy", "host", fallback="").strip()
        port = config.getint("Proxy", "port", fallback=3128)
    except ValueError as e:
        logging.error(f"Configuration error in [Proxy] section: {e}")
        return None

    if not enabled:
        return None
    if not host:
        logging.warning("Proxy is enabled but no proxy host is configured. Connecting directly.")
        return None

    user = config.get("Proxy", "username", fallback="").strip()
    password = config.get("Proxy", "password", raw=True, fallback="")
    credentials = ""
    if user:
        credentials = quote(user, safe="")
        if password:
            credentials += ":" + quote(password, safe="")
        credentials += "@"

    proxy_url = f"http://{credentials}{host}:{port}"
    logging.info(f"Using proxy {host}:{port}.")
    return {"http": proxy_url, "https": proxy_url}


def create_session(verify_ssl=True, proxies=None):
    """Creates a requests session prepared for JSON calls to the Orchestrator."""
    session = requests.Session()
    session.verify = verify_ssl
    session.headers.update({
        'Content-Type': 'application/json',
        'Accept': 'application/json',
    })
    if proxies:
        session.proxies.update(proxies)
    return session


def has_session_cookie(session):
    """True when the Orchestrator session cookie is present in the cookie jar."""
    return any(cookie.name == SESSION_COOKIE and cookie.value for cookie in session.cookies)


def is_html_response(response):
    """The Orchestrator answers with its login page instead of JSON when a session is not accepted."""
    content_type = response.headers.get('Content-Type', '')
    if 'text/html' in content_type:
        return True
    head = response.content[:512].lstrip().lower()
    return head.startswith((b'<!doctype html', b'<html'))


def login(session, api_url, username, password, login_type="enterprise", timeout=DEFAULT_TIMEOUT_SECONDS):
    """Logs into the Orchestrator and returns True if a session cookie was issued."""
    method = LOGIN_METHODS.get(login_type)
    if method is None:
        logging.error(f"Unknown login type '{login_type}'. Expected one of: {', '.join(LOGIN_METHODS)}.")
        return False

    payload = {'username': username, 'password': password}
    logging.info(f"Attempting to log into VeloCloud API as '{username}' ({login_type} login).")

    if not session.verify:
        logging.warning("API SSL certificate verification is DISABLED.")

    try:
        response = session.post(f"{api_url}/{method}", json=payload, timeout=timeout)
    except requests.exceptions.RequestException as e:
        logging.error(f"An error occurred while connecting to the VeloCloud API: {e}")
        return False

    if response.status_code != 200:
        logging.error(f"Login failed. Status: {response.status_code}, Response: {response.text[:200]}")
        return False

    if is_html_response(response):
        logging.error("Login failed. The Orchestrator answered with an HTML page instead of JSON.")
        return False

    if not has_session_cookie(session):
        # A rejected login is answered with 200 and a redirect to the portal page, without the cookie
        logging.error("Login failed. No session cookie was returned, check the username and password.")
        return False

    logging.info("Login successful. Session cookie obtained.")
    return True


def logout(session, api_url, timeout=DEFAULT_TIMEOUT_SECONDS):
    """Ends the Orchestrator session. Returns True if the API accepted the logout."""
    try:
        response = session.post(f"{api_url}/logout", json={}, timeout=timeout)
    except requests.exceptions.RequestException as e:
        logging.error(f"An error occurred during logout: {e}")
        return False

    if response.status_code != 200:
        logging.warning(f"Logout failed with status code {response.status_code}.")
        return False

    logging.info("Session logged out successfully.")
    return True


def api_call(session, api_url, method, payload, timeout=DEFAULT_TIMEOUT_SECONDS):
    """
    Issues a single API call and classifies the response.

    Returns a (status, data) tuple. The status is one of 'ok', 'http_error',
    'html_response', 'invalid_json', 'api_error', 'token_expired' or
    'request_error'. For 'ok' the data is the decoded JSON body, otherwise it
    is a dict with a 'message'.
    """
    try:
        response = session.post(f"{api_url}/{method}", json=payload, timeout=timeout)
    except requests.exceptions.RequestException as e:
        logging.error(f"Error while calling '{method}': {e}")
        return "request_error", {"message": str(e)}

    if response.status_code != 200:
        logging.error(f"Call to '{method}' failed. Status: {response.status_code}, Response: {response.text[:200]}")
        return "http_error", {"message": f"HTTP {response.status_code}", "status_code": response.status_code}

    if is_html_response(response):
        logging.error(f"Call to '{method}' returned an HTML page instead of JSON.")
        return "html_response", {"message": "HTML response received"}

    try:
        body = response.json()
    except ValueError as e:
        logging.error(f"Could not parse the response of '{method}': {e}")
        return "invalid_json", {"message": str(e)}

    if isinstance(body, dict) and body.get('error'):
        error = body['error']
        message = error.get('message', str(error)) if isinstance(error, dict) else str(error)
        if 'tokenError' in message:
            logging.warning(f"Session token expired while calling '{method}': {message}")
            return "token_expired", {"message": message}
        logging.error(f"Call to '{method}' returned an API error: {message}")
        return "api_error", {"message": message}

    return "ok", body


def call_with_reauth(session, api_url, method, payload, credentials, timeout=DEFAULT_TIMEOUT_SECONDS):
    """
    Calls the API and, if the session token has expired, logs in again and
    repeats the call once.

    `credentials` is a (username, password, login_type) tuple.
    """
    status, data = api_call(session, api_url, method, payload, timeout)
    if status != "token_expired":
        return status, data

    username, password, login_type = credentials
    logging.info("Re-authenticating after token expiry.")
    session.cookies.clear()
    if not login(session, api_url, username, password, login_type, timeout):
        return "auth_failed", {"message": "Re-authentication after token expiry failed."}

    return api_call(session, api_url, method, payload, timeout)


def parse_enterprise_ids(raw):
    """Parses a comma-separated list of enterprise IDs. Invalid entries are skipped."""
    ids = []
    for item in (raw or "").split(','):
        item = item.strip()
        if not item:
            continue
        try:
            enterprise_id = int(item)
        except ValueError:
            logging.warning(f"Ignoring invalid enterprise ID '{item}'.")
            continue
        if enterprise_id not in ids:
            ids.append(enterprise_id)
    return ids


def list_enterprises(session, api_url, login_type, credentials, timeout=DEFAULT_TIMEOUT_SECONDS):
    """Returns the enterprises visible to an operator or partner account, or None on failure."""
    method = DISCOVERY_METHODS.get(login_type)
    if method is None:
        logging.error(f"Enterprise discovery is not available for {login_type} accounts.")
        return None

    logging.info(f"Discovering enterprises via '{method}'...")
    status, data = call_with_reauth(session, api_url, method, {}, credentials, timeout)
    if status != "ok":
        logging.error(f"Enterprise discovery failed with status: {status} ({data.get('message')}).")
        return None

    if not isinstance(data, list):
        logging.error(f"Unexpected response shape from '{method}': {type(data).__name__}.")
        return None

    return [e for e in data if isinstance(e, dict) and e.get('id') is not None]


def get_enterprise_ids(session, api_url, login_type, credentials, timeout=DEFAULT_TIMEOUT_SECONDS):
    """Discovers enterprise IDs for operator and partner accounts. Returns an empty list on failure."""
    enterprises = list_enterprises(session, api_url, login_type, credentials, timeout)
    if not enterprises:
        return []

    ids = []
    for enterprise in enterprises:
        try:
            ids.append(int(enterprise['id']))
        except (TypeError, ValueError):
            logging.warning(f"Skipping enterprise with invalid id: {enterprise.get('id')!r}")
    logging.info(f"Discovered {len(ids)} enterprise(s).")
    return ids


def read_credentials(config):
    """
    Reads the username, password and login type from the [VeloCloud] section.

    The password comes from the system credential store first and falls back
    to the 'password' option. Returns None if something is missing.
    """
    try:
        username = config.get("VeloCloud", "username")
        login_type = config.get("VeloCloud", "login_type", fallback="enterprise").strip().lower()
        credential_target = config.get("VeloCloud", "credential_manager_target", fallback="")
    except (configparser.NoSectionError, configparser.NoOptionError) as e:
        logging.error(f"Configuration error: {e}")
        return None

    password = None
    if credential_target:
        try:
            password = keyring.get_password(credential_target, username)
        except keyring.errors.KeyringError as e:
            logging.warning(f"Credential store is not available: {e}")
    if not password:
        password = config.get("VeloCloud", "password", raw=True, fallback="") or None
    if not password:
        logging.error(f"Could not find a password for user '{username}' in the credential store or app.conf.")
        return None

    return username, password, login_type
