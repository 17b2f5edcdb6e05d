#!/usr/bin/env python3
"""
Healthcheck script for Docker container
Checks that the management API answers and the keep-alive is running
"""
import json
import sys
import urllib.request

from .config import load_configuration
from .errors import ConfigurationError


def check_api_server(url, timeout=5):
    """Returns the parsed /health response, or None if the server is not healthy"""
    try:
        with urllib.request.urlopen(url, timeout=timeout) as response:
            if response.status != 200:
                return None
            return json.loads(response.read().decode('utf-8'))
    except (OSError, ValueError) as e:
        print(f"API check failed: {e}")
        return None


def health_url(config):
    host = config.http.bind
    if host in ("0.0.0.0", "::"):
        host = "localhost"
    elif ":" in host:
        host = f"[{host}]"
    return f"http://{host}:{config.http.port}/health"


def main(url=None):
    if url is None:
        try:
            url = health_url(load_configuration())
        except ConfigurationError as e:
            print(f"Config check failed: {e}")
            return 1

    health = check_api_server(url)
    api_ok = health is not None and health.get("status") == "healthy"
    keepalive_ok = bool(health and health.get("keepalive"))

    if api_ok and keepalive_ok:
        print("Health check passed")
        return 0

    print("Health check failed")
    print(f"  API Server: {'OK' if api_ok else 'FAIL'}")
    print(f"  Keep-alive: {'OK' if keepalive_ok else 'FAIL'}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
