"""Plan Checkout Load Testing: Locust entry point.

Discovers all user classes from the scenarios package.
Run specific scenarios with Locust's class selection.

Usage:
    # All scenarios (web UI):
    locust -f loadtests/locustfile.py

    # Checkout journeys only, with the partner key for signup calls:
    locust -f loadtests/locustfile.py CheckoutUser --partner-key "$CHECKOUT_PARTNER_API_KEY"

    # Stress test:
    locust -f loadtests/locustfile.py CartFloodUser

    # Headless (CI mode):
    locust -f loadtests/locustfile.py CheckoutUser --headless \
           -u 50 -r 5 -t 300s --csv=results/loadtest
"""

import logging
import time

import requests
from locust import events

# Import all user classes so Locust discovers them
from loadtests.helpers.response import extract_error_detail
from loadtests.scenarios.checkout import CheckoutUser  # noqa: F401
from loadtests.scenarios.stress import CartFloodUser, WebhookStormUser  # noqa: F401

logger = logging.getLogger("loadtest")


@events.init_command_line_parser.add_listener
def add_arguments(parser):
    parser.add_argument(
        "--partner-key",
        type=str,
        env_var="CHECKOUT_PARTNER_API_KEY",
        default="",
        help="Bearer key for the partner signup endpoints",
    )


@events.request.add_listener
def on_request(request_type, name, response, exception, **_kw):
    """Log error details for every failed request.

    Fires globally for all scenarios, so no per-task wiring is needed.
    """
    if exception:
        logger.error("[EXCEPTION] %s %s: %s", request_type, name, exception)
    elif response is not None and response.status_code >= 400:
        detail = extract_error_detail(response)
        logger.error("[%s] %s %s: %s", response.status_code, request_type, name, detail)


@events.test_start.add_listener
def on_test_start(environment, **_kwargs):
    """Log a marker when load test begins and check the target is up."""
    print(f"\n[LOADTEST] Started at {time.strftime('%H:%M:%S')}")
    print(f"[LOADTEST] Target host: {environment.host}")
    if environment.host:
        try:
            health = requests.get(f"{environment.host}/health", timeout=5).json()
            print(f"[LOADTEST] Health: {health.get('status')}")
        except requests.RequestException as e:
            print(f"[LOADTEST] Could not reach {environment.host}/health: {e}")
    print()


@events.test_stop.add_listener
def on_test_stop(**_kwargs):
    print(f"\n[LOADTEST] Stopped at {time.strftime('%H:%M:%S')}\n")
