"""ASGI entrypoint for the mess ledger API."""

from mess_ledger.api.app import create_app
from mess_ledger.containers import build_container

app = create_app(build_container())
