"""ASGI entrypoint for the group voting API."""

from group_voting.api.app import create_app
from group_voting.containers import build_container

app = create_app(build_container())
