"""HTTP proxy exposing the DeGiro operations to the dashboard frontend."""

from degiro_proxy.server.app import create_app, run_server

__all__ = ["create_app", "run_server"]
