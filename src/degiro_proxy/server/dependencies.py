"""Dependency injection for the proxy routes."""

from __future__ import annotations

from fastapi import Request

from degiro_proxy.config import AppConfig
from degiro_proxy.degiro import DegiroClient


def get_client(request: Request) -> DegiroClient:
    return request.app.state.degiro_client


def get_config(request: Request) -> AppConfig:
    return request.app.state.config
