"""Ephemeral container fixtures for integration tests."""

from __future__ import annotations

import os
import socket
import subprocess
import time
from collections.abc import Iterator
from dataclasses import dataclass

import pytest
from sqlalchemy import create_engine

from packages.mirror_shared.config import MirrorSettings
from services.state.account_indexer.data import run_migrations
from tests.integration.helpers import real_provider_tests_enabled

_POSTGRES_IMAGE = os.getenv("MIRROR_INTEGRATION_POSTGRES_IMAGE", "postgres:16")
_POSTGRES_USER = "mirror"
_POSTGRES_PASSWORD = "mirror"
_POSTGRES_DB = "mirror"


@dataclass(frozen=True, slots=True)
class RunningContainer:
    """Lightweight handle for a running temporary Docker container."""

    container_id: str
    host: str
    port: int


def _run_command(*args: str) -> subprocess.CompletedProcess[str]:
    """Execute one command and return captured stdout/stderr."""
    return subprocess.run(
        args,
        check=True,
        capture_output=True,
        text=True,
    )


def _docker_available() -> bool:
    """Return True when docker CLI is callable in the current environment."""
    try:
        _run_command("docker", "version")
    except (FileNotFoundError, subprocess.CalledProcessError):
        return False
    return True


def _parse_published_port(port_output: str) -> tuple[str, int]:
    """Parse ``docker port`` output into host and integer port."""
    line = port_output.strip().splitlines()[0].strip()
    host, port = line.rsplit(":", maxsplit=1)
    return host, int(port)


def _wait_for_tcp(host: str, port: int, *, timeout_seconds: float = 30.0) -> None:
    """Wait until one TCP endpoint accepts a connection or time out."""
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        try:
            with socket.create_connection((host, port), timeout=0.5):
                return
        except OSError:
            time.sleep(0.2)
    raise TimeoutError(f"timed out waiting for TCP endpoint {host}:{port}")


def _wait_for_postgres_ready(dsn: str, *, timeout_seconds: float = 60.0) -> None:
    """Wait until Postgres accepts stable SQL connections."""
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        engine = create_engine(dsn, pool_pre_ping=True)
        try:
            with engine.connect() as conn:
                conn.exec_driver_sql("SELECT 1")
            return
        except Exception:  # noqa: BLE001
            time.sleep(0.2)
        finally:
            engine.dispose()
    raise TimeoutError("timed out waiting for Postgres readiness")


def _start_container(
    *,
    image: str,
    container_port: int,
    env: dict[str, str] | None = None,
) -> RunningContainer:
    """Start one detached ``docker run`` container and return mapped endpoint."""
    env_args: list[str] = []
    for key, value in (env or {}).items():
        env_args.extend(["--env", f"{key}={value}"])
    run_result = _run_command(
        "docker",
        "run",
        "--detach",
        "--rm",
        "--publish",
        f"127.0.0.1::{container_port}",
        *env_args,
        image,
    )
    container_id = run_result.stdout.strip()
    port_result = _run_command("docker", "port", container_id, f"{container_port}/tcp")
    host, port = _parse_published_port(port_result.stdout)
    _wait_for_tcp(host, port)
    return RunningContainer(container_id=container_id, host=host, port=port)


def _stop_container(container_id: str) -> None:
    """Stop one running container and ignore teardown-time failures."""
    subprocess.run(
        ("docker", "stop", container_id),
        check=False,
        capture_output=True,
        text=True,
    )


@pytest.fixture(scope="session")
def postgres_dsn() -> Iterator[str]:
    """Yield one temporary Postgres DSN for integration tests."""
    if not real_provider_tests_enabled():
        pytest.skip("real-provider integration tests disabled")
    if not _docker_available():
        pytest.skip("docker unavailable for integration tests")
    container = _start_container(
        image=_POSTGRES_IMAGE,
        container_port=5432,
        env={
            "POSTGRES_USER": _POSTGRES_USER,
            "POSTGRES_PASSWORD": _POSTGRES_PASSWORD,
            "POSTGRES_DB": _POSTGRES_DB,
        },
    )
    dsn = (
        f"postgresql+psycopg://{_POSTGRES_USER}:{_POSTGRES_PASSWORD}"
        f"@{container.host}:{container.port}/{_POSTGRES_DB}"
    )
    try:
        _wait_for_postgres_ready(dsn)
        yield dsn
    finally:
        _stop_container(container.container_id)


@pytest.fixture(scope="session")
def integration_settings(postgres_dsn: str) -> MirrorSettings:
    """Yield settings bound to the temporary Postgres for repository tests."""
    return MirrorSettings(
        components={"substrate": {"postgres": {"url": postgres_dsn}}}  # type: ignore[arg-type]
    )


@pytest.fixture(scope="session")
def migrated_integration_settings(integration_settings: MirrorSettings) -> MirrorSettings:
    """Run service migrations against the temporary Postgres and return settings."""
    run_migrations(integration_settings)
    return integration_settings
