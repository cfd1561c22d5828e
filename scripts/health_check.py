#!/usr/bin/env python3
"""
Health check utility for AI Job Master.

Checks the database (including seeded usage limits), the running API's
/health endpoint, the key encryption round trip and, optionally, whether the
OpenAI, Anthropic and Gemini endpoints are reachable from this host.
"""

import sys
import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import click
import httpx
from sqlalchemy import func, select

# Add the backend directory to the Python path
sys.path.append(str(Path(__file__).parent.parent / "backend"))

from app.core.database import db_manager
from app.core.exceptions import DecryptionError
from app.core.logging import setup_logging
from app.models.settings import UsageLimitSettings
from app.models.user import UserType
from app.utils.encryption import decrypt, encrypt

logger = logging.getLogger(__name__)

PROVIDER_ENDPOINTS = {
    "openai": "https://api.openai.com/v1/models",
    "anthropic": "https://api.anthropic.com/v1/models",
    "gemini": "https://generativelanguage.googleapis.com/v1beta/models",
}


class HealthStatus(Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class ServiceHealth:
    name: str
    status: HealthStatus
    response_time: float
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)


CheckResult = Tuple[HealthStatus, str, Dict[str, Any]]


class HealthChecker:
    """Runs every check concurrently and folds them into one report."""

    def __init__(self, api_url: str, timeout: int = 10):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    async def _timed(
        self,
        name: str,
        check: Callable[[], Awaitable[CheckResult]],
        failure_status: HealthStatus = HealthStatus.UNHEALTHY,
    ) -> ServiceHealth:
        start = time.perf_counter()
        try:
            status, message, details = await check()
        except Exception as e:
            status, message, details = failure_status, f"{type(e).__name__}: {e}", {}
        return ServiceHealth(name, status, time.perf_counter() - start, message, details)

    async def _database(self) -> CheckResult:
        await db_manager.initialize()
        try:
            details = await db_manager.check_health()
            if details.get("status") != "healthy":
                return HealthStatus.UNHEALTHY, "Database query failed", details

            async with db_manager.sessionmaker() as session:
                seeded = await session.scalar(select(func.count()).select_from(UsageLimitSettings))
            details["usage_limit_rows"] = seeded
            if seeded < len(UserType):
                return HealthStatus.DEGRADED, "Usage limits not seeded, defaults in use", details
            return HealthStatus.HEALTHY, "Database connection successful", details
        finally:
            await db_manager.close()

    async def _api(self) -> CheckResult:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(f"{self.api_url}/health")
        if response.status_code != 200:
            return HealthStatus.UNHEALTHY, f"HTTP {response.status_code}", {"body": response.text[:200]}

        body = response.json()
        status = HealthStatus.HEALTHY if body.get("status") == "healthy" else HealthStatus.DEGRADED
        return status, f"API reports {body.get('status')}", body

    async def _encryption(self) -> CheckResult:
        sample = "health-check-sample"
        try:
            round_trip = decrypt(encrypt(sample))
        except DecryptionError as e:
            return HealthStatus.UNHEALTHY, f"Encryption key unusable: {e}", {}
        if round_trip != sample:
            return HealthStatus.UNHEALTHY, "Encryption round trip mismatch", {}
        return HealthStatus.HEALTHY, "Stored API keys can be decrypted", {}

    def _provider(self, url: str) -> Callable[[], Awaitable[CheckResult]]:
        async def check() -> CheckResult:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url)
            # any answer below 500 means reachable; 401 without a key is expected
            status = HealthStatus.HEALTHY if response.status_code < 500 else HealthStatus.DEGRADED
            return status, f"HTTP {response.status_code}", {"url": url}
        return check

    async def check_all_services(self, include_providers: bool = True) -> Dict[str, ServiceHealth]:
        checks = {
            "database": self._timed("Database", self._database),
            "api": self._timed("API Service", self._api),
            "encryption": self._timed("Key Encryption", self._encryption),
        }
        if include_providers:
            for provider, url in PROVIDER_ENDPOINTS.items():
                checks[provider] = self._timed(
                    f"{provider.capitalize()} API", self._provider(url), HealthStatus.DEGRADED
                )

        results = await asyncio.gather(*checks.values())
        return dict(zip(checks.keys(), results))

    @staticmethod
    def overall_status(health_results: Dict[str, ServiceHealth]) -> HealthStatus:
        statuses = {health.status for health in health_results.values()}
        for status in (HealthStatus.UNHEALTHY, HealthStatus.DEGRADED):
            if status in statuses:
                return status
        return HealthStatus.HEALTHY

    def generate_health_report(self, health_results: Dict[str, ServiceHealth]) -> Dict[str, Any]:
        statuses = [health.status for health in health_results.values()]
        return {
            "timestamp": datetime.now().isoformat(),
            "api_url": self.api_url,
            "overall_status": self.overall_status(health_results).value,
            "summary": {status.value: statuses.count(status) for status in HealthStatus},
            "services": {
                key: {
                    "name": health.name,
                    "status": health.status.value,
                    "response_time": round(health.response_time, 4),
                    "message": health.message,
                    "details": health.details,
                }
                for key, health in health_results.items()
            },
        }


def print_health_status(health_results: Dict[str, ServiceHealth], detailed: bool = False):
    colors = {
        HealthStatus.HEALTHY: "green",
        HealthStatus.DEGRADED: "yellow",
        HealthStatus.UNHEALTHY: "red",
    }

    click.echo("\nAI Job Master health check")
    click.echo("-" * 72)
    for health in health_results.values():
        label = click.style(f"{health.status.value.upper():<10}", fg=colors[health.status])
        click.echo(f"{label} {health.name:<18} {health.response_time:6.3f}s  {health.message}")
        if detailed:
            for key, value in health.details.items():
                click.echo(f"{'':<30}{key}: {value}")

    overall = HealthChecker.overall_status(health_results)
    click.echo("-" * 72)
    click.echo("Overall: " + click.style(overall.value.upper(), fg=colors[overall], bold=True))


@click.command()
@click.option('--api-url', '-u', default="http://localhost:8000", help='Base URL of the running API')
@click.option('--detailed', '-d', is_flag=True, help='Show the details each check returned')
@click.option('--json-output', '-j', is_flag=True, help='Print the report as JSON')
@click.option('--timeout', '-t', default=10, help='HTTP timeout per check (seconds)')
@click.option('--skip-providers', is_flag=True, help='Do not check LLM provider reachability')
@click.option('--output-file', '-o', type=click.Path(), help='Also write the JSON report to this file')
def main(api_url: str, detailed: bool, json_output: bool, timeout: int,
         skip_providers: bool, output_file: Optional[str]):
    """
    Check that AI Job Master and its dependencies are up.

    Exits 1 when any check is unhealthy.

    Examples:
        python scripts/health_check.py
        python scripts/health_check.py --skip-providers --detailed
        python scripts/health_check.py -j -o health.json
    """
    setup_logging()
    checker = HealthChecker(api_url, timeout=timeout)

    health_results = asyncio.run(checker.check_all_services(include_providers=not skip_providers))
    report = checker.generate_health_report(health_results)

    if json_output:
        click.echo(json.dumps(report, indent=2, default=str))
    else:
        print_health_status(health_results, detailed)

    if output_file:
        Path(output_file).write_text(json.dumps(report, indent=2, default=str))
        logger.info(f"Health report written to {output_file}")

    if report["overall_status"] == HealthStatus.UNHEALTHY.value:
        sys.exit(1)


if __name__ == "__main__":
    main()
