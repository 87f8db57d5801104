"""Litestar application factory and CLI entry point."""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from litestar import Litestar, Request
from litestar.datastructures import State
from litestar.di import Provide
from litestar.exceptions import NotAuthorizedException

from fleet_dispatch.config import ConfigLoader, Settings
from fleet_dispatch.controllers.commands import CommandController
from fleet_dispatch.controllers.device_api import DeviceApiController
from fleet_dispatch.controllers.devices import DeviceController
from fleet_dispatch.controllers.health import HealthController
from fleet_dispatch.dao.command_dao import CommandDAO
from fleet_dispatch.dao.device_dao import DeviceDAO
from fleet_dispatch.plugins.contracts.push import PushNotifier
from fleet_dispatch.plugins.log_push import LogPushNotifier
from fleet_dispatch.resources.command import CommandResource
from fleet_dispatch.resources.device import DeviceResource
from fleet_dispatch.resources.health import HealthResource
from fleet_dispatch.services.command_service import CommandService
from fleet_dispatch.services.device_service import DeviceService
from fleet_dispatch.services.expiry_sweeper import ExpirySweeper
from fleet_dispatch.utils.db import Database
from fleet_dispatch.utils.jwt import JWTManager
from fleet_dispatch.utils.logging import LoggingSetup


class AppFactory:
    """Builds and configures the Litestar application. All methods are static."""

    @staticmethod
    def _build(
        settings: Settings, push_notifier: PushNotifier | None = None,
    ) -> State:
        """Construct the full object graph once.

        pool → device_dao → device_service → DeviceResource
        pool → command_dao ─┬→ command_service → CommandResource
             device_dao ────┤
             push_notifier ─┘
        command_dao → ExpirySweeper → HealthResource
        JWTManager.configure() (class-level)
        """
        pool = Database.init(settings.database_url)
        device_dao = DeviceDAO(pool)
        command_dao = CommandDAO(pool)
        device_service = DeviceService(device_dao)
        command_service = CommandService(
            command_dao,
            device_dao,
            push_notifier=push_notifier or LogPushNotifier(),
            default_ttl_seconds=settings.default_command_ttl_seconds,
            default_claim_batch=settings.default_claim_batch,
            claim_batch_max=settings.claim_batch_max,
        )
        sweeper = ExpirySweeper(
            command_dao,
            interval_seconds=settings.sweep_interval_seconds,
            batch_size=settings.sweep_batch_size,
            claim_timeout_seconds=settings.claim_timeout_seconds,
        )
        JWTManager.configure(
            secret_key=settings.secret_key,
            algorithm=settings.jwt_algorithm,
            expire_minutes=settings.token_expire_minutes,
        )
        return State({
            "settings": settings,
            "sweeper": sweeper,
            "health": HealthResource(sweeper),
            "devices": DeviceResource(device_service=device_service),
            "commands": CommandResource(command_service=command_service),
        })

    @staticmethod
    @asynccontextmanager
    async def _lifespan(app: Litestar) -> AsyncIterator[None]:
        """Create tables and start the sweeper; stop it and dispose on shutdown."""
        await Database.create_tables()
        settings: Settings = app.state.settings
        sweeper: ExpirySweeper = app.state.sweeper
        if settings.sweeper_enabled:
            sweeper.start()
        try:
            yield
        finally:
            await sweeper.stop()
            await Database.close()

    @staticmethod
    async def provide_operator(
        request: Request[object, object, State],
    ) -> str:
        """Litestar dependency — operator name from the Authorization header."""
        header = request.headers.get("Authorization", "")
        if not header.startswith("Bearer "):
            raise NotAuthorizedException(
                detail="Missing or invalid Authorization header",
            )
        token = header[len("Bearer "):]
        try:
            return JWTManager.resolve_operator(token)
        except ValueError as error:
            raise NotAuthorizedException(detail=str(error)) from error

    @staticmethod
    def provide_health(state: State) -> HealthResource:
        """Provide the pre-built HealthResource from app state."""
        health_resource: HealthResource = state.health
        return health_resource

    @staticmethod
    def provide_devices(state: State) -> DeviceResource:
        """Provide the pre-built DeviceResource from app state."""
        device_resource: DeviceResource = state.devices
        return device_resource

    @staticmethod
    def provide_commands(state: State) -> CommandResource:
        """Provide the pre-built CommandResource from app state."""
        command_resource: CommandResource = state.commands
        return command_resource

    @staticmethod
    def create_app(
        settings: Settings | None = None,
        push_notifier: PushNotifier | None = None,
    ) -> Litestar:
        """Create and configure the Litestar application."""
        if settings is None:
            settings = ConfigLoader.load_settings()
        LoggingSetup.configure(
            json_output=settings.log_json, log_level=settings.log_level,
        )
        return Litestar(
            route_handlers=[
                HealthController, DeviceController,
                CommandController, DeviceApiController,
            ],
            state=AppFactory._build(settings, push_notifier),
            lifespan=[AppFactory._lifespan],
            dependencies={
                "operator": Provide(AppFactory.provide_operator),
                "health_resource": Provide(AppFactory.provide_health, sync_to_thread=False),
                "device_resource": Provide(AppFactory.provide_devices, sync_to_thread=False),
                "command_resource": Provide(AppFactory.provide_commands, sync_to_thread=False),
            },
        )


# Public alias so conftest / uvicorn can call create_app() without knowing AppFactory.
create_app = AppFactory.create_app


class CLI:
    """Command-line interface for fleet-dispatch."""

    @staticmethod
    def _build_parser() -> argparse.ArgumentParser:
        """Build the CLI argument parser."""
        parser = argparse.ArgumentParser(
            prog="fleet-dispatch", description="Fleet command dispatch server",
        )
        subparsers = parser.add_subparsers(dest="command")

        run_parser = subparsers.add_parser("run", help="Start the server")
        run_parser.add_argument("--host", default="0.0.0.0")
        run_parser.add_argument("--port", type=int, default=8000)
        run_parser.add_argument("--reload", action="store_true", help="Auto-reload on file changes")

        token_parser = subparsers.add_parser(
            "issue-token", help="Print an operator JWT",
        )
        token_parser.add_argument("--operator", required=True)

        subparsers.add_parser("sweep", help="Run one expiry pass and exit")

        return parser

    @staticmethod
    def _issue_token(operator: str) -> None:
        """Sign an operator token with the configured secret."""
        settings = ConfigLoader.load_settings()
        JWTManager.configure(
            secret_key=settings.secret_key,
            algorithm=settings.jwt_algorithm,
            expire_minutes=settings.token_expire_minutes,
        )
        print(JWTManager.create_operator_token(operator))

    @staticmethod
    async def _sweep() -> int:
        """Run a single expiry pass against the configured database."""
        settings = ConfigLoader.load_settings()
        LoggingSetup.configure(
            json_output=settings.log_json, log_level=settings.log_level,
        )
        pool = Database.init(settings.database_url)
        try:
            await Database.create_tables()
            sweeper = ExpirySweeper(
                CommandDAO(pool),
                batch_size=settings.sweep_batch_size,
                claim_timeout_seconds=settings.claim_timeout_seconds,
            )
            expired = await sweeper.sweep_once()
        finally:
            await Database.close()
        return len(expired)

    @staticmethod
    def main(argv: list[str] | None = None) -> None:
        """CLI entry point. Catches all exceptions and exits cleanly."""
        parser = CLI._build_parser()
        args = parser.parse_args(argv)

        if args.command is None:
            parser.print_help()
            sys.exit(1)

        try:
            if args.command == "run":
                import uvicorn

                uvicorn.run(
                    "fleet_dispatch.app:create_app",
                    factory=True,
                    host=args.host,
                    port=args.port,
                    reload=args.reload,
                )
            elif args.command == "issue-token":
                CLI._issue_token(args.operator)
            elif args.command == "sweep":
                count = asyncio.run(CLI._sweep())
                print(f"Expired {count} command(s)")
        except KeyboardInterrupt:
            pass
        except Exception as error:
            print(f"Error: {error}", file=sys.stderr)
            sys.exit(1)


if __name__ == "__main__":
    CLI.main()
