"""Application startup.

Orchestrates configuration parsing, logging, engine construction and the
shutdown services before handing over to the CLI command.
"""
from __future__ import annotations

from typing import List

from loguru import logger

from app.cli import build_parser, run_command
from app.engine import AliasEngine
from app.logging_setup import configure_logging
from app.services import CleanupService, ExceptionHandlerService, SignalHandlerService
from config.service import ConfigurationServiceFactory
from core.exceptions import ConfigurationError


def run_application(argv: List[str]) -> int:
    """Main entry point.

    Startup sequence:
    1. Parse configuration from all sources (defaults, file, env, CLI)
    2. Configure loguru sinks
    3. Build the alias engine and register its shutdown (force flush)
    4. Run the requested command

    Returns:
        Process exit code
    """
    try:
        config_service, unknown_args = ConfigurationServiceFactory.create_from_args(argv)
    except ConfigurationError as e:
        configure_logging()
        logger.error(f"Invalid configuration: {e}")
        return 2

    configure_logging(config_service.log_level, config_service.log_file, config_service.debug)
    args = build_parser().parse_args(unknown_args)
    logger.debug(f"Configuration: {config_service.to_dict()}")

    engine = AliasEngine(config_service.raw_config)
    cleanup = _install_services(engine)
    try:
        return run_command(engine, args)
    finally:
        cleanup.cleanup()


def _install_services(engine: AliasEngine) -> CleanupService:
    cleanup = CleanupService()
    cleanup.register(engine.close, "alias engine")
    cleanup.install_atexit()

    SignalHandlerService(cleanup_callback=cleanup.cleanup).install()
    ExceptionHandlerService().install()
    return cleanup
