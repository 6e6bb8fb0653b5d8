"""Command-line interface for kubexpose.

This module serves as the entrypoint for the kubexpose application.
"""

import argparse
import logging
import signal
import sys
import threading
from typing import Any

from kubexpose import __description__, __version__
from kubexpose.cleanup import CleanupJob
from kubexpose.config import (
    ExposeConfig,
    ExposerType,
    load_file,
    overrides_from_env,
    resolve_config,
)
from kubexpose.engine import ReconciliationEngine
from kubexpose.exceptions import CleanupError, ConfigurationError
from kubexpose.exposers import create_exposer
from kubexpose.kubernetes import KubernetesController
from kubexpose.kubernetes.connection import KubernetesConnection
from kubexpose.metrics import start_health_server
from kubexpose.namespaces import NamespaceScope

DEFAULT_CONFIG_FILE = "/etc/kubexpose/config.yml"
DEFAULT_HEALTHZ_PORT = 10254

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Set up logging configuration.

    Args:
        verbose: Whether to enable verbose logging.
    """
    log_level = logging.DEBUG if verbose else logging.INFO
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(level=log_level, format=log_format, stream=sys.stdout)
    # The Kubernetes client logs every request at debug level
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        args: Command-line arguments to parse. If None, sys.argv will be used.

    Returns:
        Parsed arguments.
    """
    parser = argparse.ArgumentParser(prog="kubexpose", description=__description__)

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    parser.add_argument(
        "--config", default=DEFAULT_CONFIG_FILE, help=f"Configuration file (default: {DEFAULT_CONFIG_FILE})"
    )
    parser.add_argument("--kubeconfig", help="Path to a kubeconfig file (default: in-cluster configuration)")
    parser.add_argument("--context", help="Kubeconfig context to use")

    parser.add_argument(
        "--daemon", action="store_true", help="Keep running and watching services instead of running once"
    )
    parser.add_argument("--cleanup", action="store_true", help="Delete the generated access objects and exit")
    parser.add_argument("--filter", help="With --cleanup, only delete access objects whose name contains this text")

    parser.add_argument("--sync-period", type=int, help="Seconds between two forced resyncs (overrides syncPeriod)")
    parser.add_argument(
        "--healthz-port",
        type=int,
        default=DEFAULT_HEALTHZ_PORT,
        help=f"Port of the health endpoint, 0 to disable (default: {DEFAULT_HEALTHZ_PORT})",
    )

    parser.add_argument("--domain", help="Domain suffix of the generated hosts (overrides domain)")
    parser.add_argument("--exposer", help=f"Exposure strategy: {', '.join(ExposerType.names())} (overrides exposer)")
    parser.add_argument("--api-server", help="URL of the Kubernetes API server (overrides apiServer)")
    parser.add_argument("--console-server", help="URL of the cluster console (overrides consoleURL)")
    parser.add_argument(
        "--http", action="store_true", default=None, help="Expose services over plain HTTP, without TLS (overrides http)"
    )
    parser.add_argument(
        "--watch-namespace",
        help="Comma-separated list of namespaces to watch (overrides watchNamespaces)",
    )
    parser.add_argument(
        "--watch-current-namespace",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Only watch the namespace kubexpose runs in (overrides watchCurrentNamespace)",
    )
    parser.add_argument("--services", help="Comma-separated list of services to expose (overrides services)")
    parser.add_argument(
        "--no-team-config",
        action="store_true",
        help="Do not look for configuration in the team namespace",
    )

    return parser.parse_args(args)


def cli_overrides(parsed_args: argparse.Namespace) -> dict[str, Any]:
    """Return the configuration fields set on the command line."""
    values = {
        "domain": parsed_args.domain,
        "exposer": parsed_args.exposer,
        "api_server": parsed_args.api_server,
        "console_url": parsed_args.console_server,
        "http": parsed_args.http,
        "sync_period": parsed_args.sync_period,
        "watch_namespaces": parsed_args.watch_namespace,
        "watch_current_namespace": parsed_args.watch_current_namespace,
        "services": parsed_args.services,
    }
    return {key: value for key, value in values.items() if value is not None}


def load_config(
    parsed_args: argparse.Namespace, controller: KubernetesController, environ: dict[str, str] | None = None
) -> ExposeConfig:
    """Resolve the configuration from every source.

    Precedence: command line, ``KUBEXPOSE_*`` environment variables, the
    configuration file, ConfigMaps of the current namespace, then ConfigMaps
    of the team namespace.

    Args:
        parsed_args: The parsed command line.
        controller: The Kubernetes controller used to read cluster configuration.
        environ: Environment to read overrides from. If None, os.environ is used.

    Returns:
        The resolved configuration.

    Raises:
        ConfigurationError: If a source is unreadable or the result is invalid.
    """
    sources = [cli_overrides(parsed_args), overrides_from_env(environ), load_file(parsed_args.config)]

    try:
        namespace = controller.current_namespace()
    except ConfigurationError as e:
        logger.warning(f"Skipping cluster configuration: {e}")
        namespace = None

    if namespace:
        sources.append(controller.find_cluster_config(namespace))
        if not parsed_args.no_team_config:
            team = controller.team_namespace(namespace)
            if team and team != namespace:
                sources.append(controller.find_cluster_config(team))

    return resolve_config(*sources)


def install_signal_handlers(engine: ReconciliationEngine) -> threading.Thread:
    """Stop the engine on SIGINT and SIGTERM.

    The handlers only set an event. A separate thread waits for it and stops
    the engine outside signal context, since ``stop()`` takes locks the
    interrupted main thread may already hold.

    Returns:
        The thread that stops the engine once a signal has been received.
    """
    stop_requested = threading.Event()

    def handle_signal(signum, frame):
        stop_requested.set()

    def stop_on_request():
        stop_requested.wait()
        logger.info("Received a termination signal, stopping")
        engine.stop()

    stopper = threading.Thread(target=stop_on_request, name="signal-stop", daemon=True)
    stopper.start()
    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)
    return stopper


def run_engine(engine: ReconciliationEngine) -> None:
    """Run the engine until stopped, or until its first pass outside daemon mode."""
    if engine.daemon:
        engine.run()
        return

    worker = threading.Thread(target=engine.run, name="reconcile", daemon=True)
    worker.start()
    if engine.wait_until_run():
        logger.info("Reconciliation pass completed")
    engine.stop()
    worker.join()


def main(args: list[str] | None = None) -> int:
    """Main entry point for the kubexpose application.

    Args:
        args: Command-line arguments. If None, sys.argv will be used.

    Returns:
        Exit code.
    """
    try:
        parsed_args = parse_args(args)
        setup_logging(parsed_args.verbose)
        logger.info(f"Starting kubexpose {__version__}")

        connection = KubernetesConnection(kubeconfig=parsed_args.kubeconfig, context=parsed_args.context)
        controller = KubernetesController(connection)

        config = load_config(parsed_args, controller)
        logger.info(f"Configuration: {config.summary()}")

        scope = NamespaceScope.resolve(config, controller.current_namespace)
        exposer = create_exposer(config)
        store = controller.get_store(exposer.STORE_KIND)
        if store is None:
            raise ConfigurationError(f"No store for {exposer.STORE_KIND}")

        if parsed_args.cleanup:
            CleanupJob(store, scope, parsed_args.filter).run()
            return 0

        start_health_server(parsed_args.healthz_port)

        engine = ReconciliationEngine(
            config=config,
            scope=scope,
            exposer=exposer,
            store=store,
            services=controller.services,
            connection=connection,
            daemon=parsed_args.daemon,
        )
        install_signal_handlers(engine)
        run_engine(engine)

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except CleanupError as e:
        logger.error(f"Cleanup failed: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.error(f"An unexpected error occurred: {e}")
        return 1

    logger.info("kubexpose exiting")
    return 0


if __name__ == "__main__":
    sys.exit(main())
