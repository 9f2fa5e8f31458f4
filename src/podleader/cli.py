from __future__ import annotations

import asyncio
import logging
import signal
import sys

try:
    import click
    from loguru import logger
except ImportError:
    raise SystemExit(
        "CLI dependencies not installed. Install with: pip install podleader[cli]"
    )

from podleader import ElectionAbortedError, ElectionResult, PodLeaderError, become, try_become
from podleader.identity import SERVICE_ACCOUNT_NAMESPACE_PATH, PodIdentityResolver
from podleader.retry import ExponentialBackoff, FixedInterval, LimitedAttempts, RetryStrategy


class InterceptHandler(logging.Handler):
    """Route stdlib logging to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _setup_logging(verbose: bool) -> None:
    lib_logger = logging.getLogger("podleader")
    lib_logger.handlers = [InterceptHandler()]
    lib_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    lib_logger.propagate = False


def _build_strategy(
    interval: float, backoff_max: float | None, max_attempts: int | None
) -> RetryStrategy:
    strategy: RetryStrategy
    if backoff_max is not None:
        strategy = ExponentialBackoff(base_s=interval, max_s=backoff_max)
    else:
        strategy = FixedInterval(interval_s=interval)
    if max_attempts is not None:
        strategy = LimitedAttempts(strategy, max_attempts=max_attempts)
    return strategy


@click.group()
def main() -> None:
    """podleader: leader election for Kubernetes pods via owned ConfigMaps."""
    pass


@main.command()
@click.option("--name", envvar="PODLEADER_NAME", required=True, help="Lock (ConfigMap) name")
@click.option("--interval", type=click.FloatRange(min=0.0), default=1.0, help="Seconds between attempts")
@click.option("--backoff-max", type=click.FloatRange(min=0.0), default=None, help="Use exponential backoff capped at this many seconds")
@click.option("--max-attempts", type=click.IntRange(min=1), default=None, help="Give up after this many conflicting attempts")
@click.option("--namespace-file", default=SERVICE_ACCOUNT_NAMESPACE_PATH, show_default=True, help="File holding the pod namespace")
@click.option("--pod-name", envvar="POD_NAME", default=None, help="Pod name (defaults to the hostname)")
@click.option("--kubeconfig", envvar="KUBECONFIG", default=None, help="Use a kubeconfig file instead of in-cluster config")
@click.option("--optional", "optional_", is_flag=True, default=False, help="Carry on without election when no namespace is found")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log state transitions")
def run(
    name: str,
    interval: float,
    backoff_max: float | None,
    max_attempts: int | None,
    namespace_file: str,
    pod_name: str | None,
    kubeconfig: str | None,
    optional_: bool,
    verbose: bool,
) -> None:
    """Become the leader, then hold leadership until terminated."""
    _setup_logging(verbose)

    async def _run() -> ElectionResult:
        shutdown_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, shutdown_event.set)

        elect = try_become if optional_ else become
        result = await elect(
            name,
            resolver=PodIdentityResolver(namespace_path=namespace_file, pod_name=pod_name),
            retry_strategy=_build_strategy(interval, backoff_max, max_attempts),
            abort_event=shutdown_event,
            kubeconfig=kubeconfig,
        )
        if result is ElectionResult.LEADER:
            logger.info(f"Holding leadership of {name!r}")
        else:
            logger.warning("Leader election disabled")

        await shutdown_event.wait()
        logger.info("Shutdown signal received")
        return result

    try:
        asyncio.run(_run())
    except ElectionAbortedError:
        logger.info("Stopped before becoming the leader")
        return
    except (PodLeaderError, OSError) as exc:
        logger.error(f"Leader election failed: {exc}")
        sys.exit(1)
    logger.info("Clean shutdown complete")


if __name__ == "__main__":
    main()
