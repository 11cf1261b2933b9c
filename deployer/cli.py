"""Command line interface.

Usage:
    deployer plan V2Core
    deployer deploy V2Core V2Periphery --network monad-testnet
    deployer verify V2Core
    deployer status
    deployer wipe V2Core MondaV2Factory
    deployer serve --port 8000

Modules are named by registry name (see ``deployer.modules.REGISTRY``) or
as ``package.module:ATTRIBUTE``. Exit status is 0 on success, 2 for a
malformed module or plan, and 1 for any other error.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import structlog

from deployer.artifacts import ArtifactStore
from deployer.config import ProjectConfig, load_config, resolve_accounts
from deployer.errors import ConfigurationError, DeployerError, PlanError
from deployer.execution.executor import ExecutionReport, Executor
from deployer.execution.web3_network import Web3Network
from deployer.models.module import Module
from deployer.models.record import DeploymentRecord
from deployer.models.steps import Deploy, ModuleOutput, Ref
from deployer.modules import load_module
from deployer.planning.plan import PlannedStep, plan
from deployer.store import RecordStore
from deployer.verify import SourcifyVerifier, verify_artifacts

logger = structlog.get_logger()


def configure_logging(verbose: bool = False) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _format_argument(value: Any) -> str:
    if isinstance(value, Ref):
        return f"<{value.step}>"
    if isinstance(value, ModuleOutput):
        return f"<{value.module}.{value.output}>"
    if isinstance(value, list | tuple):
        return "[" + ", ".join(_format_argument(v) for v in value) + "]"
    return str(value)


def format_plan(module: str, planned: Sequence[PlannedStep]) -> list[str]:
    """Render planned steps as one line each."""
    lines = [f"{module}:"]
    for item in planned:
        step = item.step
        args = item.args if item.args is not None else list(step.args)
        rendered = ", ".join(_format_argument(a) for a in args)
        if isinstance(step, Deploy):
            if step.address is not None:
                what = f"adopt {step.contract} at {step.address}"
            else:
                what = f"deploy {step.contract}({rendered})"
        else:
            what = f"call <{step.target.step}>.{step.method}({rendered})"
        suffix = f" -> {item.artifact.address}" if item.artifact and isinstance(step, Deploy) else ""
        lines.append(f"  [{item.action.value:>7}] {step.name}: {what}{suffix}")
    return lines


def _outputs(reports: Sequence[ExecutionReport]) -> dict[str, dict[str, str]]:
    return {r.module: {name: a.address for name, a in r.outputs.items()} for r in reports}


class Session:
    """Per-invocation handles derived from the configuration."""

    def __init__(self, config: ProjectConfig, network: str | None) -> None:
        self.config = config
        self.network_name, self.network_config = config.select_network(network)
        self.store = RecordStore(config.deployments_dir)

    def connect(self) -> Web3Network:
        keys = resolve_accounts(self.network_name, self.network_config)
        return Web3Network.from_config(self.network_name, self.network_config, keys[0])

    def load_record(self, chain_id: int | None = None) -> DeploymentRecord:
        return self.store.load(self.network_name, chain_id=chain_id)


def cmd_plan(args: argparse.Namespace, session: Session) -> int:
    module = load_module(args.module)
    record = session.load_record()
    for member in module.closure():
        for line in format_plan(member.name, plan(member, record)):
            print(line)
    return 0


def cmd_deploy(args: argparse.Namespace, session: Session) -> int:
    modules: list[Module] = [load_module(name) for name in args.modules]
    # Validate every module before touching the network
    record = session.load_record()
    for module in modules:
        for member in module.closure():
            plan(member, record)

    network = session.connect()
    record = session.load_record(chain_id=network.chain_id)
    executor = Executor(network, ArtifactStore(session.config.artifacts_dir), record, session.store)
    logger.info("deploying", network=session.network_name, account=network.address, modules=args.modules)
    if len(modules) == 1:
        reports = [executor.execute(modules[0])]
    else:
        reports = executor.execute_many(modules, max_workers=args.workers)
    print(json.dumps(_outputs(reports), indent=2))
    return 0


def cmd_verify(args: argparse.Namespace, session: Session) -> int:
    module = load_module(args.module)
    record = session.load_record()
    chain_id = record.chain_id or session.network_config.chain_id
    if chain_id is None:
        raise ConfigurationError(
            f"Chain id of {session.network_name!r} is unknown; deploy first or set chainId"
        )
    artifacts = list(record.module_artifacts(module.name).values())
    if not artifacts:
        raise DeployerError(f"Module {module.name!r} has no deployments on {session.network_name!r}")
    if session.config.etherscan.enabled:
        logger.warning("etherscan_not_supported", message="Only Sourcify verification is performed")

    with SourcifyVerifier(session.config.sourcify) as verifier:
        results = verify_artifacts(
            artifacts,
            ArtifactStore(session.config.artifacts_dir),
            verifier,
            chain_id,
            compiler=session.config.compiler,
        )
        for step, status in results.items():
            address = record.module_artifacts(module.name)[step].address
            print(f"{step}: {status} {verifier.explorer_url(address)}")
    return 0


def cmd_status(args: argparse.Namespace, session: Session) -> int:
    record = session.load_record()
    modules = [args.module] if args.module else record.modules
    status = {
        name: {step: a.model_dump(mode="json") for step, a in record.module_artifacts(name).items()}
        for name in modules
    }
    print(json.dumps({"network": record.network, "chainId": record.chain_id, "modules": status}, indent=2))
    return 0


def cmd_wipe(args: argparse.Namespace, session: Session) -> int:
    removed = session.store.invalidate(session.network_name, args.module, args.step)
    if not removed:
        print(f"Nothing recorded for {args.module}{'#' + args.step if args.step else ''}")
        return 1
    for name in removed:
        print(f"wiped {args.module}#{name}")
    return 0


def cmd_serve(args: argparse.Namespace, session: Session) -> int:
    from deployer.api.main import run

    run(host=args.host, port=args.port, store=session.store)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="deployer", description="Declarative contract deployments")
    parser.add_argument("--config", type=Path, default=None, help="Configuration file (default: deployer.json)")
    parser.add_argument("--network", default=None, help="Target network (default: defaultNetwork)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    commands = parser.add_subparsers(dest="command", required=True)

    p = commands.add_parser("plan", help="Show what deploy would do")
    p.add_argument("module")
    p.set_defaults(handler=cmd_plan)

    p = commands.add_parser("deploy", help="Execute one or more modules")
    p.add_argument("modules", nargs="+")
    p.add_argument("--workers", type=int, default=4, help="Concurrent independent modules")
    p.set_defaults(handler=cmd_deploy)

    p = commands.add_parser("verify", help="Verify a module's contracts on Sourcify")
    p.add_argument("module")
    p.set_defaults(handler=cmd_verify)

    p = commands.add_parser("status", help="Print recorded artifacts")
    p.add_argument("module", nargs="?")
    p.set_defaults(handler=cmd_status)

    p = commands.add_parser("wipe", help="Invalidate recorded entries of a module")
    p.add_argument("module")
    p.add_argument("step", nargs="?")
    p.set_defaults(handler=cmd_wipe)

    p = commands.add_parser("serve", help="Serve deployment records over HTTP")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.set_defaults(handler=cmd_serve)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    try:
        session = Session(load_config(args.config), args.network)
        return args.handler(args, session)
    except PlanError as err:
        logger.error("plan_rejected", error=str(err), error_type=type(err).__name__)
        print(f"Error: {err}", file=sys.stderr)
        return 2
    except DeployerError as err:
        logger.error("command_failed", command=args.command, error=str(err), error_type=type(err).__name__)
        print(f"Error: {err}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
