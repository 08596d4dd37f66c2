from __future__ import annotations

import argparse
import json
import logging
import os
import subprocess
import sys
from typing import Any, Dict, List, Optional

from .context import ProvisionCtx, build_ctx
from .errors import ProvisionError
from .lib.manifests import manifest_path
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .pipeline import PipelineResult, Step, run_pipeline
from .provision_config import ProvisionConfig, load_config
from .state_store import ensure_defaults, is_step_completed, load_state, reset_execution, save_state
from .steps import (
    BuildSourcesStep,
    BuildSourceStep,
    FetchSourceStep,
    FinalizeEnvironmentStep,
    InstallPackagesStep,
    SelectBaseImageStep,
    VerifyToolchainStep,
)

logger = logging.getLogger(__name__)


DEFAULT_STATE_PATH = "/var/lib/toolchain-provisioner/state.json"


def build_steps(ctx: ProvisionCtx) -> List[Step]:
    """The provisioning sequence, in directive order."""

    steps: List[Step] = [SelectBaseImageStep(ctx), InstallPackagesStep(ctx)]
    repos = ctx.cfg.repositories

    if ctx.cfg.build_strategy == "parallel":
        steps += [FetchSourceStep(ctx, r) for r in repos]
        if repos:
            steps.append(BuildSourcesStep(ctx, repos))
    else:
        for r in repos:
            steps += [FetchSourceStep(ctx, r), BuildSourceStep(ctx, r)]

    steps += [FinalizeEnvironmentStep(ctx), VerifyToolchainStep(ctx)]
    return steps


def provision(
    ctx: ProvisionCtx,
    state: Dict[str, Any],
    *,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    force: bool = False,
    resume: bool = False,
) -> PipelineResult:
    """Run the provisioning sequence against an in-memory state dict."""

    ensure_defaults(state)
    if not resume:
        reset_execution(state)

    state["config"] = ctx.cfg.summary()
    state["execution"]["initial_environment"] = ctx.environment.as_dict()
    state["execution"]["dry_run"] = ctx.dry_run

    return run_pipeline(
        state=state,
        steps=build_steps(ctx),
        start_at=start_at,
        stop_after=stop_after,
        force=force,
    )


def run(
    *,
    config_path: str,
    state_path: str = DEFAULT_STATE_PATH,
    log_path: str = DEFAULT_LOG_PATH,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    force: bool = False,
    resume: bool = False,
    dry_run: bool = False,
    verbose: bool = False,
    ctx: Optional[ProvisionCtx] = None,
) -> Dict[str, Any]:
    """Provision from a manifest, persisting state after every run."""

    actual_log_path = configure_logging(
        log_path=log_path,
        console_level=logging.DEBUG if verbose else logging.INFO,
    )

    cfg = ctx.cfg if ctx is not None else load_config(config_path)
    ctx = ctx or build_ctx(cfg, dry_run=dry_run)

    state = ensure_defaults(load_state(state_path))
    state["execution"]["paths"] = {
        "config": config_path,
        "log_path_requested": log_path,
        "log_path_actual": actual_log_path,
    }

    try:
        result = provision(
            ctx,
            state,
            start_at=start_at,
            stop_after=stop_after,
            force=force,
            resume=resume,
        )
        state = result.state
        state["execution"]["summary"] = {
            "ran_steps": result.ran_steps,
            "skipped_steps": result.skipped_steps,
        }
        return state
    except Exception:
        logger.exception("Provisioning failed at %s", state["execution"].get("failed_step"))
        raise
    finally:
        save_state(state_path, state)


def shell_command(state: Dict[str, Any], args: Optional[List[str]] = None) -> tuple[List[str], Dict[str, str]]:
    """argv and environment of the registered entry command."""

    if not is_step_completed(state, FinalizeEnvironmentStep.step_id):
        raise ProvisionError("Environment has not been finalized; run provisioning first")

    env_state = state.get("environment") or {}
    entrypoint = list(env_state.get("entrypoint") or ["bash"])
    argv = [*entrypoint, *(args or [])]

    root = str(env_state.get("root") or "/")
    if root != "/":
        argv = ["chroot", root, *argv]

    env = dict(os.environ)
    env.update(env_state.get("variables") or {})
    return argv, env


def launch_shell(state_path: str, args: Optional[List[str]] = None) -> int:
    state = load_state(state_path)
    argv, env = shell_command(state, args)
    logger.info("Launching %s", " ".join(argv))
    return subprocess.call(argv, env=env)


def _add_config_arg(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--config",
        default=None,
        help="Provisioning manifest (YAML); defaults to the bundled lc3 manifest",
    )


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="toolchain-provision")
    sub = p.add_subparsers(dest="command", required=True)

    p_run = sub.add_parser("run", help="Run the provisioning sequence")
    _add_config_arg(p_run)
    p_run.add_argument("--state", default=DEFAULT_STATE_PATH, help="Path to provisioning state (json|yaml)")
    p_run.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to provisioning log")
    p_run.add_argument("--start-at", default=None, help="Start at step_id (e.g. 30_fetch:lc3tools)")
    p_run.add_argument("--stop-after", default=None, help="Stop after step_id")
    p_run.add_argument("--resume", action="store_true", help="Skip steps completed by a previous run")
    p_run.add_argument("--force", action="store_true", help="With --resume, re-run completed steps anyway")
    p_run.add_argument("--dry-run", action="store_true", help="Log commands without executing them")
    p_run.add_argument("-v", "--verbose", action="store_true", help="Show command output on the console too")

    p_shell = sub.add_parser("shell", help="Start the registered entry command")
    p_shell.add_argument("--state", default=DEFAULT_STATE_PATH)
    p_shell.add_argument("args", nargs=argparse.REMAINDER)

    p_show = sub.add_parser("show-config", help="Print the resolved manifest")
    _add_config_arg(p_show)

    p_steps = sub.add_parser("list-steps", help="Print the step ids of the sequence")
    _add_config_arg(p_steps)

    args = p.parse_args(argv)
    config_path = getattr(args, "config", None) or manifest_path()

    try:
        if args.command == "run":
            run(
                config_path=config_path,
                state_path=args.state,
                log_path=args.log,
                start_at=args.start_at,
                stop_after=args.stop_after,
                force=args.force,
                resume=args.resume,
                dry_run=args.dry_run,
                verbose=args.verbose,
            )
            return 0

        if args.command == "shell":
            extra = args.args[1:] if args.args[:1] == ["--"] else args.args
            return launch_shell(args.state, extra)

        cfg: ProvisionConfig = load_config(config_path)
        if args.command == "show-config":
            sys.stdout.write(json.dumps(cfg.summary(), indent=2) + "\n")
        else:
            for step in build_steps(build_ctx(cfg, dry_run=True)):
                sys.stdout.write(step.step_id + "\n")
        return 0
    except ProvisionError as e:
        sys.stderr.write(f"toolchain-provision: {e}\n")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
