"""Command-line interface commands."""
import sys
from typing import Any, Dict, Optional

import yaml

from ..core.config import Config
from ..core.logging import get_logger
from ..domain.models import Directive, Reintake, RenderStatus, Step, directive_to_dict
from ..infrastructure.session import MemorySessionBackend, YamlSessionBackend
from ..services.controller import StepController
from ..services.context import InstallerContext
from ..services.overrides import OverrideStore
from ..services.steps import OVERRIDE_FIELDS

logger = get_logger(__name__)

# Guards the driver loop against a step that keeps asking to be re-run
MAX_INVOCATIONS = 100000


def build_context(config: Config) -> InstallerContext:
    """Create the installer context with the configured session backend."""
    backend_name = config.session.backend
    if backend_name == "file":
        backend = YamlSessionBackend(config.session.path)
    elif backend_name == "memory":
        backend = MemorySessionBackend()
    else:
        backend = None
    logger.debug(f"Session backend: {backend_name}")
    return InstallerContext(config, OverrideStore(backend))


def override_params(args) -> Dict[str, Any]:
    """Override form fields given on the command line."""
    params = {}
    for field in OVERRIDE_FIELDS:
        value = getattr(args, field, None)
        if value is not None:
            params[field] = value
    return params


def step_command(args, config: Config, context: Optional[InstallerContext] = None, stream=None) -> int:
    """Run exactly one engine invocation and print the directive as YAML."""
    stream = stream or sys.stdout
    context = context or build_context(config)
    controller = StepController(context)

    params = override_params(args)
    if getattr(args, "chunk", None) is not None:
        params["chunk"] = args.chunk
    if getattr(args, "preview", False):
        params["preview"] = True

    directive = controller.route(args.step, params)
    stream.write(yaml.safe_dump(directive_to_dict(directive), sort_keys=False, default_flow_style=False))
    stream.flush()

    if isinstance(directive, RenderStatus) and not directive.ok:
        return 1
    return 0


def run_command(args, config: Config, interface, context: Optional[InstallerContext] = None) -> int:
    """Follow directives from the requested step until done or failed.

    The operator is asked to confirm the discovered configuration before
    deployment starts unless ``--yes`` was given.
    """
    context = context or build_context(config)
    controller = StepController(context)

    params = override_params(args)
    if params:
        # Store overrides first so every later step sees them
        stored = controller.route(Step.CONFIGURE.value, params)
        if isinstance(stored, RenderStatus):
            interface.render(stored)
            return 1

    directive: Directive = controller.route(args.step)
    for _ in range(MAX_INVOCATIONS):
        if isinstance(directive, Reintake):
            logger.debug(f"Re-entering at step {directive.step.value} {directive.params}")
            directive = controller.route(directive.step.value, directive.params)
            continue

        interface.render(directive)
        if not directive.ok:
            return 1
        if directive.step is Step.DONE:
            logger.info(f"Site restored at {directive.data.get('site_url', '')}")
            return 0
        if directive.step is Step.CONFIGURE and not getattr(args, "yes", False):
            if not interface.confirm("Deploy the snapshot with this configuration?"):
                logger.info("Installation cancelled; run again to resume")
                return 1
        if directive.next is None:
            return 0
        directive = controller.route(directive.next.step.value, directive.next.params)

    logger.error(f"Stopped after {MAX_INVOCATIONS} invocations without finishing")
    return 1


def cleanup_command(args, config: Config, interface, context: Optional[InstallerContext] = None) -> int:
    """Remove the extraction tree, archive, error log and session."""
    context = context or build_context(config)
    directive = StepController(context).route(Step.CLEANUP.value)
    interface.render(directive)
    return 0 if directive.ok else 1
