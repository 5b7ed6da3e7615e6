"""Routes one invocation to the handler of the requested step."""
from typing import Any, Callable, Dict, Optional

from ..core.exceptions import ErrorKind, InstallerError
from ..core.logging import get_logger
from ..domain.models import Directive, Reintake, RenderStatus, Step
from . import steps
from .context import InstallerContext

logger = get_logger(__name__)

Handler = Callable[[InstallerContext, Dict[str, Any]], Directive]

HANDLERS: Dict[Step, Handler] = {
    Step.CHECK: steps.check,
    Step.CONFIGURE: steps.configure,
    Step.EXTRACT: steps.extract,
    Step.COPY_FILES: steps.copy_files,
    Step.RESTORE_TABLES: steps.restore_tables,
    Step.FINALIZE: steps.finalize,
    Step.DONE: steps.done,
    Step.CLEANUP: steps.cleanup,
}


class StepController:
    """Runs exactly one step per call and never raises past itself."""

    def __init__(self, context: InstallerContext, handlers: Optional[Dict[Step, Handler]] = None):
        self.context = context
        self.handlers = dict(HANDLERS if handlers is None else handlers)

    def route(self, step_id: Optional[str] = None, params: Optional[Dict[str, Any]] = None) -> Directive:
        """Dispatch to the step named by step_id.

        Args:
            step_id: Caller-supplied step identifier; unknown or missing
                identifiers run the check step
            params: Request parameters (chunk index, override fields, flags)

        Returns:
            Reintake or RenderStatus directive
        """
        step = Step.from_id(step_id)
        params = dict(params or {})
        params.pop("step", None)
        handler = self.handlers[step]

        logger.debug(f"Running step {step.value} ({step.phase.value} phase) with {sorted(params)}")
        try:
            directive = handler(self.context, params)
        except InstallerError as e:
            logger.error(f"Step {step.value} failed: {str(e)}")
            return self._failure(step, str(e), e.kind)
        except Exception as e:
            logger.exception(f"Unexpected error in step {step.value}: {str(e)}")
            return self._failure(step, f"Unexpected error: {str(e)}", ErrorKind.UNEXPECTED)

        if isinstance(directive, RenderStatus) and not directive.ok:
            logger.error(f"Step {step.value} reported failure: {directive.error or 'no reason given'}")
        return directive

    def _failure(self, step: Step, message: str, kind: ErrorKind) -> RenderStatus:
        return RenderStatus(
            step=step,
            ok=False,
            error=message,
            error_kind=kind,
            next=Reintake(step),
            cleanup=None if step is Step.CLEANUP else Reintake(Step.CLEANUP),
        )
