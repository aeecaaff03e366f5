"""Project-level repair loop: validate, patch the worst error, re-validate."""

import asyncio
import uuid
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..config import MAX_ACTIVE_SESSIONS
from ..models import (
    ErrorDescriptor,
    Patch,
    ProjectFixAttempt,
    RepairSession,
    RunResult,
    SessionStatus,
)
from ..tools import BoundedStore
from ..utils.logging import get_logger

logger = get_logger(__name__)

ERROR_PRIORITY = {
    "syntax": 1,
    "import": 2,
    "reference": 3,
    "type": 4,
    "runtime": 5,
    "unknown": 6,
}
UNRANKED_PRIORITY = 10

PatchFn = Callable[[str, ErrorDescriptor, Optional[Dict[str, Any]]], Awaitable[Optional[Patch]]]
ValidateFn = Callable[[], Awaitable[RunResult]]
ApplyFixFn = Callable[[Patch, ErrorDescriptor], Awaitable[bool]]


def prioritize_error(errors: List[ErrorDescriptor]) -> ErrorDescriptor:
    """Most urgent error; ties keep their reported order."""
    return min(errors, key=lambda e: ERROR_PRIORITY.get(e.type, UNRANKED_PRIORITY))


class ProjectRepairLoop:
    """
    Drives a whole project towards a clean build one error at a time.

    The caller supplies how to validate the project and how to apply a
    patch; patches come from the injected patch generator.
    """

    def __init__(self, patch_generator: PatchFn, max_iterations: int = 5):
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {max_iterations}")
        self.patch_generator = patch_generator
        self.max_iterations = max_iterations
        self._sessions: BoundedStore[str, RepairSession] = BoundedStore(MAX_ACTIVE_SESSIONS)

    def start_session(self, project_id: str, max_iterations: Optional[int] = None) -> RepairSession:
        """
        Create a session for a project.

        Raises:
            ValueError: If max_iterations is below 1
        """
        limit = self.max_iterations if max_iterations is None else max_iterations
        if limit < 1:
            raise ValueError(f"max_iterations must be at least 1, got {limit}")

        session = RepairSession(
            id=f"fix_{uuid.uuid4().hex[:12]}",
            project_id=project_id,
            max_iterations=limit,
        )
        self._sessions.set(session.id, session)
        logger.info(f"Project repair session started: {session.id} ({project_id}, max {limit} iterations)")
        return session

    async def _generate_patch(self, session: RepairSession, error: ErrorDescriptor) -> Optional[Patch]:
        try:
            return await self.patch_generator(session.project_id, error, None)
        except Exception as e:
            logger.warning(f"Patch generation failed: {e}")
            return None

    @staticmethod
    async def _apply(apply_fix_fn: ApplyFixFn, patch: Patch, error: ErrorDescriptor) -> bool:
        try:
            return bool(await apply_fix_fn(patch, error))
        except Exception as e:
            logger.warning(f"Applying patch to {patch.file_path} failed: {e}")
            return False

    async def run_fix_loop(
        self,
        session_id: str,
        validate_fn: ValidateFn,
        apply_fix_fn: ApplyFixFn,
    ) -> RepairSession:
        """
        Run the loop until no errors remain or the iteration budget is used.

        Args:
            session_id: Session returned by start_session
            validate_fn: Builds or runs the project and reports its errors
            apply_fix_fn: Writes a patch; returns whether it was applied

        Returns:
            The session, in a terminal state

        Raises:
            ValueError: If the session does not exist
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise ValueError(f"Session {session_id} not found")

        result = await validate_fn()
        session.original_errors = list(result.errors)
        session.unresolved_errors = list(result.errors)

        while (
            session.current_iteration < session.max_iterations
            and session.unresolved_errors
            and not session.cancelled
        ):
            session.current_iteration += 1
            session.status = SessionStatus.FIXING
            error = prioritize_error(session.unresolved_errors)
            logger.debug(
                f"Project fix iteration {session.current_iteration}/{session.max_iterations}: "
                f"{error.type} error, {len(session.unresolved_errors)} remaining"
            )

            patch = await self._generate_patch(session, error)
            if patch is None or not await self._apply(apply_fix_fn, patch, error):
                session.fix_attempts.append(ProjectFixAttempt(
                    iteration=session.current_iteration, error=error, patch=patch, success=False,
                ))
                logger.warning(f"No fix applied for: {error.message[:50]}")
                continue

            result = await validate_fn()
            success = result.success or not any(e.same_error(error) for e in result.errors)
            session.fix_attempts.append(ProjectFixAttempt(
                iteration=session.current_iteration,
                error=error,
                patch=patch,
                success=success,
                run_result=result,
            ))

            if success:
                session.resolved_errors.append(error)
                session.unresolved_errors = [e for e in session.unresolved_errors if not e.same_error(error)]
                # Errors the patch introduced join the queue
                for new in result.errors:
                    known = session.original_errors + session.unresolved_errors
                    if not any(new.same_error(e) for e in known):
                        session.unresolved_errors.append(new)
                logger.info(f"Error fixed: {error.message[:50]}")
            else:
                logger.warning(f"Fix attempt failed: {error.message[:50]}")

        session.completed_at = datetime.now()
        session.status = SessionStatus.RESOLVED if not session.unresolved_errors else SessionStatus.EXHAUSTED

        logger.info(
            f"Project repair session completed: {session.id}, {session.status.value}, "
            f"{session.current_iteration} iterations, {len(session.resolved_errors)} resolved, "
            f"{len(session.unresolved_errors)} unresolved"
        )
        return session

    def run_fix_loop_sync(
        self,
        session_id: str,
        validate_fn: ValidateFn,
        apply_fix_fn: ApplyFixFn,
    ) -> RepairSession:
        """Synchronous wrapper for run_fix_loop."""
        return asyncio.run(self.run_fix_loop(session_id, validate_fn, apply_fix_fn))

    def get_session(self, session_id: str) -> Optional[RepairSession]:
        return self._sessions.get(session_id)

    def get_session_status(self, session_id: str) -> Optional[Dict[str, Any]]:
        session = self._sessions.get(session_id)
        if session is None:
            return None
        return {
            "status": session.status.value,
            "progress": session.current_iteration / session.max_iterations * 100,
            "resolved": len(session.resolved_errors),
            "unresolved": len(session.unresolved_errors),
            "cancelled": session.cancelled,
        }

    def cancel_session(self, session_id: str) -> None:
        """Stop a running loop before its next iteration."""
        session = self._sessions.get(session_id)
        if session is not None:
            session.cancelled = True
            session.completed_at = datetime.now()
            logger.info(f"Project repair session cancelled: {session_id}")

    def clear_session(self, session_id: str) -> None:
        self._sessions.delete(session_id)
