"""Whole-file patch generation for project errors."""

from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

from ..models import ErrorDescriptor, Patch
from ..pipeline.pass5_cleanup import remove_narrative, strip_markdown
from ..utils.logging import get_logger
from .prompts import PATCH_PROMPT

logger = get_logger(__name__)

MAX_STACK_CHARS = 500


class PatchGenerator:
    """
    Asks a model to rewrite the file an error points at.

    Never raises for content problems: an error without a file, a file
    outside the project or one that cannot be read, and a model call that
    fails or changes nothing all yield None.
    """

    def __init__(
        self,
        project_root: str,
        model_call: Callable[[str], Awaitable[Optional[str]]],
    ):
        self.project_root = Path(project_root).resolve()
        self.model_call = model_call

    def _resolve(self, file_path: str) -> Optional[Path]:
        try:
            path = (self.project_root / file_path).resolve()
            path.relative_to(self.project_root)
        except (OSError, ValueError) as e:
            logger.warning(f"Error references an unusable path {file_path!r}: {e}")
            return None
        return path

    async def generate(
        self,
        project_id: str,
        error: ErrorDescriptor,
        context: Optional[Dict[str, Any]] = None,
    ) -> Optional[Patch]:
        """
        Generate a patch for one error.

        Args:
            project_id: Project the error belongs to
            error: Error to fix; must reference a file
            context: Optional "file_content" to use instead of reading the file

        Returns:
            Patch, or None when no patch could be produced
        """
        if not error.file:
            logger.debug(f"No file reference for {error.type} error in {project_id}")
            return None

        content = (context or {}).get("file_content")
        if content is None:
            path = self._resolve(error.file)
            if path is None:
                return None
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Cannot read {error.file}: {e}")
                return None

        prompt = PATCH_PROMPT.format(
            error_type=error.type,
            file_path=error.file,
            message=error.message,
            line=error.line if error.line is not None else "unknown",
            suggestion=f"- Suggestion: {error.suggestion}\n" if error.suggestion else "",
            stack=f"- Stack:\n{error.stack[:MAX_STACK_CHARS]}\n" if error.stack else "",
            content=content,
        )

        try:
            reply = await self.model_call(prompt)
        except Exception as e:
            logger.warning(f"Patch generation failed for {error.file}: {e}")
            return None
        if reply is None:
            logger.warning(f"Patch generation returned nothing for {error.file}")
            return None

        patched, _ = remove_narrative(strip_markdown(reply))
        if not patched.strip() or patched.strip() == content.strip():
            logger.warning(f"Patch for {error.file} is empty or unchanged")
            return None
        if content.endswith("\n") and not patched.endswith("\n"):
            patched += "\n"

        return Patch(
            file_path=error.file,
            original_content=content,
            patched_content=patched,
            description=f"Fix {error.type} error: {error.message}",
        )

    async def __call__(
        self,
        project_id: str,
        error: ErrorDescriptor,
        context: Optional[Dict[str, Any]] = None,
    ) -> Optional[Patch]:
        return await self.generate(project_id, error, context)
