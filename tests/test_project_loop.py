"""Tests for the project repair loop and the patch generator."""

import asyncio

import pytest

from repair_agent.engine import PatchGenerator, ProjectRepairLoop, prioritize_error
from repair_agent.models import ErrorDescriptor, Patch, RunResult, SessionStatus


SYNTAX = ErrorDescriptor(type="syntax", message="Unexpected token", file="src/App.tsx", line=3)
IMPORT = ErrorDescriptor(type="import", message="Cannot find module './x'", file="src/main.tsx")
RUNTIME = ErrorDescriptor(type="runtime", message="x is not defined", file="src/util.ts")


def scripted_validate(*results):
    """Fake validate_fn returning the given results in order, repeating the last."""
    queue = list(results)
    calls = []

    async def validate():
        calls.append(1)
        return queue.pop(0) if len(queue) > 1 else queue[0]
    validate.calls = calls
    return validate


async def always_patch(project_id, error, context):
    return Patch(file_path=error.file, original_content="old", patched_content="new")


async def never_patch(project_id, error, context):
    return None


async def apply_ok(patch, error):
    return True


class TestPrioritizeError:
    """Tests for error prioritization."""

    def test_picks_most_urgent_type(self):
        """Given errors of several types, should pick the lowest priority number."""
        # Given
        lint = ErrorDescriptor(type="lint", message="style")

        # When / Then
        assert prioritize_error([RUNTIME, lint, IMPORT]) is IMPORT

    def test_ties_keep_reported_order(self):
        """Given two errors of the same type, should pick the first reported."""
        # Given
        other = ErrorDescriptor(type="syntax", message="Missing ;", file="b.ts")

        # When / Then
        assert prioritize_error([SYNTAX, other]) is SYNTAX


class TestProjectRepairLoop:
    """Tests for ProjectRepairLoop."""

    def test_fixes_errors_in_priority_order(self):
        """Given an import and a syntax error, should fix syntax first and resolve both."""
        # Given
        loop = ProjectRepairLoop(always_patch)
        session = loop.start_session("proj")
        validate = scripted_validate(
            RunResult(False, [IMPORT, SYNTAX]),
            RunResult(False, [IMPORT]),
            RunResult(True, []),
        )

        # When
        result = loop.run_fix_loop_sync(session.id, validate, apply_ok)

        # Then
        assert result.status == SessionStatus.RESOLVED
        assert result.resolved_errors == [SYNTAX, IMPORT]
        assert result.current_iteration == 2
        assert all(a.success for a in result.fix_attempts)

    def test_exhausts_budget_when_no_patch_is_produced(self):
        """Given a generator that never patches, should stop after max_iterations without revalidating."""
        # Given
        loop = ProjectRepairLoop(never_patch, max_iterations=3)
        session = loop.start_session("proj")
        validate = scripted_validate(RunResult(False, [SYNTAX]))

        # When
        result = loop.run_fix_loop_sync(session.id, validate, apply_ok)

        # Then
        assert result.status == SessionStatus.EXHAUSTED
        assert len(result.fix_attempts) == 3
        assert not any(a.success for a in result.fix_attempts)
        assert len(validate.calls) == 1

    def test_apply_failure_counts_as_failed_attempt(self):
        """Given an apply function that raises, should record a failed attempt and continue."""
        # Given
        async def apply_broken(patch, error):
            raise OSError("read-only file system")

        loop = ProjectRepairLoop(always_patch, max_iterations=2)
        session = loop.start_session("proj")

        # When
        result = loop.run_fix_loop_sync(session.id, scripted_validate(RunResult(False, [SYNTAX])), apply_broken)

        # Then
        assert result.status == SessionStatus.EXHAUSTED
        assert [a.success for a in result.fix_attempts] == [False, False]
        assert result.fix_attempts[0].patch is not None

    def test_generator_exception_counts_as_no_patch(self):
        """Given a generator that raises, should record the attempt without a patch."""
        # Given
        async def broken_generator(project_id, error, context):
            raise RuntimeError("model offline")

        loop = ProjectRepairLoop(broken_generator, max_iterations=1)
        session = loop.start_session("proj")

        # When
        result = loop.run_fix_loop_sync(session.id, scripted_validate(RunResult(False, [SYNTAX])), apply_ok)

        # Then
        assert result.fix_attempts[0].patch is None
        assert result.status == SessionStatus.EXHAUSTED

    def test_errors_introduced_by_a_patch_are_queued(self):
        """Given a fix that introduces a new error, should fix that one too."""
        # Given
        loop = ProjectRepairLoop(always_patch)
        session = loop.start_session("proj")
        validate = scripted_validate(
            RunResult(False, [SYNTAX]),
            RunResult(False, [RUNTIME]),
            RunResult(True, []),
        )

        # When
        result = loop.run_fix_loop_sync(session.id, validate, apply_ok)

        # Then
        assert result.resolved_errors == [SYNTAX, RUNTIME]
        assert result.unresolved_errors == []
        assert result.status == SessionStatus.RESOLVED

    def test_fix_that_leaves_error_in_place_fails(self):
        """Given validation still reporting the error, the attempt should fail."""
        # Given
        loop = ProjectRepairLoop(always_patch, max_iterations=1)
        session = loop.start_session("proj")

        # When
        result = loop.run_fix_loop_sync(session.id, scripted_validate(RunResult(False, [SYNTAX])), apply_ok)

        # Then
        assert not result.fix_attempts[0].success
        assert result.unresolved_errors == [SYNTAX]

    def test_clean_project_needs_no_iterations(self):
        """Given a project that already builds, should resolve immediately."""
        # Given
        loop = ProjectRepairLoop(always_patch)
        session = loop.start_session("proj")

        # When
        result = loop.run_fix_loop_sync(session.id, scripted_validate(RunResult(True, [])), apply_ok)

        # Then
        assert result.status == SessionStatus.RESOLVED
        assert result.current_iteration == 0

    def test_cancel_stops_before_next_iteration(self):
        """Given a cancellation during the first iteration, should not start a second."""
        # Given
        loop = ProjectRepairLoop(never_patch, max_iterations=5)
        session = loop.start_session("proj")

        async def cancelling_generator(project_id, error, context):
            loop.cancel_session(session.id)
            return None

        loop.patch_generator = cancelling_generator

        # When
        result = loop.run_fix_loop_sync(session.id, scripted_validate(RunResult(False, [SYNTAX])), apply_ok)

        # Then
        assert result.current_iteration == 1
        assert loop.get_session_status(session.id)["cancelled"] is True

    def test_status_reports_progress(self):
        """Given a finished session, status should report progress and counts."""
        # Given
        loop = ProjectRepairLoop(never_patch, max_iterations=4)
        session = loop.start_session("proj")
        loop.run_fix_loop_sync(session.id, scripted_validate(RunResult(False, [SYNTAX])), apply_ok)

        # When
        status = loop.get_session_status(session.id)

        # Then
        assert status == {
            "status": "exhausted",
            "progress": 100.0,
            "resolved": 0,
            "unresolved": 1,
            "cancelled": False,
        }

    def test_unknown_session_raises(self):
        """Given an unknown session id, should raise ValueError."""
        # When / Then
        with pytest.raises(ValueError):
            ProjectRepairLoop(always_patch).run_fix_loop_sync("fix_missing", scripted_validate(RunResult(True)), apply_ok)

    def test_rejects_non_positive_iteration_budget(self):
        """Given max_iterations below 1, should raise ValueError."""
        # When / Then
        with pytest.raises(ValueError):
            ProjectRepairLoop(always_patch, max_iterations=0)
        with pytest.raises(ValueError):
            ProjectRepairLoop(always_patch).start_session("proj", max_iterations=0)

    def test_clear_session_forgets_it(self):
        """Given a cleared session, lookups should return None."""
        # Given
        loop = ProjectRepairLoop(always_patch)
        session = loop.start_session("proj")

        # When
        loop.clear_session(session.id)

        # Then
        assert loop.get_session(session.id) is None
        assert loop.get_session_status(session.id) is None


class TestPatchGenerator:
    """Tests for PatchGenerator."""

    @pytest.fixture
    def project(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "App.ts").write_text("const a = 1\n", encoding="utf-8")
        return tmp_path

    def test_generates_patch_from_model_reply(self, project):
        """Given a fenced model reply, should return a whole-file patch with the cleaned code."""
        # Given
        prompts = []

        async def model_call(prompt):
            prompts.append(prompt)
            return "```ts\nconst a = 1;\n```"

        generator = PatchGenerator(str(project), model_call)
        error = ErrorDescriptor(type="syntax", message="Missing semicolon", file="src/App.ts", line=1)

        # When
        patch = asyncio.run(generator.generate("proj", error))

        # Then
        assert patch.patched_content == "const a = 1;\n"
        assert patch.original_content == "const a = 1\n"
        assert patch.description == "Fix syntax error: Missing semicolon"
        assert "Fix the following syntax error in src/App.ts." in prompts[0]
        assert "const a = 1\n" in prompts[0]

    def test_error_without_file_yields_none(self, project):
        """Given an error with no file, should return None without calling the model."""
        # Given
        prompts = []

        async def model_call(prompt):
            prompts.append(prompt)
            return "x"

        generator = PatchGenerator(str(project), model_call)

        # When
        patch = asyncio.run(generator.generate("proj", ErrorDescriptor(type="runtime", message="boom")))

        # Then
        assert patch is None
        assert prompts == []

    @pytest.mark.parametrize("file", ["../outside.ts", "src/Missing.ts", "a\x00b.js"])
    def test_unreadable_or_escaping_paths_yield_none(self, project, file):
        """Given a path outside the project, a missing file or an invalid path, should return None."""
        # Given
        async def model_call(prompt):
            return "const b = 2;"

        generator = PatchGenerator(str(project), model_call)

        # When / Then
        assert asyncio.run(generator.generate("proj", ErrorDescriptor(type="syntax", message="m", file=file))) is None

    def test_unchanged_or_failed_replies_yield_none(self, project):
        """Given a reply identical to the file or a failing model, should return None."""
        # Given
        async def echo(prompt):
            return "const a = 1"

        async def failing(prompt):
            raise RuntimeError("rate limited")

        error = ErrorDescriptor(type="syntax", message="m", file="src/App.ts")

        # When / Then
        assert asyncio.run(PatchGenerator(str(project), echo).generate("proj", error)) is None
        assert asyncio.run(PatchGenerator(str(project), failing).generate("proj", error)) is None

    def test_context_content_and_stack_truncation(self, project):
        """Given file content in the context and a long stack, should use the content and cut the stack."""
        # Given
        prompts = []

        async def model_call(prompt):
            prompts.append(prompt)
            return "let b = 2;"

        generator = PatchGenerator(str(project), model_call)
        error = ErrorDescriptor(type="runtime", message="m", file="src/Virtual.ts", stack="x" * 800)

        # When
        patch = asyncio.run(generator("proj", error, {"file_content": "let b = 1;"}))

        # Then
        assert patch.patched_content == "let b = 2;"
        assert "x" * 500 in prompts[0]
        assert "x" * 501 not in prompts[0]

    def test_drives_project_loop_end_to_end(self, project):
        """Given a file missing a semicolon, the loop should patch it and resolve."""
        # Given
        async def model_call(prompt):
            return "const a = 1;"

        app = project / "src" / "App.ts"
        error = ErrorDescriptor(type="syntax", message="Missing semicolon", file="src/App.ts")

        async def validate():
            if app.read_text(encoding="utf-8").rstrip().endswith(";"):
                return RunResult(True, [])
            return RunResult(False, [error])

        async def apply_fix(patch, err):
            (project / patch.file_path).write_text(patch.patched_content, encoding="utf-8")
            return True

        loop = ProjectRepairLoop(PatchGenerator(str(project), model_call))
        session = loop.start_session("proj")

        # When
        result = loop.run_fix_loop_sync(session.id, validate, apply_fix)

        # Then
        assert result.status == SessionStatus.RESOLVED
        assert app.read_text(encoding="utf-8") == "const a = 1;\n"
