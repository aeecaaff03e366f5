"""Tests for the five analysis-and-fix passes."""

from repair_agent.models import Severity
from repair_agent.pipeline.pass1_structural import (
    check_delimiters,
    detect_truncation,
    fix_missing_semicolons,
    fix_unclosed_strings,
)
from repair_agent.pipeline.pass2_markup import (
    add_missing_hook_imports,
    check_unclosed_tags,
    ensure_component_export,
    fix_attribute_names,
    run_markup_pass,
)
from repair_agent.pipeline.pass3_imports import (
    add_tailwind_if_needed,
    detect_used_not_imported,
    remove_unused_imports,
)
from repair_agent.pipeline.pass4_completeness import (
    collect_declared_names,
    detect_placeholders,
    run_completeness_pass,
)
from repair_agent.pipeline.pass5_cleanup import (
    detect_incomplete_ternary,
    fix_const_redeclaration,
    fix_duplicate_functions,
    remove_markdown_artifacts,
    remove_narrative,
    remove_orphaned_else,
    strip_markdown,
)


class TestStructuralPass:
    """Tests for Pass 1: Structural Integrity."""

    def test_appends_missing_closing_brace(self):
        """Given a function missing its closing brace, should append it and mark the issue fixed."""
        # Given
        code = "function f() {\n  return 1;\n"

        # When
        fixed, issues = check_delimiters(code)

        # Then
        assert fixed == "function f() {\n  return 1;\n}\n"
        assert issues[0].type == "unclosed-brace"
        assert issues[0].fixed

    def test_appends_closers_innermost_first(self):
        """Given nested unclosed openers, should close the innermost first."""
        # When
        fixed, issues = check_delimiters("const o = { a: [1, 2\n")

        # Then
        assert fixed == "const o = { a: [1, 2\n]}\n"
        assert {i.type for i in issues} == {"unclosed-brace", "unclosed-bracket"}

    def test_reports_stray_closer_without_fixing(self):
        """Given a stray closing brace, should report it and leave the code alone."""
        # Given
        code = "const a = 1;\n}\n"

        # When
        fixed, issues = check_delimiters(code)

        # Then
        assert fixed == code
        assert issues[0].type == "unmatched-closing-brace"
        assert not issues[0].fixed

    def test_closes_unterminated_string(self):
        """Given a string running to the end of its line, should close it with the same quote."""
        # When
        fixed, issues = fix_unclosed_strings("const s = 'abc\n")

        # Then
        assert fixed == "const s = 'abc'\n"
        assert issues[0].type == "unclosed-string"

    def test_detects_truncation_on_dangling_operator(self):
        """Given output cut off after a logical operator, should flag truncation."""
        # When
        issues = detect_truncation("const x = a &&\n")

        # Then
        assert issues[0].type == "truncated-code"
        assert issues[0].severity == Severity.ERROR
        assert "logical AND" in issues[0].message

    def test_adds_missing_semicolon(self):
        """Given an unterminated single-line assignment, should terminate it."""
        # When
        fixed, issues = fix_missing_semicolons("const a = 1\nconst b = 2;\n")

        # Then
        assert fixed == "const a = 1;\nconst b = 2;\n"
        assert len(issues) == 1

    def test_leaves_continued_statement_alone(self):
        """Given an assignment continued by a method chain, should not add a semicolon."""
        # Given
        code = "const a = b\n  .map(f);\n"

        # When
        fixed, issues = fix_missing_semicolons(code)

        # Then
        assert fixed == code
        assert issues == []


class TestMarkupPass:
    """Tests for Pass 2: component markup conventions."""

    def test_adds_hook_import_when_none_exists(self):
        """Given a hook call with no react import, should prepend a named import."""
        # Given
        code = "function App() {\n  const [n, setN] = useState(0);\n  return <div>{n}</div>;\n}\n"

        # When
        fixed, issues = add_missing_hook_imports(code)

        # Then
        assert fixed.startswith("import { useState } from 'react';\n")
        assert issues[0].type == "missing-react-imports"

    def test_merges_hook_into_default_import(self):
        """Given a default React import, should add the hook as a named import on it."""
        # Given
        code = "import React from 'react';\nconst [n, setN] = useState(0);\n"

        # When
        fixed, _ = add_missing_hook_imports(code)

        # Then
        assert fixed.startswith("import React, { useState } from 'react';")

    def test_merges_hook_into_existing_named_import(self):
        """Given an existing named react import, should extend it."""
        # Given
        code = "import { useEffect } from 'react';\nuseEffect(() => {});\nconst [a, b] = useState(1);\n"

        # When
        fixed, _ = add_missing_hook_imports(code)

        # Then
        assert fixed.startswith("import { useEffect, useState } from 'react';")

    def test_renames_html_attributes_inside_tags(self):
        """Given lowercase HTML attributes, should rename them to their markup names."""
        # When
        fixed, issues = fix_attribute_names('const a = <label class="x" for="y">Hi</label>;')

        # Then
        assert fixed == 'const a = <label className="x" htmlFor="y">Hi</label>;'
        assert {i.type for i in issues} == {"jsx-class-to-classname", "jsx-for-to-htmlfor"}

    def test_exports_unexported_component(self):
        """Given a component that returns markup but is not exported, should export it."""
        # When
        fixed, issues = ensure_component_export("function App() {\n  return <div />;\n}\n")

        # Then
        assert fixed.endswith("\n\nexport default App;\n")
        assert issues[0].type == "missing-export"

    def test_reports_unclosed_tag(self):
        """Given an opening tag with no closing tag, should report it without fixing."""
        # When
        issues = check_unclosed_tags("const a = (<div><span>x</div>);")

        # Then
        assert len(issues) == 1
        assert "<span>" in issues[0].message
        assert not issues[0].fixed

    def test_skips_code_without_markup(self):
        """Given plain script code, should do nothing."""
        # Given
        code = "const a = 1;\n"

        # When
        fixed, issues = run_markup_pass(code)

        # Then
        assert fixed == code
        assert issues == []


class TestImportPass:
    """Tests for Pass 3: import and dependency resolution."""

    def test_removes_unused_import(self):
        """Given an import none of whose bindings is used, should remove it."""
        # When
        fixed, issues = remove_unused_imports("import { foo } from './foo';\nconst a = 1;\n")

        # Then
        assert fixed == "const a = 1;\n"
        assert issues[0].type == "unused-import"
        assert issues[0].severity == Severity.INFO

    def test_keeps_used_import(self):
        """Given an import whose binding is used, should keep it."""
        # Given
        code = "import { foo } from './foo';\nfoo();\n"

        # When
        fixed, issues = remove_unused_imports(code)

        # Then
        assert fixed == code
        assert issues == []

    def test_keeps_react_default_import(self):
        """Given an unused React import, should keep it."""
        # Given
        code = "import React from 'react';\nconst a = 1;\n"

        # When / Then
        assert remove_unused_imports(code) == (code, [])

    def test_reports_used_but_not_imported_binding(self):
        """Given createRoot used without an import, should report it with its module."""
        # When
        issues = detect_used_not_imported("const root = createRoot(el);\n")

        # Then
        assert len(issues) == 1
        assert "'createRoot'" in issues[0].message
        assert "react-dom/client" in issues[0].message

    def test_adds_tailwind_cdn_to_head(self):
        """Given utility classes in a page without Tailwind, should add the CDN script."""
        # Given
        code = '<html><head><title>x</title></head><body><div class="flex p-4"></div></body></html>'

        # When
        fixed, issues = add_tailwind_if_needed(code)

        # Then
        assert "cdn.tailwindcss.com" in fixed
        assert fixed.index("cdn.tailwindcss.com") < fixed.index("<title>")
        assert issues[0].type == "missing-tailwind"


class TestCompletenessPass:
    """Tests for Pass 4: completeness checks (report only)."""

    def test_flags_placeholder_comment(self):
        """Given a TODO placeholder, should report it at its line."""
        # When
        issues = detect_placeholders("function f() {\n  // TODO: implement\n}\n")

        # Then
        assert issues[0].type == "placeholder-code"
        assert issues[0].line == 2

    def test_flags_undefined_event_handler(self):
        """Given a handler referenced in markup but never defined, should report an error."""
        # Given
        code = (
            "export default function App() {\n"
            "  return (\n"
            "    <button onClick={handleClick}>Go</button>\n"
            "  );\n"
            "}\n"
        )

        # When
        issues = run_completeness_pass(code)

        # Then
        handler = [i for i in issues if i.type == "undefined-handler"]
        assert len(handler) == 1
        assert handler[0].severity == Severity.ERROR
        assert not any(i.fixed for i in issues)

    def test_declared_handler_is_not_flagged(self):
        """Given the handler is declared, should not report it."""
        # Given
        code = (
            "export default function App() {\n"
            "  const handleClick = () => {};\n"
            "  return (\n"
            "    <button onClick={handleClick}>Go</button>\n"
            "  );\n"
            "}\n"
        )

        # When
        issues = run_completeness_pass(code)

        # Then
        assert [i for i in issues if i.type == "undefined-handler"] == []

    def test_collects_declared_names(self):
        """Given imports, destructuring and parameters, should collect every local name."""
        # Given
        code = "import { a as b } from 'x';\nconst [c, d] = f();\nfunction g(h) {}\n"

        # When
        names = collect_declared_names(code)

        # Then
        assert {"b", "c", "d", "g", "h"} <= names


class TestCleanupPass:
    """Tests for Pass 5: common generated-text mistakes."""

    def test_strip_markdown_keeps_fenced_code(self):
        """Given a fenced reply, should return only the code."""
        # When / Then
        assert strip_markdown("```tsx\nconst a = 1;\n```") == "const a = 1;"

    def test_removes_fences_preamble_and_suffix(self):
        """Given prose around a fenced block, should keep only the code."""
        # Given
        code = "Here is the code:\n```js\nconst a = 1;\n```\nThis code does things.\n"

        # When
        fixed, issues = remove_markdown_artifacts(code)

        # Then
        assert fixed == "const a = 1;"
        assert [i.type for i in issues] == ["markdown-artifacts", "llm-preamble", "llm-suffix"]

    def test_removes_narrative_opener(self):
        """Given a conversational first line, should drop it."""
        # When
        fixed, issues = remove_narrative("Sure! Here is the component:\nconst a = 1;\n")

        # Then
        assert fixed == "const a = 1;\n"
        assert issues[0].type == "llm-preamble"

    def test_keeps_last_duplicate_function(self):
        """Given two declarations of the same function, should keep the last one."""
        # Given
        code = "function a() {\n  return 1;\n}\nfunction a() {\n  return 2;\n}\n"

        # When
        fixed, issues = fix_duplicate_functions(code)

        # Then
        assert fixed == "function a() {\n  return 2;\n}\n"
        assert issues[0].message == "Duplicate function declaration: 'a' appears 2 times"
        assert issues[0].fixed

    def test_turns_earlier_const_into_let(self):
        """Given a const declared twice in one block, should make the earlier one let."""
        # When
        fixed, issues = fix_const_redeclaration("const x = 1;\nconst x = 2;\n")

        # Then
        assert fixed == "let x = 1;\nconst x = 2;\n"
        assert issues[0].line == 1

    def test_flags_ternary_without_else_branch(self):
        """Given a ternary with no ':' branch, should report it."""
        # When
        issues = detect_incomplete_ternary("const a = b ? c;\n")

        # Then
        assert len(issues) == 1
        assert issues[0].line == 1

    def test_complete_ternary_is_not_flagged(self):
        """Given a complete ternary, should report nothing."""
        # When / Then
        assert detect_incomplete_ternary("const a = b ? c : d;\n") == []

    def test_removes_orphaned_else(self):
        """Given an else block with no if before it, should remove the block."""
        # When
        fixed, issues = remove_orphaned_else("const a = 1;\nelse {\n  b();\n}\n")

        # Then
        assert fixed == "const a = 1;\n"
        assert issues[0].type == "orphaned-else"
        assert issues[0].line == 2
