"""
Unit Tests for the fix strategies

Deterministic import fixes and the AI repair directives.
"""
import pytest

from livepreview.services.ghost_fix.classifier import ErrorKind
from livepreview.services.ghost_fix.strategies import (
    STRATEGY_MAP,
    add_import,
    apply_strategy,
    fix_hook_violation,
    fix_missing_import,
    fix_runtime,
    fix_style,
    fix_syntax,
    fix_type_error,
    fix_unknown,
    location_hint,
)

APP = "export default function App() {\n  return <div />;\n}\n"


class TestAddImport:
    """Test import insertion"""

    def test_prepends_named_import(self):
        assert add_import("useState", "react", APP) == 'import { useState } from "react";\n' + APP

    def test_splices_into_existing_import(self):
        source = "import { useState } from 'react';\n" + APP
        fixed = add_import("useEffect", "react", source)
        assert fixed.startswith('import { useState, useEffect } from "react";\n')
        assert fixed.count("import") == 1

    def test_default_export_name(self):
        assert add_import("motion", "framer-motion", APP) == 'import motion from "framer-motion";\n' + APP

    def test_other_module_import_left_alone(self):
        source = "import { Check } from 'lucide-react';\n" + APP
        fixed = add_import("useState", "react", source)
        assert fixed == 'import { useState } from "react";\n' + source


class TestFixMissingImport:
    """Test the import-missing strategy"""

    def test_known_hook_patched_directly(self, make_error):
        error = make_error("useState is not defined", kind=ErrorKind.IMPORT_MISSING)
        result = fix_missing_import(error, APP)

        assert result.success is True
        assert result.fixed_code == 'import { useState } from "react";\n' + APP
        assert result.ai_prompt is None
        assert result.needs_ai is False
        assert result.description == 'Added import for "useState" from "react"'
        assert result.target_file == "App.tsx"

    def test_known_hook_added_to_existing_import(self, make_error):
        source = 'import { useState } from "react";\n' + APP
        error = make_error("useEffect is not defined", kind=ErrorKind.IMPORT_MISSING)
        result = fix_missing_import(error, source)

        assert result.description == 'Added "useEffect" to existing import from "react"'
        assert result.fixed_code.startswith('import { useState, useEffect } from "react";')

    def test_icon_import(self, make_error):
        error = make_error("ReferenceError: Check is not defined", kind=ErrorKind.IMPORT_MISSING)
        result = fix_missing_import(error, APP)
        assert result.fixed_code.startswith('import { Check } from "lucide-react";\n')

    def test_default_import(self, make_error):
        error = make_error("motion is not defined", kind=ErrorKind.IMPORT_MISSING)
        result = fix_missing_import(error, APP)
        assert result.fixed_code.startswith('import motion from "framer-motion";\n')

    def test_unknown_identifier_becomes_directive(self, make_error):
        error = make_error("Foo is not defined", kind=ErrorKind.IMPORT_MISSING)
        result = fix_missing_import(error, APP)

        assert result.needs_ai is True
        assert result.fixed_code is None
        assert 'The identifier "Foo" is not defined' in result.ai_prompt
        assert result.ai_prompt.endswith("Current code:\n" + APP)

    def test_not_exported(self, make_error):
        error = make_error("'Card' is not exported from './ui'", kind=ErrorKind.IMPORT_MISSING)
        result = fix_missing_import(error, APP)
        assert result.description == 'Fix import: "Card" from "./ui"'
        assert result.needs_ai is True

    def test_module_not_found(self, make_error):
        error = make_error("Cannot find module './Header'", kind=ErrorKind.IMPORT_MISSING)
        result = fix_missing_import(error, APP)
        assert result.description.startswith('Module "./Header" not found.')
        assert 'The module "./Header" cannot be found' in result.ai_prompt

    def test_nothing_recognizable(self, make_error):
        error = make_error("import went sideways", kind=ErrorKind.IMPORT_MISSING)
        result = fix_missing_import(error, APP)
        assert result.success is False
        assert result.needs_ai is False
        assert result.target_file == "App.tsx"


class TestFixTypeError:
    """Test the type-error directives"""

    def test_null_access(self, make_error):
        error = make_error("TypeError: Cannot read properties of undefined (reading 'map')", line=12)
        result = fix_type_error(error, APP)
        assert result.description == "Add null safety: property access on undefined value"
        assert "Error location: App.tsx:12" in result.ai_prompt

    def test_not_a_function(self, make_error):
        result = fix_type_error(make_error("TypeError: items.map is not a function"), APP)
        assert result.description == '"map" is not a function: fix the call or import'

    def test_not_assignable(self, make_error):
        result = fix_type_error(make_error("Type 'string' is not assignable to type 'number'."), APP)
        assert result.description == 'Type mismatch: "string" -> "number"'

    def test_missing_property(self, make_error):
        result = fix_type_error(make_error("Property 'nme' does not exist on type 'User'."), APP)
        assert result.description == 'Property "nme" missing on type "User"'

    def test_undefined_component_from_linker(self, make_error):
        error = make_error("ReferenceError: Btn is not defined (App.tsx:1:39)", message="Btn is not defined")
        result = fix_type_error(error, APP)
        assert result.description == "Fix type error: Btn is not defined"
        assert result.needs_ai is True
        assert result.strategy == ErrorKind.TYPE_ERROR


class TestFixSyntax:
    def test_location_hint(self, make_error):
        assert location_hint(make_error("x", line=4, column=2)) == " near line 4, column 2"
        assert location_hint(make_error("x", line=4)) == " near line 4"
        assert location_hint(make_error("x")) == ""

    def test_unexpected_token(self, make_error):
        error = make_error("Unexpected token }", kind=ErrorKind.SYNTAX, line=4, column=2)
        result = fix_syntax(error, APP)
        assert result.description == 'Fix unexpected token "}" near line 4, column 2'

    def test_unexpected_end_of_input(self, make_error):
        error = make_error('Unexpected end of input, expected "}"', kind=ErrorKind.SYNTAX, line=9)
        result = fix_syntax(error, APP)
        assert result.description == "Fix unexpected end of input near line 9: missing closing bracket/brace"

    def test_unterminated_string(self, make_error):
        error = make_error("Unterminated string literal", kind=ErrorKind.SYNTAX)
        assert fix_syntax(error, APP).description == "Fix unterminated string literal"


class TestOtherDirectives:
    def test_conditional_hook(self, make_error):
        error = make_error('React Hook "useEffect" is called conditionally', kind=ErrorKind.REACT_HOOK_VIOLATION)
        result = fix_hook_violation(error, APP)
        assert result.description == 'Move "useEffect" to top level: hooks cannot be called conditionally'

    def test_hook_order(self, make_error):
        error = make_error("Rendered fewer hooks than expected", kind=ErrorKind.REACT_HOOK_VIOLATION)
        result = fix_hook_violation(error, APP)
        assert result.description == "Hook order mismatch between renders: ensure consistent hook calls"

    def test_runtime_recursion(self, make_error):
        error = make_error("RangeError: Maximum call stack size exceeded", kind=ErrorKind.RUNTIME)
        assert fix_runtime(error, APP).description.startswith("Infinite recursion")

    def test_style_and_unknown(self, make_error):
        style = fix_style(make_error("Unknown CSS property 'colr'", kind=ErrorKind.STYLE), APP)
        unknown = fix_unknown(make_error("weird", kind=ErrorKind.UNKNOWN), APP)
        assert style.description == "Fix style error: Unknown CSS property 'colr'"
        assert unknown.description == "Analyze and fix: weird"
        assert unknown.ai_prompt.endswith(APP)


class TestStrategyMap:
    """Test dispatch by error type"""

    def test_every_kind_has_a_strategy(self):
        assert set(STRATEGY_MAP) == set(ErrorKind)

    @pytest.mark.parametrize("kind", list(ErrorKind))
    def test_directives_target_error_file(self, make_error, kind):
        error = make_error("Something failed badly", kind=kind, file="src/Widget.tsx")
        result = apply_strategy(error, APP)
        if result.success:
            assert result.target_file == "src/Widget.tsx"
            assert result.strategy == kind

    def test_dispatch_uses_registered_function(self, make_error):
        error = make_error("useRef is not defined", kind=ErrorKind.IMPORT_MISSING)
        assert apply_strategy(error, APP).fixed_code.startswith('import { useRef } from "react";')
