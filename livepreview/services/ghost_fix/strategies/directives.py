"""
Directive strategies

These never patch code themselves. Each builds a targeted repair directive
(ai_prompt) for the AI collaborator, carrying the error and current source.
"""

import re

from livepreview.services.ghost_fix.classifier import ClassifiedError, ErrorKind
from livepreview.services.ghost_fix.strategies.deterministic import FixResult


def _directive(
    error: ClassifiedError,
    strategy: ErrorKind,
    description: str,
    prompt: str,
) -> FixResult:
    return FixResult(
        success=True,
        description=description,
        strategy=strategy,
        ai_prompt=prompt,
        target_file=error.file,
    )


# =========================================================================
# Type errors
# =========================================================================

def fix_type_error(error: ClassifiedError, source_code: str) -> FixResult:
    raw = error.original_error
    kind = ErrorKind.TYPE_ERROR

    null_access = re.search(r"Cannot read propert(?:y|ies) of (undefined|null)", raw)
    if null_access:
        value = null_access.group(1)
        where = f"{error.file or 'unknown'}{f':{error.line}' if error.line else ''}"
        return _directive(
            error, kind,
            f"Add null safety: property access on {value} value",
            f"Fix the null/undefined access error. Add optional chaining (?.) or proper null checks "
            f"where properties are accessed on potentially {value} values.\n\n"
            f"Error location: {where}\nError: {raw}\n\nCurrent code:\n{source_code}",
        )

    not_a_function = re.search(r"(\w+) is not a function", raw)
    if not_a_function:
        name = not_a_function.group(1)
        return _directive(
            error, kind,
            f'"{name}" is not a function: fix the call or import',
            f'"{name}" is being called as a function but it isn\'t one. Either the import is wrong, '
            f"the value is undefined, or it should be accessed differently.\n\n"
            f"Error: {raw}\n\nCurrent code:\n{source_code}",
        )

    assign = re.search(r"Type '([^']+)' is not assignable to type '([^']+)'", raw)
    if assign:
        source_type, target_type = assign.group(1), assign.group(2)
        return _directive(
            error, kind,
            f'Type mismatch: "{source_type}" -> "{target_type}"',
            f'Fix the type mismatch. Type "{source_type}" is not assignable to type "{target_type}". '
            f"Either transform the value, update the type definition, or use a proper type assertion.\n\n"
            f"Error: {raw}\n\nCurrent code:\n{source_code}",
        )

    missing_prop = re.search(r"Property '(\w+)' does not exist on type '([^']+)'", raw)
    if missing_prop:
        prop, type_name = missing_prop.group(1), missing_prop.group(2)
        return _directive(
            error, kind,
            f'Property "{prop}" missing on type "{type_name}"',
            f'Property "{prop}" does not exist on type "{type_name}". Either add it to the type '
            f"definition, fix the property name (typo?), or use a type assertion.\n\n"
            f"Error: {raw}\n\nCurrent code:\n{source_code}",
        )

    return _directive(
        error, kind,
        f"Fix type error: {error.message}",
        f"Fix this type error:\n{raw}\n\nCurrent code:\n{source_code}",
    )


# =========================================================================
# Runtime errors
# =========================================================================

def fix_runtime(error: ClassifiedError, source_code: str) -> FixResult:
    raw = error.original_error
    kind = ErrorKind.RUNTIME

    if "Maximum call stack size exceeded" in raw:
        return _directive(
            error, kind,
            "Infinite recursion or loop detected: add base case or fix dependencies",
            "Fix the infinite recursion / maximum call stack error. Common causes:\n"
            "- useEffect with missing or wrong dependency array\n"
            "- Recursive function without base case\n"
            "- State update inside render causing re-render loop\n"
            "- Component re-mounting itself endlessly\n\n"
            f"Error: {raw}\n\nCurrent code:\n{source_code}",
        )

    if "ReferenceError" in raw:
        return _directive(
            error, kind,
            f"Reference error: {error.message}",
            "Fix the reference error. The variable or function is used but never declared or imported.\n\n"
            f"Error: {raw}\n\nCurrent code:\n{source_code}",
        )

    return _directive(
        error, kind,
        f"Fix runtime error: {error.message}",
        f"Fix this runtime error:\n{raw}\n\nCurrent code:\n{source_code}",
    )


# =========================================================================
# Syntax errors
# =========================================================================

def location_hint(error: ClassifiedError) -> str:
    """' near line L, column C' (column only when known), or ''"""
    if not error.line:
        return ""
    column = f", column {error.column}" if error.column else ""
    return f" near line {error.line}{column}"


def fix_syntax(error: ClassifiedError, source_code: str) -> FixResult:
    raw = error.original_error
    kind = ErrorKind.SYNTAX
    hint = location_hint(error)

    if re.search(r"Unterminated string", raw):
        return _directive(
            error, kind,
            f"Fix unterminated string literal{hint}",
            f"Fix the unterminated string literal{hint}. Find the unclosed quote and close it properly. "
            f"Be careful with template literals and JSX string props.\n\n"
            f"Error: {raw}\n\nCurrent code:\n{source_code}",
        )

    if re.search(r"Unexpected end of input", raw):
        return _directive(
            error, kind,
            f"Fix unexpected end of input{hint}: missing closing bracket/brace",
            'Fix the "unexpected end of input" error. The code is missing a closing bracket, brace, '
            "or parenthesis. Check the nesting of {}, (), [], and JSX tags.\n\n"
            f"Error: {raw}\n\nCurrent code:\n{source_code}",
        )

    token = re.search(r"Unexpected token\s*['\"]?(\S+?)['\"]?(?:\s|$)", raw)
    if token:
        return _directive(
            error, kind,
            f'Fix unexpected token "{token.group(1)}"{hint}',
            f'Fix the syntax error caused by unexpected token "{token.group(1)}"{hint}. Common causes: '
            f"missing comma, extra/missing bracket, wrong operator, JSX expression without curly braces.\n\n"
            f"Error: {raw}\n\nCurrent code:\n{source_code}",
        )

    return _directive(
        error, kind,
        f"Fix syntax error{hint}: {error.message}",
        f"Fix this syntax error{hint}:\n{raw}\n\nCurrent code:\n{source_code}",
    )


# =========================================================================
# React hook violations
# =========================================================================

def fix_hook_violation(error: ClassifiedError, source_code: str) -> FixResult:
    raw = error.original_error
    kind = ErrorKind.REACT_HOOK_VIOLATION

    conditional = re.search(r'React Hook "(\w+)" is called conditionally', raw)
    if conditional:
        hook = conditional.group(1)
        return _directive(
            error, kind,
            f'Move "{hook}" to top level: hooks cannot be called conditionally',
            f'The React Hook "{hook}" is called conditionally. React hooks must be called in the exact '
            f"same order every render.\n\nFix this by:\n"
            f"1. Move the hook call to the top level of the component\n"
            f"2. Use the hook's value conditionally instead of calling the hook conditionally\n"
            f"3. If the hook is in a loop, refactor to use a single hook call\n\n"
            f"Error: {raw}\n\nCurrent code:\n{source_code}",
        )

    wrong_context = re.search(r'React Hook "(\w+)" is called in a function that is neither', raw)
    if wrong_context:
        hook = wrong_context.group(1)
        return _directive(
            error, kind,
            f'"{hook}" called outside a component: move it into a component or custom hook',
            f'The React Hook "{hook}" is called in a regular function, not a React component or custom hook.'
            f"\n\nFix this by:\n"
            f"1. Move the hook call into a React component (function starting with uppercase)\n"
            f'2. Or rename the function to start with "use" to make it a custom hook\n'
            f"3. Or restructure the code so hooks are only in components\n\n"
            f"Error: {raw}\n\nCurrent code:\n{source_code}",
        )

    if re.search(r"Rendered (?:more|fewer) hooks than", raw) or "Invalid hook call" in raw:
        return _directive(
            error, kind,
            "Hook order mismatch between renders: ensure consistent hook calls",
            "The number of hooks called changed between renders. This means hooks are being called "
            "conditionally or in a loop.\n\nFix this by:\n"
            "1. Move ALL hook calls to the top of the component, before any returns or conditions\n"
            "2. Never call hooks inside if/else blocks\n"
            "3. Never call hooks inside loops\n"
            "4. Never call hooks after early returns\n\n"
            f"Error: {raw}\n\nCurrent code:\n{source_code}",
        )

    return _directive(
        error, kind,
        f"Fix React hook violation: {error.message}",
        f"Fix this React hook violation:\n{raw}\n\n"
        f"Ensure all hooks are called unconditionally at the top level of the component.\n\n"
        f"Current code:\n{source_code}",
    )


# =========================================================================
# Style / unknown
# =========================================================================

def fix_style(error: ClassifiedError, source_code: str) -> FixResult:
    return _directive(
        error, ErrorKind.STYLE,
        f"Fix style error: {error.message}",
        f"Fix this CSS/style error:\n{error.original_error}\n\nCurrent code:\n{source_code}",
    )


def fix_unknown(error: ClassifiedError, source_code: str) -> FixResult:
    return _directive(
        error, ErrorKind.UNKNOWN,
        f"Analyze and fix: {error.message}",
        f"Analyze and fix this error:\n{error.original_error}\n\nCurrent code:\n{source_code}",
    )
