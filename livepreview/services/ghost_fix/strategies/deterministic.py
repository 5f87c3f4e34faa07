"""
Deterministic Fix Strategy

FREE - No AI - Pattern-based fixes
Adds missing imports for well-known identifiers directly; everything else
about imports becomes a repair directive for the AI.
"""

import re
from dataclasses import dataclass
from typing import Optional

from livepreview.core.logging_config import logger
from livepreview.services.ghost_fix.classifier import ClassifiedError, ErrorKind
from livepreview.services.ghost_fix.patterns import is_default_export, known_module_for


@dataclass
class FixResult:
    """Result of applying a fix strategy"""
    success: bool
    description: str
    strategy: ErrorKind

    # Direct patch: full replacement content of target_file
    fixed_code: Optional[str] = None
    # Repair directive for the AI collaborator
    ai_prompt: Optional[str] = None
    target_file: Optional[str] = None

    @property
    def needs_ai(self) -> bool:
        return self.success and self.fixed_code is None and self.ai_prompt is not None


_MODULE_NOT_FOUND = re.compile(
    r"(?:Cannot find module|Module not found|Failed to resolve import|Could not resolve)\s+['\"]([^'\"]+)['\"]",
    re.IGNORECASE,
)
_NOT_EXPORTED = re.compile(r"['\"](\w+)['\"]\s+is not exported from\s+['\"]([^'\"]+)['\"]", re.IGNORECASE)
_NOT_DEFINED = re.compile(r"(\w+) is not defined", re.IGNORECASE)


def add_import(name: str, module: str, source_code: str) -> str:
    """
    Return source_code with `name` imported from `module`.

    Named imports are spliced into an existing `import { ... } from module`
    when there is one; otherwise a new import line is prepended.
    """
    if is_default_export(name):
        return f'import {name} from "{module}";\n{source_code}'

    existing = re.search(
        r"import\s+\{([^}]+)\}\s+from\s+[\"']" + re.escape(module) + r"[\"']",
        source_code,
    )
    if existing:
        updated = f"{existing.group(1).strip()}, {name}"
        return source_code.replace(existing.group(0), f'import {{ {updated} }} from "{module}"', 1)

    return f'import {{ {name} }} from "{module}";\n{source_code}'


def fix_missing_import(error: ClassifiedError, source_code: str) -> FixResult:
    raw = error.original_error
    export_match = _NOT_EXPORTED.search(raw)
    not_defined = _NOT_DEFINED.search(raw)
    module_match = _MODULE_NOT_FOUND.search(raw)

    # 1. Named export missing from a module
    if export_match:
        name, from_module = export_match.group(1), export_match.group(2)
        return FixResult(
            success=True,
            description=f'Fix import: "{name}" from "{from_module}"',
            strategy=ErrorKind.IMPORT_MISSING,
            ai_prompt=(
                f'The export "{name}" is not found in "{from_module}". Fix the import statement. '
                f"If the export was renamed or moved, update accordingly. "
                f"If it doesn't exist, provide an alternative.\n\nCurrent code:\n{source_code}"
            ),
            target_file=error.file,
        )

    # 2. Identifier not defined - patch directly when it's a known one
    if not_defined:
        name = not_defined.group(1)
        module = known_module_for(name)

        if module:
            already_imported = (
                not is_default_export(name)
                and re.search(
                    r"import\s+\{[^}]+\}\s+from\s+[\"']" + re.escape(module) + r"[\"']",
                    source_code,
                )
            )
            fixed_code = add_import(name, module, source_code)
            logger.log_fix_event("import-missing", f"deterministic import of {name}", error.file)
            return FixResult(
                success=True,
                fixed_code=fixed_code,
                description=(
                    f'Added "{name}" to existing import from "{module}"'
                    if already_imported
                    else f'Added import for "{name}" from "{module}"'
                ),
                strategy=ErrorKind.IMPORT_MISSING,
                target_file=error.file,
            )

        return FixResult(
            success=True,
            description=f'"{name}" is not defined. Add the correct import or declaration.',
            strategy=ErrorKind.IMPORT_MISSING,
            ai_prompt=(
                f'The identifier "{name}" is not defined. Add the correct import statement '
                f"or declare it.\n\nCurrent code:\n{source_code}"
            ),
            target_file=error.file,
        )

    # 3. Module not found
    if module_match:
        module_name = module_match.group(1)
        return FixResult(
            success=True,
            description=f'Module "{module_name}" not found. Fix the import path or install the package.',
            strategy=ErrorKind.IMPORT_MISSING,
            ai_prompt=(
                f'The module "{module_name}" cannot be found. Fix the import path if it\'s a local '
                f"file, or suggest an alternative if it's an npm package.\n\nCurrent code:\n{source_code}"
            ),
            target_file=error.file,
        )

    return FixResult(
        success=False,
        description="Could not determine the missing import to fix.",
        strategy=ErrorKind.IMPORT_MISSING,
        target_file=error.file,
    )
