"""
Boundary with the AI repair collaborator

The ghost-fix loop only needs one thing from the AI side: given a repair
directive and the current file, return the complete text of every file it
rewrote or added.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from livepreview.services.ghost_fix.classifier import ClassifiedError


@dataclass
class FixAttempt:
    """A previous attempt that did not resolve the error"""
    error: str
    attempt_number: int


@dataclass
class FixRequest:
    """Everything the collaborator gets for one repair"""
    ai_prompt: str
    target_file: str
    current_content: str
    error: ClassifiedError
    previous_attempts: List[FixAttempt] = field(default_factory=list)
    # Whole working copy, for cross-file context
    files: Dict[str, str] = field(default_factory=dict)

    def previous_attempts_text(self) -> str:
        if not self.previous_attempts:
            return ""
        lines = [f"Attempt {a.attempt_number}: {a.error}" for a in self.previous_attempts]
        return "Previous fix attempts that FAILED (do NOT repeat these):\n" + "\n".join(lines)


class RepairClient(Protocol):
    async def repair(self, request: FixRequest) -> Optional[Dict[str, str]]:
        """Files to write (path -> new content), or None if no fix was produced"""
        ...
