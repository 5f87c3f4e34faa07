"""
livepreview - Test Configuration and Fixtures
"""
import os
from typing import Callable, Dict, List, Optional, Union

import pytest

# Set testing environment before settings are loaded
os.environ['ENVIRONMENT'] = 'test'
os.environ['ANTHROPIC_API_KEY'] = ''
os.environ['ANTHROPIC_BASE_URL'] = ''
os.environ['LOG_LEVEL'] = 'DEBUG'

from livepreview.services.bundler import set_backend
from livepreview.services.ghost_fix.classifier import ClassifiedError, ErrorKind
from livepreview.services.ghost_fix.repair import FixRequest
from livepreview.services.ghost_fix.retry_queue import RetryQueue


@pytest.fixture(autouse=True)
def reset_backend():
    """Every test starts with a fresh, uninitialized compilation backend"""
    set_backend(None)
    yield
    set_backend(None)


@pytest.fixture
def fast_queue() -> RetryQueue:
    """Retry queue with tiny, jitter-free delays"""
    return RetryQueue(
        base_delay=0.01,
        max_delay=0.05,
        backoff_multiplier=2.0,
        max_attempts=3,
        concurrency=1,
        jitter=0.0,
    )


@pytest.fixture
def make_error() -> Callable[..., ClassifiedError]:
    """Build a ClassifiedError without going through the classifier"""
    def _make(
        original: str,
        kind: ErrorKind = ErrorKind.TYPE_ERROR,
        message: Optional[str] = None,
        file: Optional[str] = "App.tsx",
        line: Optional[int] = None,
        column: Optional[int] = None,
        confidence: float = 0.9,
    ) -> ClassifiedError:
        return ClassifiedError(
            type=kind,
            message=message or original,
            original_error=original,
            suggestion="",
            confidence=confidence,
            file=file,
            line=line,
            column=column,
        )
    return _make


class FakeRepairClient:
    """
    Repair collaborator returning canned replies.

    A string reply is the new content of the request's target file; a dict
    reply is returned as-is (path -> content).
    """

    def __init__(self, replies: List[Union[str, Dict[str, str], None]]):
        self.replies = list(replies)
        self.requests: List[FixRequest] = []

    async def repair(self, request: FixRequest) -> Optional[Dict[str, str]]:
        self.requests.append(request)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, str):
            return {request.target_file: reply}
        return reply


@pytest.fixture
def fake_repair_client() -> Callable[[List[Optional[str]]], FakeRepairClient]:
    return FakeRepairClient


@pytest.fixture
def app_files() -> Dict[str, str]:
    """Small project that bundles cleanly through the synthetic entry"""
    return {
        "src/App.tsx": (
            "import { useState } from 'react';\n"
            "import Button from './components/Button';\n"
            "import './index.css';\n"
            "\n"
            "export default function App() {\n"
            "  const [count, setCount] = useState<number>(0);\n"
            "  return <Button onClick={() => setCount(count + 1)}>Clicked {count} times</Button>;\n"
            "}\n"
        ),
        "src/components/Button.tsx": (
            "interface ButtonProps { onClick: () => void; children: React.ReactNode }\n"
            "\n"
            "export default function Button({ onClick, children }: ButtonProps) {\n"
            "  return <button className=\"px-4 py-2 rounded\" onClick={onClick}>{children}</button>;\n"
            "}\n"
        ),
        "src/index.css": "body { font-family: sans-serif; }\n",
        "package.json": '{"name": "demo"}',
        "vite.config.ts": "export default {}",
    }
