from anthropic import AsyncAnthropic, APIStatusError, APIError, APIConnectionError, APITimeoutError
from typing import Optional, Dict, Any
import asyncio
import random
import httpx
from livepreview.core.config import settings
from livepreview.core.exceptions import RepairError
from livepreview.core.logging_config import logger
from livepreview.services.ghost_fix.repair import FixRequest
from livepreview.utils.response_parser import RepairResponseParser

# Retry configuration - loaded from settings
MAX_RETRIES = settings.CLAUDE_MAX_RETRIES
BASE_DELAY = settings.CLAUDE_RETRY_BASE_DELAY
MAX_DELAY = settings.CLAUDE_RETRY_MAX_DELAY
REQUEST_TIMEOUT = float(settings.CLAUDE_REQUEST_TIMEOUT)
CONNECT_TIMEOUT = float(settings.CLAUDE_CONNECT_TIMEOUT)
RETRYABLE_ERRORS = ['overloaded_error', 'rate_limit_error', 'server_error']

GHOST_FIX_SYSTEM_PROMPT = """You are an automated code-fix system. You receive code files and an error, and you output ONLY fixed files.

The preview bundles the files in memory: every file is a separate ES module, bare imports
(react, lucide-react, framer-motion, ...) load from a CDN, and TypeScript/JSX are compiled
in the browser. There is no Node.js, no filesystem and no package install step.

RULES:
- Output ONLY file blocks: no conversation, no explanations, no questions
- Fix the error by modifying the minimum number of files necessary
- Provide the COMPLETE file content for each file you modify (not diffs)
- Write standard React/TypeScript with proper imports/exports
- Each file is a separate module: use import/export between files

Output format:
<file path="filename.tsx">
complete fixed file content
</file>"""


class ClaudeRepairClient:
    """Repair collaborator backed by the Anthropic Messages API"""

    def __init__(self, async_client: Optional[AsyncAnthropic] = None, model: Optional[str] = None):
        if async_client is None:
            client_kwargs: Dict[str, Any] = {"api_key": settings.ANTHROPIC_API_KEY}

            # Only set base_url if it's a non-empty string with actual content
            if settings.ANTHROPIC_BASE_URL and settings.ANTHROPIC_BASE_URL.strip():
                client_kwargs["base_url"] = settings.ANTHROPIC_BASE_URL.strip()
                logger.info(f"[ClaudeRepairClient] Using custom base URL: {settings.ANTHROPIC_BASE_URL}")

            client_kwargs["timeout"] = httpx.Timeout(
                connect=CONNECT_TIMEOUT,
                read=REQUEST_TIMEOUT,
                write=REQUEST_TIMEOUT,
                pool=REQUEST_TIMEOUT
            )
            async_client = AsyncAnthropic(**client_kwargs)

        self.async_client = async_client
        self.model = model or settings.CLAUDE_FIX_MODEL
        self.parser = RepairResponseParser()

    def _is_retryable_error(self, error: Exception) -> bool:
        """Check if an error is retryable (overload, rate limit, network issues, etc.)"""
        if isinstance(error, (APIConnectionError, APITimeoutError)):
            return True

        if isinstance(error, (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError)):
            return True

        if isinstance(error, (APIStatusError, APIError)):
            if hasattr(error, 'body') and isinstance(error.body, dict):
                error_type = error.body.get('error', {}).get('type', '')
                if error_type:
                    return error_type in RETRYABLE_ERRORS
            if hasattr(error, 'status_code'):
                return error.status_code in [429, 500, 502, 503, 529]

        error_str = str(error).lower()
        network_errors = ['overload', 'rate_limit', '529', '503', 'capacity',
                          'connection', 'timeout', 'network']
        return any(err in error_str for err in network_errors)

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay with exponential backoff and jitter"""
        delay = min(BASE_DELAY * (2 ** attempt), MAX_DELAY)
        return delay + delay * random.uniform(0, 0.25)

    @staticmethod
    def build_user_message(request: FixRequest) -> str:
        error = request.error
        detail = [
            f"Type: {error.type.value}",
            f"Message: {error.message}",
            f"File: {request.target_file}",
        ]
        if error.line:
            detail.append(f"Line: {error.line}")
        if error.column:
            detail.append(f"Column: {error.column}")

        others = [
            f"--- {path} ---\n{content}"
            for path, content in request.files.items()
            if path != request.target_file
        ]

        sections = [
            "Fix this preview error.",
            "ERROR:\n" + "\n".join(detail),
            "DIRECTIVE:\n" + request.ai_prompt,
        ]
        previous = request.previous_attempts_text()
        if previous:
            sections.append(previous)
        sections.append(f"FILES:\n--- {request.target_file} ---\n{request.current_content}")
        if others:
            sections.append("OTHER FILES (read-only context):\n" + "\n\n".join(others))
        return "\n\n".join(sections)

    async def _create(self, user_message: str) -> str:
        last_error = None
        for attempt in range(MAX_RETRIES + 1):
            try:
                response = await self.async_client.messages.create(
                    model=self.model,
                    max_tokens=settings.CLAUDE_MAX_TOKENS,
                    temperature=settings.CLAUDE_TEMPERATURE,
                    system=GHOST_FIX_SYSTEM_PROMPT,
                    messages=[{"role": "user", "content": user_message}]
                )
                content = response.content[0].text if response.content else ""
                logger.info(
                    f"[ClaudeRepairClient] response id={response.id}, stop={response.stop_reason}",
                    extra={
                        "event_type": "claude_api_response",
                        "input_tokens": response.usage.input_tokens,
                        "output_tokens": response.usage.output_tokens,
                    }
                )
                return content

            except Exception as e:
                last_error = e
                error_type = type(e).__name__
                if self._is_retryable_error(e) and attempt < MAX_RETRIES:
                    delay = self._calculate_retry_delay(attempt)
                    logger.warning(
                        f"[ClaudeRepairClient] API error [{error_type}] (attempt {attempt + 1}/{MAX_RETRIES + 1}), "
                        f"retrying in {delay:.1f}s...",
                        extra={
                            "event_type": "claude_api_retry",
                            "error_type": error_type,
                            "attempt": attempt + 1,
                            "retry_delay": delay
                        }
                    )
                    await asyncio.sleep(delay)
                else:
                    raise RepairError(f"Claude API error: {error_type}: {e}") from e

        raise RepairError(f"Claude API error: {last_error}")

    async def repair(self, request: FixRequest) -> Optional[Dict[str, str]]:
        """Ask Claude for the fixed files; the target plus any file it adds"""
        logger.log_fix_event(request.error.type.value, "requesting AI repair", request.target_file)
        reply = await self._create(self.build_user_message(request))

        files = self.parser.extract_reply_files(reply, request.target_file)
        if not files:
            logger.warning(f"[ClaudeRepairClient] Reply had no file content for {request.target_file}")
            return None
        return files
