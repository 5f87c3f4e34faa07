"""
Repair Response Parser
Extracts fixed file contents from the repair collaborator's reply

Accepted formats, in order of preference:
    <action type="file" filePath="App.tsx">...</action>
    <file path="App.tsx">...</file>
    ```tsx
    ...
    ```
"""

import re
from typing import Dict, List, Optional

from livepreview.core.logging_config import logger
from livepreview.services.bundler.paths import strip_prefix


_ATTR = re.compile(r'(\w+)="([^"]*)"')
_FENCE = re.compile(r"```[\w.+-]*[ \t]*\n(.*?)```", re.DOTALL)


class RepairResponseParser:
    """Parse XML-tagged or fenced-code repair replies"""

    @staticmethod
    def parse_xml_tags(response: str, tag_name: str) -> List[Dict[str, str]]:
        """
        Parse XML-style tags from a response

        Examples:
        <file path="src/App.tsx">...</file>
        <action type="file" filePath="App.tsx">...</action>

        Returns:
            List of dicts with tag content and attributes
        """
        results = []
        pattern = rf"<{tag_name}([^>]*)>(.*?)</{tag_name}>"
        for match in re.finditer(pattern, response, re.DOTALL):
            attrs = dict(_ATTR.findall(match.group(1)))
            results.append({"content": match.group(2).strip("\n"), **attrs})
        return results

    @classmethod
    def extract_files(cls, response: str) -> Dict[str, str]:
        """All path -> content pairs found in tagged blocks"""
        files: Dict[str, str] = {}

        for action in cls.parse_xml_tags(response, "action"):
            path = action.get("filePath")
            if action.get("type", "file") == "file" and path:
                files[path] = action["content"]

        for block in cls.parse_xml_tags(response, "file"):
            path = block.get("path")
            if path and path not in files:
                files[path] = block["content"]

        return files

    @classmethod
    def extract_file_content(cls, response: str, target_file: str) -> Optional[str]:
        """
        New content for target_file.

        Tagged blocks are matched on normalized paths only; a fenced code block
        is accepted as the target when the reply has no tagged blocks at all.
        """
        files = cls.extract_files(response)
        wanted = strip_prefix(target_file)
        for path, content in files.items():
            if strip_prefix(path) == wanted:
                return content

        if files:
            logger.warning(
                f"[RepairResponseParser] Reply changed {list(files)} but not {target_file}"
            )
            return None

        fenced = _FENCE.search(response)
        if fenced:
            return fenced.group(1)

        logger.debug(f"[RepairResponseParser] No file content in reply ({len(response)} chars)")
        return None

    @classmethod
    def extract_reply_files(cls, response: str, target_file: str) -> Dict[str, str]:
        """
        Every file a reply writes, path -> complete content.

        Tagged blocks keep their own paths. A reply with no tagged blocks
        contributes its fenced code block as target_file.
        """
        files = cls.extract_files(response)
        if files:
            return files

        content = cls.extract_file_content(response, target_file)
        if content is None:
            return {}
        return {target_file: content}
