"""Split markdown feature files into a YAML frontmatter mapping and a body."""

from pathlib import Path
from typing import Any

import yaml

from agentpacks.errors import FrontmatterParseError

DELIMITER = "---"


def parse_frontmatter(text: str, path: Path | str, pack_name: str = "") -> tuple[dict[str, Any], str]:
    """
    Parse a leading `---` YAML block.

    A file without a leading block has empty frontmatter and its whole text
    as body. The body keeps its content but loses the blank lines directly
    after the closing delimiter.

    Args:
        text: Full file content
        path: File path, used in error messages
        pack_name: Owning pack, used in error messages

    Returns:
        (frontmatter mapping, body)

    Raises:
        FrontmatterParseError: Unterminated block, invalid YAML, or a block
            that is not a mapping
    """
    if text.startswith("\ufeff"):
        text = text[1:]
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip("\r\n").strip() != DELIMITER:
        return {}, text

    for i in range(1, len(lines)):
        if lines[i].rstrip("\r\n").strip() == DELIMITER:
            raw = "".join(lines[1:i])
            body = "".join(lines[i + 1:]).lstrip("\r\n")
            break
    else:
        raise FrontmatterParseError(
            pack_name=pack_name,
            file_path=str(path),
            detail="frontmatter block is not closed with '---'",
        )

    try:
        data = yaml.safe_load(raw) if raw.strip() else {}
    except yaml.YAMLError as e:
        raise FrontmatterParseError(
            pack_name=pack_name,
            file_path=str(path),
            detail=f"invalid YAML: {e}",
        ) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontmatterParseError(
            pack_name=pack_name,
            file_path=str(path),
            detail=f"expected a mapping, got {type(data).__name__}",
        )
    return data, body
