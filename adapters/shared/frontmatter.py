"""
YAML front matter for markdown documents.

---
inclusion: always
---
Document body...
"""

import re
from typing import Any, Dict, Tuple

import yaml

FRONTMATTER_RE = re.compile(r'^---\n(.*?)\n---\n?(.*)$', re.DOTALL)


def parse_frontmatter(content: str) -> Tuple[Dict[str, Any], str]:
    """
    Split a document into (front matter, body).

    Documents without front matter, or whose front matter is not a YAML
    mapping, come back as ({}, content) unchanged.
    """
    match = FRONTMATTER_RE.match(content)
    if not match:
        return {}, content

    yaml_content, body = match.groups()
    try:
        frontmatter = yaml.safe_load(yaml_content)
    except yaml.YAMLError:
        return {}, content
    if not isinstance(frontmatter, dict):
        return {}, content
    return frontmatter, body


def render_frontmatter(frontmatter: Dict[str, Any], body: str) -> str:
    if not frontmatter:
        return body
    yaml_str = yaml.dump(frontmatter, default_flow_style=False, sort_keys=False)
    return f"---\n{yaml_str}---\n{body}"
