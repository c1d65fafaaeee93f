"""${name} placeholder binding for step inputs."""

import re
from typing import Any, Mapping

PLACEHOLDER = re.compile(r"\$\{(\w+)\}")


def bind_variables(template: str, variables: Mapping[str, Any]) -> str:
    """
    Replace every ${name} whose name is a key of variables with str(value).

    Single pass: substituted text is never re-scanned. Names that are not
    keys leave the placeholder as is; a key holding None renders "None".
    """

    def _substitute(match: re.Match) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        return str(variables[name])

    return PLACEHOLDER.sub(_substitute, template)


def find_placeholders(template: str) -> list[str]:
    """Placeholder names in order of first appearance."""
    seen: list[str] = []
    for name in PLACEHOLDER.findall(template):
        if name not in seen:
            seen.append(name)
    return seen


def unresolved_placeholders(template: str, variables: Mapping[str, Any]) -> list[str]:
    """Placeholder names bind_variables would leave in place."""
    return [name for name in find_placeholders(template) if name not in variables]
