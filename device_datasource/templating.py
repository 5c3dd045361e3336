"""
Template variable expansion.

Parameter values may reference host template variables, e.g.
``metrics = "${metric}"`` or ``devices = "$device,7"``. Before a query
leaves the process, those references are replaced by the variables'
current values. Multi-valued variables are joined according to a format;
the data source always asks for ``csv``.

The expander is passed in explicitly (``TemplateExpander``) so the host
can plug its own variable service. ``TemplateVariables`` is a simple
in-process implementation.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from device_datasource.models import Query

logger = logging.getLogger(__name__)

CSV = "csv"

ScopedVars = Mapping[str, Mapping[str, Any]]

# $var | ${var} | ${var:format} | [[var]] | [[var:format]]
VARIABLE_PATTERN = re.compile(
    r"\$(?P<plain>\w+)"
    r"|\$\{(?P<braced>\w+)(?::(?P<braced_fmt>[\w-]+))?\}"
    r"|\[\[(?P<bracket>\w+)(?::(?P<bracket_fmt>[\w-]+))?\]\]"
)


def _glob(values: List[str]) -> str:
    if len(values) == 1:
        return values[0]
    return "{" + ",".join(values) + "}"


FORMATTERS: Dict[str, Callable[[List[str]], str]] = {
    "csv": ",".join,
    "pipe": "|".join,
    "json": json.dumps,
    "glob": _glob,
}


class TemplateExpander(Protocol):
    def replace(self, target: str, scoped_vars: Optional[ScopedVars] = None, fmt: Optional[str] = None) -> str:
        ...


class TemplateVariables:
    """
    In-process template variable service.

    Args:
        variables (dict): current variable bindings, name -> value. A value is a
            string or a list of strings for multi-value variables.
    """

    def __init__(self, variables: Optional[Dict[str, Any]] = None) -> None:
        self.variables = dict(variables or {})

    def set(self, name: str, value: Any) -> None:
        self.variables[name] = value

    def _lookup(self, name: str, scoped_vars: Optional[ScopedVars]):
        if scoped_vars and name in scoped_vars:
            return True, scoped_vars[name].get("value")
        if name in self.variables:
            return True, self.variables[name]
        return False, None

    def replace(self, target: str, scoped_vars: Optional[ScopedVars] = None, fmt: Optional[str] = None) -> str:
        if not target:
            return target

        def substitute(match: re.Match) -> str:
            name = match.group("plain") or match.group("braced") or match.group("bracket")
            found, value = self._lookup(name, scoped_vars)
            if not found:
                return match.group(0)
            inline_fmt = match.group("braced_fmt") or match.group("bracket_fmt")
            return format_value(value, inline_fmt or fmt)

        return VARIABLE_PATTERN.sub(substitute, target)


def format_value(value: Any, fmt: Optional[str] = None) -> str:
    values = [str(v) for v in value] if isinstance(value, (list, tuple)) else [str(value)]
    fmt = fmt or "glob"
    if fmt not in FORMATTERS:
        raise ValueError(f"Unknown variable format '{fmt}'. Supported: {list(FORMATTERS)}")
    if fmt == "json" and not isinstance(value, (list, tuple)):
        return json.dumps(values[0])
    return FORMATTERS[fmt](values)


def expand_csv(value: str, expander: TemplateExpander) -> str:
    return expander.replace(value, None, CSV)


def _expand_parameter(target: Query, key: str, expander: TemplateExpander) -> Query:
    value = target.parameters.get(key)
    if not value:
        return target

    expanded = expand_csv(value, expander)
    if expanded != value:
        logger.debug("Expanded %s of '%s': %s -> %s", key, target.ref_id, value, expanded)
    return target.model_copy(update={"parameters": {**target.parameters, key: expanded}}, deep=True)


def expand_devices(target: Query, expander: TemplateExpander) -> Query:
    """
    Return a copy of ``target`` with its ``devices`` parameter expanded.
    Used for entity lookups, where only the device context may reference variables.
    """
    return _expand_parameter(target, "devices", expander)


def expand_metrics(target: Query, expander: TemplateExpander) -> Query:
    """
    Return a copy of ``target`` with its ``metrics`` parameter expanded.
    Targets without metrics are returned as they are.
    """
    return _expand_parameter(target, "metrics", expander)
