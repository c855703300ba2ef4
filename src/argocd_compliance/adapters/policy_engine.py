"""Policy engine adapter interfaces and the OPA command line implementation."""

from __future__ import annotations

import json
import logging
import re
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class PolicyEvaluationError(RuntimeError):
    """Raised when a policy module cannot be compiled or queried."""


@dataclass(slots=True, frozen=True)
class CompiledPolicy:
    """A parsed policy module: its file, package path and top-level rule names."""

    source: str
    package: str
    rules: Tuple[str, ...] = ()

    def defines(self, rule: str) -> bool:
        return rule in self.rules

    def ref(self, rule: str) -> str:
        """Query reference for ``rule``, e.g. ``data.argocd.labels.deny``."""

        separator = "" if self.package.startswith("[") else "."
        return f"data{separator}{self.package}.{rule}"


class PolicyEngine(ABC):
    """Abstract base class describing the policy evaluator contract."""

    @abstractmethod
    def compile(self, path: str) -> CompiledPolicy:
        """Parse the module at ``path`` and describe what it declares."""

    @abstractmethod
    def query(self, policy: CompiledPolicy, rule: str, input_data: Optional[Mapping[str, Any]] = None) -> Any:
        """Evaluate ``rule`` of ``policy``; return ``None`` when the rule is undefined."""


class OPAPolicyEngine(PolicyEngine):
    """Adapter that shells out to the ``opa`` CLI to parse and evaluate Rego modules."""

    def __init__(self, *, opa_executable: str = "opa", timeout: float | None = None) -> None:
        self.opa_executable = opa_executable or "opa"
        self.timeout = timeout

    # ------------------------------------------------------------------
    def compile(self, path: str) -> CompiledPolicy:
        if not Path(path).is_file():
            raise PolicyEvaluationError(f"policy module not found: {path}")
        output = self._run([self.opa_executable, "parse", "--format", "json", path])
        try:
            module = json.loads(output or "{}")
        except json.JSONDecodeError as exc:
            raise PolicyEvaluationError(f"parse module {path}: opa returned invalid JSON") from exc
        if not isinstance(module, Mapping):
            raise PolicyEvaluationError(f"parse module {path}: unexpected AST")

        package = _package_path(module.get("package") or {})
        if not package:
            raise PolicyEvaluationError(f"parse module {path}: missing package declaration")
        rules: List[str] = []
        for rule in module.get("rules") or []:
            name = _rule_name(rule)
            if name and name not in rules:
                rules.append(name)
        logger.debug("compiled policy %s (package %s, rules %s)", path, package, ", ".join(rules))
        return CompiledPolicy(source=path, package=package, rules=tuple(rules))

    # ------------------------------------------------------------------
    def query(self, policy: CompiledPolicy, rule: str, input_data: Optional[Mapping[str, Any]] = None) -> Any:
        command = [
            self.opa_executable,
            "eval",
            "--format",
            "json",
            "--data",
            policy.source,
        ]
        stdin: Optional[str] = None
        if input_data is not None:
            command.append("--stdin-input")
            stdin = json.dumps(input_data, default=str)
        command.append(policy.ref(rule))

        output = self._run(command, stdin=stdin)
        try:
            data = json.loads(output or "{}")
        except json.JSONDecodeError as exc:
            raise PolicyEvaluationError(f"evaluate {rule} in {policy.source}: opa returned invalid JSON") from exc

        results = data.get("result") if isinstance(data, Mapping) else None
        if not results:
            return None
        expressions = results[0].get("expressions") or []
        if not expressions:
            return None
        return expressions[0].get("value")

    # ------------------------------------------------------------------
    def _run(self, command: Sequence[str], *, stdin: Optional[str] = None) -> str:
        logger.debug("running %s", " ".join(command))
        try:
            result = subprocess.run(  # noqa: S603 - deliberate invocation of external command
                list(command),
                input=stdin,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise PolicyEvaluationError(f"Executable not found: {command[0]}") from exc
        except subprocess.TimeoutExpired as exc:
            raise PolicyEvaluationError(f"Command '{' '.join(command)}' timed out") from exc

        if result.returncode != 0:
            raise PolicyEvaluationError(result.stderr.strip() or f"opa exited with status {result.returncode}")
        return result.stdout


def _package_path(package: Mapping[str, Any]) -> str:
    """Join the terms of a package path, skipping the leading ``data`` root."""

    terms = package.get("path") or []
    parts: List[str] = []
    for index, term in enumerate(terms):
        value = str(term.get("value", "")) if isinstance(term, Mapping) else ""
        if index == 0 and value == "data":
            continue
        if not value:
            continue
        if _IDENTIFIER.match(value):
            parts.append(value if not parts else f".{value}")
        else:
            parts.append(f'["{value}"]')
    return "".join(parts)


def _rule_name(rule: Any) -> str:
    if not isinstance(rule, Mapping):
        return ""
    head = rule.get("head") or {}
    name = head.get("name")
    if isinstance(name, str) and name:
        return name
    ref = head.get("ref") or []
    if ref and isinstance(ref[0], Mapping):
        return str(ref[0].get("value") or "")
    return ""


__all__ = ["CompiledPolicy", "OPAPolicyEngine", "PolicyEngine", "PolicyEvaluationError"]
