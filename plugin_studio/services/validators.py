"""
Validators - lightweight heuristics for Oxide/uMod and Carbon C# plugins

Findings only steer prompts and the editor's checks list; they never block
an apply.
"""

from __future__ import annotations

import re

from ..models.assist import Finding

_HOOK_SIGNATURES = [
    ("OnServerInitialized", re.compile(r"void\s+OnServerInitialized\s*\(\s*\)")),
    ("OnPlayerInit", re.compile(r"void\s+OnPlayerInit\s*\(\s*BasePlayer\s+\w+\s*\)")),
    (
        "OnPlayerDisconnected",
        re.compile(r"void\s+OnPlayerDisconnected\s*\(\s*BasePlayer\s+\w+,\s*string\s+\w+\s*\)"),
    ),
    ("OnPlayerChat", re.compile(r"(void|object)\s+OnPlayerChat\s*\(\s*BasePlayer\s+\w+,\s*string\s+\w+\s*\)")),
]

_BLOCKING_RE = re.compile(r"Thread\.Sleep\s*\(|\bTask\.Wait\(\)|\.Result\b")


def _guess_line(lines: list[str], message: str) -> int | None:
    """First line containing the message's first word"""
    keyword = message.split(" ")[0]
    for n, line in enumerate(lines, start=1):
        if keyword in line:
            return n
    return None


def run_validators(code: str, framework: str = "oxide") -> list[Finding]:
    """Run every heuristic check over the code, in a fixed order"""
    lines = re.split(r"\r?\n", code)
    findings: list[Finding] = []

    def add(level: str, message: str):
        findings.append(Finding(level=level, message=message, line=_guess_line(lines, message)))

    if framework == "carbon":
        if re.search(r"class\s+\w+\s*:\s*CarbonPlugin\b", code):
            add("ok", "Class derives from CarbonPlugin")
        else:
            add("warn", "Class should derive from CarbonPlugin for Carbon")
    else:
        if re.search(r"class\s+\w+\s*:\s*RustPlugin\b", code):
            add("ok", "Class derives from RustPlugin")
        else:
            add("warn", "Class should derive from RustPlugin for Oxide/uMod")

    if not re.search(r"\[(Info|Plugin)\s*\(", code):
        add("warn", "Missing [Info(...)] (Oxide) or [Plugin(...)] (Carbon) attribute near class")

    has_perm_const = re.search(r"const\s+string\s+\w*\s*PERM", code, re.IGNORECASE) or re.search(
        r'"myplugin\.use"', code, re.IGNORECASE
    )
    if has_perm_const and not re.search(r"permission\.RegisterPermission\s*\(", code, re.IGNORECASE):
        add("warn", "Permission constant detected but no permission.RegisterPermission(...) found")

    for name, signature in _HOOK_SIGNATURES:
        if name in code:
            if signature.search(code):
                add("ok", f"{name} signature looks OK")
            else:
                add("warn", f"{name} appears but the method signature may be incorrect")

    if _BLOCKING_RE.search(code):
        add(
            "warn",
            "Potential blocking calls detected (Thread.Sleep/Task.Wait/.Result). "
            "Consider async or timers to avoid blocking the main thread.",
        )

    todo_count = len(re.findall(r"TODO", code, re.IGNORECASE))
    if todo_count:
        add("warn", f"Found {todo_count} TODO notes. Ensure they are resolved before production.")

    if code.count("{") != code.count("}"):
        add("err", "Unbalanced curly braces detected.")

    if re.search(r"void\s+Cmd\w+\s*\(\s*BasePlayer", code) and "[ChatCommand(" not in code:
        add("warn", "Command-like method found but missing [ChatCommand(...)] attribute.")

    return findings
