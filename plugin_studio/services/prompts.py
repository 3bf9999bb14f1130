"""
Prompt builders for the plugin assistant.

Every conversation starts with the same non-destructive system instruction;
the task prompts only differ in what they ask for and how they scope code.
"""

from __future__ import annotations

from ..models.assist import PluginMeta
from ..models.chat import ChatMessage


def framework_label(framework: str | None) -> str:
    return "Carbon" if framework == "carbon" else "Oxide/uMod"


def system_non_destructive(framework: str | None) -> ChatMessage:
    """Fixed system instruction shared by every request"""
    return ChatMessage(
        role="system",
        content=f"""You are an expert Rust server plugin engineer. Target framework: {framework_label(framework)}.
CRITICAL RULES:
- NEVER delete or truncate user code.
- Produce minimal, explicit patches (unified diff) for any fixes or improvements.
- If >20% lines would change, split into multiple small patches with rationale.
- If uncertain, ask for clarification.
- Respect framework-specific attributes and hook signatures.""",
    )


def _snippet_scope(code_fragment: str) -> str:
    if not code_fragment:
        return ""
    return f"Focus only on these snippets:\n---SNIPPETS---\n{code_fragment}\n---END SNIPPETS---\n"


def build_generate_messages(
    framework: str | None,
    description: str,
    meta: PluginMeta,
    safety_mode: bool,
    hooks: list[str],
) -> list[ChatMessage]:
    """Generate a new plugin from a description"""
    hook_list = f"\nHooks to consider: {', '.join(hooks)}" if hooks else ""
    permissions = ", ".join(meta.permissions) if meta.permissions else "(none)"
    safety = (
        "Avoid sensitive operations and blocking calls; prefer safe patterns."
        if safety_mode
        else "Use standard patterns."
    )
    return [
        system_non_destructive(framework),
        ChatMessage(
            role="user",
            content=f"""Generate a minimal {framework_label(framework)} C# plugin implementing:
"{description}"{hook_list}

Metadata:
- Name: {meta.name}
- Author: {meta.author}
- Version: {meta.version}
- Permissions: {permissions}

Constraints:
- Include comments explaining each significant section.
- {safety}
- Output ONLY the C# code block. Do NOT include explanations.""",
        ),
    ]


def build_refine_messages(
    framework: str | None, goals: list[str], current_code: str, code_fragment: str = ""
) -> list[ChatMessage]:
    """Ask for a conservative refinement as a unified diff"""
    if code_fragment:
        partial_note = (
            "Only modify within the provided snippets. Output a unified diff against the original "
            "file content; do not mass-rewrite.\n"
            f"---BEGIN SNIPPETS---\n{code_fragment}\n---END SNIPPETS---"
        )
    else:
        partial_note = "Return a unified diff (git-style) with minimal changes."
    return [
        system_non_destructive(framework),
        ChatMessage(
            role="user",
            content=f"""Refine the following plugin with conservative changes for goals: {', '.join(goals)}

{partial_note}

---BEGIN CURRENT CODE---
{current_code}
---END CURRENT CODE---""",
        ),
    ]


def build_patch_messages(
    framework: str | None, problem: str, current_code: str, code_fragment: str = ""
) -> list[ChatMessage]:
    """Ask for the minimal diff that fixes a problem"""
    if code_fragment:
        partial_note = (
            "Only touch code inside the snippets below. Produce the minimal unified diff applicable "
            f"to the full file.\n---BEGIN SNIPPETS---\n{code_fragment}\n---END SNIPPETS---"
        )
    else:
        partial_note = "Produce the minimal unified diff applicable to the full file."
    return [
        system_non_destructive(framework),
        ChatMessage(
            role="user",
            content=f"""Create a unified diff (git style) that minimally fixes the problem described, without deleting or truncating user code.

Problem:
{problem}

Rules:
- Minimal explicit patches only.
- If >20% of lines would change, split into multiple small diffs; annotate each with a short rationale in comments starting with // PATCH NOTE:

{partial_note}

---BEGIN CURRENT CODE---
{current_code}
---END CURRENT CODE---""",
        ),
    ]


def build_test_plan_messages(
    framework: str | None, current_code: str, category_only: bool = False, code_fragment: str = ""
) -> list[ChatMessage]:
    """Ask for a JSON test plan"""
    brevity = "Be terse. Prefer bullet points." if category_only else "Keep concise to save tokens."
    return [
        system_non_destructive(framework),
        ChatMessage(
            role="user",
            content=f"""Suggest a test plan for this {framework_label(framework)} Rust plugin.
{_snippet_scope(code_fragment)}
Output JSON with keys:
- scenarios: array of scenario strings
- assertions: array of assertion strings
- manual_steps: array of in-game/manual steps

{brevity}

---CODE---
{current_code}
---END---""",
        ),
    ]


def build_explain_messages(
    framework: str | None, current_code: str, category_only: bool = False, code_fragment: str = ""
) -> list[ChatMessage]:
    """Ask for a free-text explanation"""
    brevity = (
        "Be very concise; summarize by category (hooks, permissions, data IO)."
        if category_only
        else "Keep it concise."
    )
    return [
        system_non_destructive(framework),
        ChatMessage(
            role="user",
            content=f"""Explain the following plugin. Focus on hooks used, permissions, and key behaviors. {brevity}
{_snippet_scope(code_fragment)}
---CODE---
{current_code}
---END---""",
        ),
    ]
