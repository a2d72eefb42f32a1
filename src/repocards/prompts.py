from __future__ import annotations

from typing import Dict, List, Sequence

from repocards.config import PromptSettings
from repocards.schemas import FileMeta, ProposedGroup


def _file_line(meta: FileMeta) -> str:
    return f"{meta.path} | {meta.layer or '-'} | {meta.feature_name or '-'} | {meta.size}"


def build_messages(
    files: Sequence[FileMeta],
    groups: Sequence[ProposedGroup],
    prompt: PromptSettings,
    max_snippet_chars: int = 1200,
) -> List[Dict[str, str]]:
    """System + user chat messages for one repository batch."""

    lines = [prompt.user_header]
    lines.extend(_file_line(meta) for meta in files)
    if groups:
        lines.append("")
        lines.append("Proposed groups (hints, may be regrouped):")
        lines.extend(f"- {group.key}: {', '.join(group.files)}" for group in groups)
    snippets = [meta for meta in files if meta.snippet.strip()]
    if snippets and max_snippet_chars > 0:
        lines.append("")
        lines.append("Snippets:")
        for meta in snippets:
            lines.append(f"### {meta.path}")
            lines.append(meta.snippet[:max_snippet_chars])
    return [
        {"role": "system", "content": prompt.system},
        {"role": "user", "content": "\n".join(lines)},
    ]


def with_json_only(messages: Sequence[Dict[str, str]], suffix: str) -> List[Dict[str, str]]:
    """Copy of ``messages`` with ``suffix`` appended to the system message."""

    result = [dict(message) for message in messages]
    for message in result:
        if message.get("role") == "system":
            message["content"] = f"{message['content']}\n\n{suffix}"
            break
    else:
        result.insert(0, {"role": "system", "content": suffix})
    return result
