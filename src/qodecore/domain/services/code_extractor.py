"""Turns a chat model answer into insertable code."""

from qodecore.domain.services.languages import LanguageRegistry

FENCE = "```"


def extract_code(text: str, file_path: str, registry: LanguageRegistry) -> str:
    """Keep fenced code as is and turn surrounding prose into comments.

    The comment prefix follows the language of the current file until a
    fence names another known language.

    Args:
        text: Model answer.
        file_path: Path of the file the code will be inserted into.
        registry: Language table.

    Returns:
        Text ready for insertion.
    """
    result: list[str] = []
    pending_comments: list[str] = []
    in_code_block = False
    current_language = registry.detect_from_path(file_path)

    def flush_comments() -> None:
        prefix = registry.comment_prefix(current_language)
        for comment in pending_comments:
            result.append(f"{prefix} {comment}\n" if comment else "\n")
        pending_comments.clear()

    for line in text.split("\n"):
        stripped = line.strip()
        if stripped.startswith(FENCE):
            if not in_code_block:
                fence_language = registry.detect_from_model_name(stripped[3:])
                if fence_language:
                    current_language = fence_language
                flush_comments()
                if not fence_language and stripped[3:]:
                    # Unrecognized fence info may already be code.
                    result.append(stripped[3:] + "\n")
            in_code_block = not in_code_block
            continue

        if in_code_block:
            result.append(line + "\n")
        else:
            pending_comments.append(stripped)

    flush_comments()
    return "".join(result)
