import click

DARK_ORANGE = 166
GOLD = 178


def style_path(file_or_folder: str) -> str:
    """Dim the parent folders and highlight the last segment of a path or slug."""
    if "/" not in file_or_folder and "\\" not in file_or_folder:
        return file_or_folder

    last_slash = max(file_or_folder.rfind("/"), file_or_folder.rfind("\\"))
    start = file_or_folder[: last_slash + 1]
    end = file_or_folder[last_slash + 1 :]

    return click.style(start, fg=DARK_ORANGE) + click.style(end, fg=GOLD)
