from rich.console import Console


def get_rich_console() -> Console: return Console(stderr=True)


def human_size(num_bytes: int) -> str:
    return f"{num_bytes / 1024 / 1024:.2f}MB"
