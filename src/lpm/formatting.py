"""Text formatting for process rows."""

from lpm.models import Process

COLUMN_HEADER = f"{'PID':>7} {'PPID':>7} {'USER':<10} {'S':<1} {'CPU%':>6} {'RES':>7} {'THR':>4}  NAME"


def format_kb(size_kb: int) -> str:
    """Format a kB quantity as a short human-readable string."""
    size = float(size_kb)
    for unit in ["K", "M", "G", "T"]:
        if size < 1024:
            return f"{int(size)}{unit}" if unit == "K" else f"{size:.1f}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_row(proc: Process, depth: int | None = None) -> str:
    """
    Format one process as a fixed-width row.

    With ``depth`` set, the name is indented to show its place in the tree.
    """
    name = proc.name
    if depth is not None:
        name = ("  " * depth) + ("└─ " if depth else "") + name
    rss = format_kb(proc.vm_rss) if proc.vm_rss > 0 else "-"
    return (
        f"{proc.pid:>7} {proc.ppid:>7} {proc.user[:10]:<10} {proc.state.code:<1} "
        f"{proc.cpu_percent:6.1f} {rss:>7} {proc.threads:>4}  {name}"
    )


def format_details(proc: Process) -> str:
    """One-line summary of every field of a process."""
    return (
        f"PID {proc.pid} ({proc.name}) ppid={proc.ppid} user={proc.user} "
        f"state={proc.state.description} threads={proc.threads} "
        f"vsz={format_kb(proc.vm_size)} rss={format_kb(proc.vm_rss)} "
        f"start={proc.start_tick}"
    )
