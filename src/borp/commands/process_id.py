"""Show the process id this process would lock with."""

import json

from ..core import get_process_id
from ..output import get_output_context
from .lock import load_settings


def process_id() -> None:
    """Show this process's lock identity (JSON and marker file name)."""
    ctx = get_output_context()
    settings = load_settings()
    pid = get_process_id(settings.lock.host_id)

    if ctx.json_mode:
        ctx.print_json({"process_id": list(pid), "filename": pid.to_filename()})
        return
    ctx.console.print(
        f"pid: {json.dumps(list(pid))}", highlight=False, markup=False, soft_wrap=True
    )
    ctx.console.print(f"pid: {pid.to_filename()}", highlight=False, markup=False, soft_wrap=True)
