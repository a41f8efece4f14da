"""
Collect and stream output from step processes.
"""

import asyncio
import logging
from typing import Callable

output_logger = logging.getLogger("runner.output")

READ_CHUNK_SIZE = 64 * 1024

# (step_name, channel, line) where channel is "stdout" or "stderr"
OutputSink = Callable[[str, str, str], None]

def log_output(step_name: str, channel: str, line: str):
    """Default sink: forward a line of step output to the log."""
    if channel == "stderr":
        output_logger.warning(f"[{step_name}] stderr: {line}")
    else:
        output_logger.info(f"[{step_name}] stdout: {line}")

async def stream_logs(
    stream: asyncio.StreamReader,
    buffer: bytearray,
    step_name: str,
    channel: str,
    sink: OutputSink = log_output,
):
    """
    Read a process stream until EOF.
    Every chunk is appended to `buffer` as it arrives and complete lines
    are handed to `sink` in the order the process wrote them.
    """
    pending = b""
    
    while True:
        chunk = await stream.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        
        buffer.extend(chunk)
        pending += chunk
        *lines, pending = pending.split(b"\n")
        for line in lines:
            sink(step_name, channel, line.rstrip(b"\r").decode("utf-8", errors="replace"))
    
    # Trailing output without a final newline
    if pending:
        sink(step_name, channel, pending.decode("utf-8", errors="replace"))
