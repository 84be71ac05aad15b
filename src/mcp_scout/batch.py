"""Windowed fan-out of connection tests over catalog entries."""

import asyncio
import logging
import time
from typing import List, Optional, Sequence

from .directory import ServerDirectory
from .models import (
    BatchEntry,
    BatchVerificationResult,
    ConnectionErrorCode,
    ConnectionTestResult,
)
from .verifier import ConnectionVerifier

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5


class BatchVerifier:
    """Verify many catalog entries, at most ``concurrency`` at a time.

    Ids are processed in consecutive windows; a window finishes completely
    before the next one starts. Results come back in input order.
    """

    def __init__(self, directory: ServerDirectory, verifier: ConnectionVerifier):
        self.directory = directory
        self.verifier = verifier

    async def test_all(
        self,
        server_ids: Sequence[str],
        concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> BatchVerificationResult:
        window = DEFAULT_CONCURRENCY if concurrency is None else max(1, concurrency)
        started = time.perf_counter()
        logger.info("Testing %d servers, %d at a time", len(server_ids), window)

        entries: List[BatchEntry] = []
        for offset in range(0, len(server_ids), window):
            chunk = server_ids[offset:offset + window]
            results = await asyncio.gather(
                *(self._test_one(server_id, timeout) for server_id in chunk)
            )
            entries.extend(
                BatchEntry(server_id=server_id, result=result)
                for server_id, result in zip(chunk, results)
            )

        success_count = sum(1 for entry in entries if entry.result.success)
        summary = BatchVerificationResult(
            results=entries,
            success_count=success_count,
            failed_count=len(entries) - success_count,
            total_time_ms=int((time.perf_counter() - started) * 1000),
        )
        logger.info(
            "Batch test finished: %d succeeded, %d failed in %dms",
            summary.success_count, summary.failed_count, summary.total_time_ms,
        )
        return summary

    async def _test_one(self, server_id: str, timeout: Optional[float]) -> ConnectionTestResult:
        try:
            server = await self.directory.get_details(server_id)
            if server is None:
                return ConnectionTestResult(
                    success=False,
                    error="Server not found",
                    error_code=ConnectionErrorCode.NOT_MCP_SERVER,
                    suggestions=["Refresh the server directory and check the server id"],
                )
            return await self.verifier.test_connection(server.endpoint, server.transport, timeout)
        except Exception as e:
            # One broken server must not take the whole batch down
            logger.warning("Connection test for %s raised: %s", server_id, e)
            return ConnectionTestResult(
                success=False,
                error=str(e) or type(e).__name__,
                error_code=ConnectionErrorCode.NETWORK_ERROR,
                suggestions=["An unexpected error occurred", "Try again in a few minutes"],
            )
