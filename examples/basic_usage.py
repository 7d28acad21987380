"""
Basic usage example for agentkit.

Buffers a few agent log records, lets the size threshold trigger a batch
upload to EigenDA, then checks availability of the stored batch. Configure
through the environment, e.g. ``AGENTKIT_EIGENDA__AUTH_TOKEN``.
"""

import asyncio

from agentkit import EigenDAAdapter, LogOptions, Settings


async def main() -> None:
    """Demonstrate batched DA logging."""
    settings = Settings(batching={"flush_interval_ms": 5_000, "max_buffer_size": 3})

    async with EigenDAAdapter.from_settings(settings) as eigenda:
        print(f"Identifier: {eigenda.identifier_hex}")

        # Completions resolve once the batch carrying the record is uploaded
        pending = [
            eigenda.info("Application started", {"version": "1.0.0"}),
            eigenda.warn("High CPU usage", {"cpu": 85}),
            eigenda.log(
                {"event": "user_login", "user_id": "123", "success": True},
                LogOptions(level="info", tags=("auth", "security")),
            ),
        ]
        entries = await asyncio.gather(*pending)
        for entry in entries:
            print(f"Stored in job {entry.id}")

        available = await eigenda.check_availability(entries[0].status)
        print(f"Batch confirmed: {available}")

        stored = await eigenda.get_log_entry(entries[0].id)
        if stored is not None:
            print(f"Batch holds {len(stored.content)} records")


if __name__ == "__main__":
    asyncio.run(main())
