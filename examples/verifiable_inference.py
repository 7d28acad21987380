"""
Verifiable inference with the Opacity adapter.

Requires ``AGENTKIT_OPACITY__TEAM_ID``, ``AGENTKIT_OPACITY__TEAM_NAME``,
``AGENTKIT_OPACITY__API_KEY`` and ``AGENTKIT_OPACITY__OPACITY_PROVER_URL``.
"""

import asyncio

from agentkit import OpacityAdapter, OpacityAdapterConfig, Settings


async def main() -> None:
    config = OpacityAdapterConfig.from_settings(Settings().opacity)

    async with OpacityAdapter(config) as opacity:
        result = await opacity.generate_text(
            "What is the capital of France?", temperature=0.2, max_tokens=64
        )
        print(f"Response: {result.content}")
        print(f"Proof for log {result.proof.metadata['log_id']}")

        valid = await opacity.verify_proof(result.proof)
        print(f"Proof valid: {valid}")


if __name__ == "__main__":
    asyncio.run(main())
