"""Source verification through a Sourcify server.

Only Sourcify is supported; the Etherscan section of the configuration is
read for its ``enabled`` flag and otherwise ignored.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import httpx
import structlog

from deployer.artifacts import ArtifactStore
from deployer.config import CompilerSettings, SourcifyConfig
from deployer.errors import ConfigurationError, VerificationError
from deployer.models.record import Artifact

logger = structlog.get_logger()

# Sourcify match statuses that count as verified
VERIFIED_STATUSES = {"perfect", "partial"}


class SourcifyVerifier:
    """Client for the Sourcify verification API.

    Args:
        config: Sourcify section of the project configuration
        client: HTTP client to use; by default one is created for
            ``config.api_url`` (tests pass a client with a mock transport)
        timeout: Request timeout in seconds for the default client

    Raises:
        ConfigurationError: If Sourcify verification is disabled
    """

    def __init__(
        self,
        config: SourcifyConfig,
        *,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
    ) -> None:
        if not config.enabled:
            raise ConfigurationError("Sourcify verification is disabled in the configuration")
        self.config = config
        self._client = client or httpx.Client(base_url=config.api_url, timeout=timeout)

    def __enter__(self) -> SourcifyVerifier:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def explorer_url(self, address: str) -> str:
        return f"{self.config.browser_url.rstrip('/')}/address/{address}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as err:
            raise VerificationError(
                f"Sourcify {method} {path} failed with {err.response.status_code}: "
                f"{err.response.text[:500]}"
            ) from err
        except httpx.HTTPError as err:
            raise VerificationError(f"Sourcify {method} {path} failed: {err}") from err
        except ValueError as err:
            raise VerificationError(f"Sourcify {method} {path} returned invalid JSON") from err

    def status(self, address: str, chain_id: int) -> str | None:
        """Match status of ``address`` ("perfect", "partial"), or None."""
        data = self._request(
            "GET",
            "/check-by-addresses",
            params={"addresses": address, "chainIds": str(chain_id)},
        )
        for entry in data if isinstance(data, list) else []:
            if str(entry.get("address", "")).lower() == address.lower():
                status = entry.get("status")
                if status in VERIFIED_STATUSES:
                    return status
                for chain in entry.get("chainIds", []):
                    if str(chain.get("chainId")) == str(chain_id) and chain.get("status") in VERIFIED_STATUSES:
                        return chain["status"]
        return None

    def is_verified(self, address: str, chain_id: int) -> bool:
        return self.status(address, chain_id) is not None

    def verify(self, address: str, chain_id: int, metadata: str, sources: dict[str, str]) -> str:
        """Submit metadata and sources for ``address``.

        Returns:
            The match status reported by Sourcify

        Raises:
            VerificationError: If the request fails or the contract does not match
        """
        data = self._request(
            "POST",
            "/verify",
            json={
                "address": address,
                "chain": str(chain_id),
                "files": {"metadata.json": metadata, **sources},
            },
        )
        results = data.get("result", []) if isinstance(data, dict) else []
        if not results:
            error = data.get("error") if isinstance(data, dict) else None
            raise VerificationError(f"Sourcify did not verify {address}: {error or data}")
        status = results[0].get("status")
        if status not in VERIFIED_STATUSES:
            raise VerificationError(f"Sourcify did not verify {address}: status {status!r}")
        return status


def verify_artifacts(
    artifacts: Iterable[Artifact],
    contracts: ArtifactStore,
    verifier: SourcifyVerifier,
    chain_id: int,
    compiler: CompilerSettings | None = None,
) -> dict[str, str]:
    """Verify recorded artifacts, skipping those already verified.

    Returns:
        step name -> match status
    """
    results: dict[str, str] = {}
    for artifact in artifacts:
        existing = verifier.status(artifact.address, chain_id)
        if existing is not None:
            logger.info("already_verified", step=artifact.step, address=artifact.address, status=existing)
            results[artifact.step] = existing
            continue

        build_info = contracts.build_info(artifact.contract)
        if compiler is not None and not build_info.solc_version.startswith(compiler.version):
            logger.warning(
                "compiler_version_mismatch",
                contract=artifact.contract,
                configured=compiler.version,
                built_with=build_info.solc_version,
            )
        status = verifier.verify(artifact.address, chain_id, build_info.metadata, build_info.sources)
        logger.info(
            "contract_verified",
            step=artifact.step,
            address=artifact.address,
            status=status,
            url=verifier.explorer_url(artifact.address),
        )
        results[artifact.step] = status
    return results


__all__ = ["SourcifyVerifier", "VERIFIED_STATUSES", "verify_artifacts"]
