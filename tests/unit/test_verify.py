"""Tests for Sourcify verification, with HTTP served by a mock transport."""

import json

import httpx
import pytest

from deployer.artifacts import ArtifactStore
from deployer.config import CompilerSettings, SourcifyConfig
from deployer.errors import ConfigurationError, VerificationError
from deployer.models.record import Artifact
from deployer.verify import SourcifyVerifier, verify_artifacts
from tests.helpers import CHAIN_ID, FACTORY, write_artifact, write_build_info

CONFIG = SourcifyConfig(
    enabled=True, apiUrl="https://sourcify.test/server", browserUrl="https://explorer.test"
)


class FakeSourcify:
    """Request handler recording calls and answering like a Sourcify server."""

    def __init__(self, verified: set[str] | None = None, verify_status: str = "perfect"):
        self.verified = {a.lower() for a in verified or set()}
        self.verify_status = verify_status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/server/check-by-addresses":
            address = request.url.params["addresses"]
            if address.lower() in self.verified:
                return httpx.Response(200, json=[{"address": address, "status": "perfect"}])
            return httpx.Response(200, json=[{"address": address, "status": "false"}])
        if request.url.path == "/server/verify":
            body = json.loads(request.content)
            if self.verify_status == "error":
                return httpx.Response(400, json={"error": "Metadata mismatch"})
            return httpx.Response(
                200, json={"result": [{"address": body["address"], "status": self.verify_status}]}
            )
        return httpx.Response(404)


def make_verifier(handler: FakeSourcify) -> SourcifyVerifier:
    client = httpx.Client(base_url=CONFIG.api_url, transport=httpx.MockTransport(handler))
    return SourcifyVerifier(CONFIG, client=client)


@pytest.fixture
def verified_contracts(tmp_path) -> ArtifactStore:
    root = tmp_path / "artifacts"
    write_artifact(root, "MondaV2Factory", build_info="abc.json")
    write_build_info(root, "abc.json", {"MondaV2Factory": "contracts/MondaV2Factory.sol"})
    return ArtifactStore(root)


def factory_artifact() -> Artifact:
    return Artifact(
        module="V2Core",
        step="MondaV2Factory",
        contract="MondaV2Factory",
        address=FACTORY,
        tx_hash="0x" + "ab" * 32,
        args_digest="0x01",
    )


class TestSourcifyVerifier:
    def test_disabled_config_rejected(self):
        with pytest.raises(ConfigurationError, match="disabled"):
            SourcifyVerifier(SourcifyConfig(enabled=False))

    def test_status_verified(self):
        verifier = make_verifier(FakeSourcify(verified={FACTORY}))

        assert verifier.status(FACTORY, CHAIN_ID) == "perfect"
        assert verifier.is_verified(FACTORY, CHAIN_ID)

    def test_status_unverified(self):
        handler = FakeSourcify()

        assert make_verifier(handler).status(FACTORY, CHAIN_ID) is None
        assert handler.requests[0].url.params["chainIds"] == str(CHAIN_ID)

    def test_verify_posts_metadata_and_sources(self):
        handler = FakeSourcify(verify_status="partial")

        status = make_verifier(handler).verify(FACTORY, CHAIN_ID, "{}", {"a.sol": "contract A {}"})

        assert status == "partial"
        body = json.loads(handler.requests[0].content)
        assert body["chain"] == str(CHAIN_ID)
        assert body["files"] == {"metadata.json": "{}", "a.sol": "contract A {}"}

    def test_verify_rejected(self):
        with pytest.raises(VerificationError, match="400"):
            make_verifier(FakeSourcify(verify_status="error")).verify(FACTORY, CHAIN_ID, "{}", {})

    def test_verify_no_match(self):
        with pytest.raises(VerificationError, match="status"):
            make_verifier(FakeSourcify(verify_status="false")).verify(FACTORY, CHAIN_ID, "{}", {})

    def test_transport_error(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.Client(base_url=CONFIG.api_url, transport=httpx.MockTransport(refuse))
        verifier = SourcifyVerifier(CONFIG, client=client)

        with pytest.raises(VerificationError, match="connection refused"):
            verifier.status(FACTORY, CHAIN_ID)

    def test_explorer_url(self):
        assert make_verifier(FakeSourcify()).explorer_url(FACTORY) == (
            f"https://explorer.test/address/{FACTORY}"
        )


class TestVerifyArtifacts:
    def test_verifies_unverified_contracts(self, verified_contracts):
        handler = FakeSourcify()

        results = verify_artifacts(
            [factory_artifact()], verified_contracts, make_verifier(handler), CHAIN_ID
        )

        assert results == {"MondaV2Factory": "perfect"}
        posted = json.loads(handler.requests[-1].content)
        assert "contracts/MondaV2Factory.sol" in posted["files"]

    def test_skips_verified_contracts(self, verified_contracts):
        handler = FakeSourcify(verified={FACTORY})

        results = verify_artifacts(
            [factory_artifact()], verified_contracts, make_verifier(handler), CHAIN_ID
        )

        assert results == {"MondaV2Factory": "perfect"}
        assert [r.url.path for r in handler.requests] == ["/server/check-by-addresses"]

    def test_compiler_mismatch_still_verifies(self, verified_contracts):
        results = verify_artifacts(
            [factory_artifact()],
            verified_contracts,
            make_verifier(FakeSourcify()),
            CHAIN_ID,
            compiler=CompilerSettings(version="0.8.20"),
        )

        assert results == {"MondaV2Factory": "perfect"}
