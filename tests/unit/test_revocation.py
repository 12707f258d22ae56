"""Unit tests for the revocation sequence."""

import pytest

from ovpn_admin.errors import FilesystemFailure, ToolchainFailure
from ovpn_admin.client_service.revocation import REVOCATION_STEPS
from ovpn_admin.toolchain import IdentityStatus


@pytest.mark.asyncio
class TestRevocationSequence:
    """Test revoke, CRL publication and cleanup."""

    async def test_full_sequence(self, pki, settings, registry):
        await registry.create("alice")
        (pki.openvpn_dir / "ipp.txt").write_text("alice,10.8.0.2\nalicebob,10.8.0.3\nbob,10.8.0.4\n")

        await registry.revocation.revoke("alice")

        assert pki.calls() == ["build-client-full alice nopass", "revoke alice", "gen-crl"]
        assert pki.crl_days_seen() == ["3650"]
        assert settings.published_crl_path.read_bytes() == settings.generated_crl_path.read_bytes()
        assert settings.published_crl_path.stat().st_mode & 0o777 == 0o644
        assert not settings.bundle_path("alice").exists()
        assert (pki.openvpn_dir / "ipp.txt").read_text() == "alicebob,10.8.0.3\nbob,10.8.0.4\n"

        record = await registry.index.find("alice")
        assert record.status is IdentityStatus.REVOKED

    async def test_published_crl_lists_revoked_serial(self, registry):
        await registry.create("alice")
        record = await registry.index.find("alice")

        await registry.revocation.revoke("alice")
        status = await registry.crl_status()

        assert status.revoked_serials == [record.serial]
        assert status.mode == 0o644
        assert status.is_stale is False

    async def test_crl_days_setting_is_passed_to_toolchain(self, pki):
        from ovpn_admin.client_service import ClientRegistry

        registry = ClientRegistry(pki.settings(crl_days=30))
        await registry.create("alice")
        await registry.revocation.revoke("alice")

        assert pki.crl_days_seen() == ["30"]

    async def test_missing_optional_files_are_not_errors(self, pki, settings, registry):
        await registry.create("alice")
        settings.bundle_path("alice").unlink()
        settings.address_pool_path.unlink()

        await registry.revocation.revoke("alice")

        assert settings.published_crl_path.exists()
        assert not settings.address_pool_path.exists()

    async def test_replaces_previous_published_crl(self, pki, settings, registry):
        settings.published_crl_path.write_text("old crl")
        settings.published_crl_path.chmod(0o600)
        await registry.create("alice")

        await registry.revocation.revoke("alice")

        assert settings.published_crl_path.read_text() != "old crl"
        assert settings.published_crl_path.stat().st_mode & 0o777 == 0o644

    async def test_crl_failure_stops_sequence(self, pki, settings, registry, monkeypatch):
        await registry.create("alice")
        settings.published_crl_path.write_text("previous crl")
        (pki.openvpn_dir / "ipp.txt").write_text("alice,10.8.0.2\n")
        monkeypatch.setenv("FAKE_EASYRSA_FAIL", "gen-crl")

        with pytest.raises(ToolchainFailure) as exc_info:
            await registry.revocation.revoke("alice")

        assert exc_info.value.failed_step == "generate_crl"
        # Ledger already updated, CRL stale, cleanup not reached
        assert (await registry.index.find("alice")).status is IdentityStatus.REVOKED
        assert settings.published_crl_path.read_text() == "previous crl"
        assert settings.bundle_path("alice").exists()
        assert (pki.openvpn_dir / "ipp.txt").read_text() == "alice,10.8.0.2\n"

    async def test_resume_after_crl_failure(self, pki, settings, registry, monkeypatch):
        await registry.create("alice")
        monkeypatch.setenv("FAKE_EASYRSA_FAIL", "gen-crl")
        with pytest.raises(ToolchainFailure):
            await registry.revocation.revoke("alice")

        monkeypatch.delenv("FAKE_EASYRSA_FAIL")
        await registry.revocation.revoke("alice", resume_from="generate_crl")

        assert pki.calls()[-1] == "gen-crl"
        assert pki.calls().count("revoke alice") == 1
        assert settings.published_crl_path.exists()
        assert not settings.bundle_path("alice").exists()

    async def test_missing_generated_crl_is_filesystem_failure(self, pki, settings, registry):
        await registry.create("alice")
        await registry.revocation.revoke("alice")
        settings.generated_crl_path.unlink()

        with pytest.raises(FilesystemFailure) as exc_info:
            await registry.revocation.revoke("alice", resume_from="publish_crl")

        assert exc_info.value.failed_step == "publish_crl"

    async def test_undecodable_address_pool_is_filesystem_failure(self, settings, registry):
        await registry.create("alice")
        settings.address_pool_path.write_bytes(b"alice,10.8.0.2\n\xff\xfe\n")

        with pytest.raises(FilesystemFailure) as exc_info:
            await registry.revocation.revoke("alice")

        assert exc_info.value.failed_step == "release_address"

    async def test_toolchain_failure_on_revoke_step(self, registry):
        with pytest.raises(ToolchainFailure) as exc_info:
            await registry.revocation.revoke("ghost")

        assert exc_info.value.failed_step == REVOCATION_STEPS[0]
        assert "no certificate was found" in exc_info.value.output

    async def test_unknown_resume_step(self, registry):
        with pytest.raises(ValueError):
            await registry.revocation.revoke("alice", resume_from="rollback")

    async def test_no_crl_published_yet(self, registry):
        assert await registry.crl_status() is None
