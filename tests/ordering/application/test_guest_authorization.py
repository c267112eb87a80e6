"""Application tests for issuing, verifying, redeeming and purging guest authorizations."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from ordering.config import reset_settings
from ordering.errors import (
    GuestAuthorizationExpired,
    GuestAuthorizationRejected,
    GuestAuthorizationReplayed,
    SecurityVerificationUnavailable,
)
from ordering.guest.authorization import GuestAuthorization, GuestAuthorizationSigner
from ordering.guest.captcha.port import CaptchaServiceUnavailable
from ordering.guest.client import STORAGE_KEY, GuestAuthorizationProvider
from ordering.guest.grant import GuestGrant
from ordering.guest.issuance import IssueGuestAuthorization
from ordering.guest.purge import PurgeGuestGrants
from ordering.guest.redemption import GuestAuthorizationVerifier
from protean import current_domain
from protean.exceptions import ObjectNotFoundError


@pytest.fixture()
def verifier():
    return GuestAuthorizationVerifier()


class TestIssuance:
    def test_issues_signed_authorization_and_records_grant(self, issue_guest_authorization):
        issued = issue_guest_authorization()

        assert set(issued) == {"nonce", "issuedAt", "expiresAt", "signature"}
        assert issued["expiresAt"] - issued["issuedAt"] == 300_000
        grant = current_domain.repository_for(GuestGrant).get(issued["nonce"])
        assert not grant.redeemed
        assert grant.action == "guest_checkout"

    def test_remote_ip_reaches_the_verifier(self, captcha):
        current_domain.process(
            IssueGuestAuthorization(captcha_token="captcha-ok", remote_ip="203.0.113.9"),
            asynchronous=False,
        )
        assert captcha.calls[-1] == {"token": "captcha-ok", "action": "guest_checkout", "remote_ip": "203.0.113.9"}

    def test_failed_captcha(self, captcha):
        captcha.configure(should_pass=False)
        with pytest.raises(SecurityVerificationUnavailable) as exc_info:
            current_domain.process(IssueGuestAuthorization(captcha_token="captcha-ok"), asynchronous=False)
        assert exc_info.value.message == "Security verification failed. Please try again."

    def test_captcha_service_down(self, captcha):
        captcha.configure(should_fail_service=True)
        with pytest.raises(SecurityVerificationUnavailable):
            current_domain.process(IssueGuestAuthorization(captcha_token="captcha-ok"), asynchronous=False)

    def test_missing_secret_fails_closed(self, captcha, monkeypatch):
        monkeypatch.delenv("GUEST_AUTHORIZATION_SECRET", raising=False)
        monkeypatch.delenv("JWT_SECRET", raising=False)
        reset_settings()
        with pytest.raises(SecurityVerificationUnavailable):
            current_domain.process(IssueGuestAuthorization(captcha_token="captcha-ok"), asynchronous=False)
        assert captcha.calls == []


class TestVerification:
    def test_fresh_authorization_verifies(self, verifier, issue_guest_authorization):
        issued = issue_guest_authorization()
        assert verifier.verify(issued).nonce == issued["nonce"]

    def test_tampered_signature(self, verifier, issue_guest_authorization):
        issued = issue_guest_authorization()
        issued["signature"] = "0" * 64
        with pytest.raises(GuestAuthorizationRejected):
            verifier.verify(issued)

    def test_stretched_window(self, verifier, issue_guest_authorization):
        issued = issue_guest_authorization()
        issued["expiresAt"] += 3_600_000
        with pytest.raises(GuestAuthorizationRejected):
            verifier.verify(issued)

    def test_expired(self, verifier, issue_guest_authorization):
        issued = issue_guest_authorization()
        later = GuestAuthorization.from_dict(issued).expires_at + timedelta(seconds=1)
        with pytest.raises(GuestAuthorizationExpired):
            verifier.verify(issued, now=later)

    def test_nonce_never_issued(self, verifier):
        authorization = GuestAuthorizationSigner.from_settings().issue()
        with pytest.raises(GuestAuthorizationRejected) as exc_info:
            verifier.verify(authorization)
        assert not isinstance(exc_info.value, GuestAuthorizationExpired)

    def test_malformed(self, verifier):
        with pytest.raises(GuestAuthorizationRejected):
            verifier.verify({"nonce": "abc"})

    def test_grant_for_another_action_is_refused(self, verifier):
        authorization = GuestAuthorizationSigner.from_settings().issue()
        current_domain.repository_for(GuestGrant).add(GuestGrant.record(authorization, "newsletter_signup"))

        with pytest.raises(GuestAuthorizationRejected) as exc_info:
            verifier.verify(authorization)
        assert not isinstance(exc_info.value, GuestAuthorizationReplayed)


class TestRedemption:
    def test_redeem_marks_grant(self, verifier, issue_guest_authorization):
        issued = issue_guest_authorization()
        verifier.redeem(issued, order_id="ord-001")

        grant = current_domain.repository_for(GuestGrant).get(issued["nonce"])
        assert grant.redeemed
        assert grant.order_id == "ord-001"

    def test_replay_is_refused(self, verifier, issue_guest_authorization):
        issued = issue_guest_authorization()
        verifier.redeem(issued, order_id="ord-001")

        with pytest.raises(GuestAuthorizationReplayed):
            verifier.redeem(issued, order_id="ord-002")
        with pytest.raises(GuestAuthorizationReplayed):
            verifier.verify(issued)

    def test_expired_cannot_be_redeemed(self, verifier, issue_guest_authorization):
        issued = issue_guest_authorization()
        later = datetime.now(UTC) + timedelta(minutes=10)
        with pytest.raises(GuestAuthorizationExpired):
            verifier.redeem(issued, order_id="ord-001", now=later)
        grant = current_domain.repository_for(GuestGrant).get(issued["nonce"])
        assert not grant.redeemed


class TestPurge:
    def test_purges_grants_one_window_past_expiry(self, issue_guest_authorization):
        issued = issue_guest_authorization()
        expires_at = GuestAuthorization.from_dict(issued).expires_at

        kept = current_domain.process(
            PurgeGuestGrants(as_of=expires_at + timedelta(minutes=4)),
            asynchronous=False,
        )
        assert kept == 0
        assert current_domain.repository_for(GuestGrant).get(issued["nonce"])

        purged = current_domain.process(
            PurgeGuestGrants(as_of=expires_at + timedelta(minutes=6)),
            asynchronous=False,
        )
        assert purged == 1
        with pytest.raises(ObjectNotFoundError):
            current_domain.repository_for(GuestGrant).get(issued["nonce"])


class TestClientProvider:
    def _provider(self, storage=None, clock=None, exchange=None):
        proofs = []

        def obtain_proof(action):
            proofs.append(action)
            return "captcha-ok"

        kwargs = {"storage": storage if storage is not None else {}, "clock": clock}
        if exchange:
            kwargs["exchange"] = exchange
        return GuestAuthorizationProvider(obtain_proof, **kwargs), proofs

    def test_acquires_and_caches(self, captcha):
        storage = {}
        provider, proofs = self._provider(storage)

        first = provider.ensure_authorization()
        second = provider.ensure_authorization()

        assert first == second
        assert proofs == ["guest_checkout"]
        assert json.loads(storage[STORAGE_KEY])["nonce"] == first.nonce

    def test_reacquires_after_expiry(self, captcha):
        now = [datetime.now(UTC)]
        provider, proofs = self._provider(clock=lambda: now[0])

        first = provider.ensure_authorization()
        now[0] = first.expires_at
        second = provider.ensure_authorization()

        assert second.nonce != first.nonce
        assert len(proofs) == 2

    def test_corrupt_cache_is_discarded(self, captcha):
        storage = {STORAGE_KEY: json.dumps({"nonce": "x"})}
        provider, proofs = self._provider(storage)
        provider.ensure_authorization()
        assert len(proofs) == 1

    def test_invalidate(self, captcha):
        storage = {}
        provider, _ = self._provider(storage)
        provider.ensure_authorization()
        provider.invalidate()
        assert STORAGE_KEY not in storage

    def test_captcha_service_down(self):
        def exchange(proof):
            raise CaptchaServiceUnavailable("down")

        provider, _ = self._provider(exchange=exchange)
        with pytest.raises(SecurityVerificationUnavailable):
            provider.ensure_authorization()

    def test_garbled_issuer_response(self):
        provider, _ = self._provider(exchange=lambda proof: {"nonce": "x"})
        with pytest.raises(SecurityVerificationUnavailable):
            provider.ensure_authorization()

    def test_issuer_refusal_propagates(self, captcha):
        captcha.configure(should_pass=False)
        provider, _ = self._provider()
        with pytest.raises(SecurityVerificationUnavailable):
            provider.ensure_authorization()
