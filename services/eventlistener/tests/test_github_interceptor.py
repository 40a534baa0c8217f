"""Tests for the GitHub signature interceptor."""

import hashlib
import hmac

import pytest

from eventsink.interceptors import DispatchContext
from eventsink.interceptors.github import GitHubInterceptor, validate_signature
from eventsink.models.interceptor import Code, InterceptorRequest

BODY = '{"action":"opened"}'
SECRET_REF = {'secretName': 'github-secret', 'secretKey': 'token'}


def sign(body, secret='sekrit', algorithm='sha256'):
    digest = hmac.new(secret.encode(), body.encode(), getattr(hashlib, algorithm)).hexdigest()
    return f'{algorithm}={digest}'


def github_request(header, params):
    return InterceptorRequest(body=BODY, header=header, interceptor_params=params)


@pytest.fixture
def interceptor(secret_cache):
    return GitHubInterceptor(secret_cache)


class TestGitHubInterceptor:
    def test_valid_signature(self, interceptor):
        request = github_request(
            {'X-Hub-Signature-256': [sign(BODY)], 'X-GitHub-Event': ['pull_request']},
            {'secretRef': SECRET_REF, 'eventTypes': ['pull_request']},
        )
        response = interceptor.process(DispatchContext(5), request)
        assert response.continue_

    def test_legacy_sha1_signature(self, interceptor):
        request = github_request({'x-hub-signature': [sign(BODY, algorithm='sha1')]}, {'secretRef': SECRET_REF})
        assert interceptor.process(DispatchContext(5), request).continue_

    def test_wrong_signature(self, interceptor):
        request = github_request({'X-Hub-Signature-256': [sign(BODY, secret='other')]}, {'secretRef': SECRET_REF})
        response = interceptor.process(DispatchContext(5), request)
        assert response.status.code == Code.FAILED_PRECONDITION
        assert response.status.message == 'payload signature check failed'

    def test_missing_signature(self, interceptor):
        response = interceptor.process(DispatchContext(5), github_request({}, {'secretRef': SECRET_REF}))
        assert response.status.code == Code.FAILED_PRECONDITION
        assert response.status.message == 'no X-Hub-Signature header set'

    def test_missing_secret(self, interceptor):
        request = github_request(
            {'X-Hub-Signature-256': [sign(BODY)]},
            {'secretRef': {'secretName': 'absent', 'secretKey': 'token'}},
        )
        response = interceptor.process(DispatchContext(5), request)
        assert response.status.code == Code.FAILED_PRECONDITION
        assert response.status.message.startswith('error getting secret:')

    def test_event_type_not_allowed(self, interceptor):
        request = github_request({'X-GitHub-Event': ['issues']}, {'eventTypes': ['push', 'pull_request']})
        response = interceptor.process(DispatchContext(5), request)
        assert response.status.code == Code.FAILED_PRECONDITION
        assert response.status.message == 'event type issues is not allowed'

    def test_no_params_continues(self, interceptor):
        assert interceptor.process(DispatchContext(5), github_request({}, {})).continue_


@pytest.mark.parametrize('signature, expected', [
    (sign(BODY), ''),
    ('sha256=deadbeef', 'payload signature check failed'),
    ('md5=deadbeef', 'unsupported signature format: md5'),
    ('garbage', 'unsupported signature format: garbage'),
])
def test_validate_signature(signature, expected):
    assert validate_signature(signature, BODY.encode(), b'sekrit') == expected
